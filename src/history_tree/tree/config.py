"""Tuning parameters for the tree builders.

Defaults are empirical; they are plain values so callers can tune them
against their own history data.
"""

from __future__ import annotations

from dataclasses import dataclass, field

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS

LISTING_SEGMENTS = frozenset({
    "category", "categories", "tag", "tags", "section",
    "posts", "articles", "products", "product", "blog",
})


@dataclass(frozen=True)
class SignalWeights:
    """Coefficients of the edge-score signals."""

    count: float = 1.0
    recency: float = 1.4
    freq: float = 0.9
    path: float = 1.0
    root: float = 1.1
    pattern: float = 0.6
    domain: float = 0.4


@dataclass(frozen=True)
class ScoringParams:
    """URL-aggregated edge scoring and arborescence input shaping."""

    path_weight: float = 40.0
    root_bonus: float = 220.0
    domain_match_bonus: float = 20.0
    id_pattern_bonus: float = 30.0
    pattern_bonus: float = 25.0
    recency_half_life_ms: int = 14 * DAY_MS
    weights: SignalWeights = field(default_factory=SignalWeights)
    listing_segments: frozenset[str] = LISTING_SEGMENTS
    top_k_incoming: int = 10
    hierarchy_score_bonus: float = 80.0
    # Site-root inferred edges shrink by this factor per visited section between.
    root_ancestor_decay: float = 0.35
    min_edge_score: float = 0.01
    virtual_root_weight: float = 1.0
    contract_cycles: bool = True


@dataclass(frozen=True)
class DirectLinkParams:
    """Orphan fallback for the referrer-only builder."""

    lookback_ms: int = 5 * MINUTE_MS
    inferable_transitions: frozenset[str] = frozenset({"typed", "auto_bookmark", "generated"})


@dataclass(frozen=True)
class EnhancedParams:
    """Windows and confidences of the multi-signal resolver."""

    min_confidence: float = 0.3
    new_tab_window_ms: int = 10_000
    new_tab_any_tab_window_ms: int = 5_000
    new_tab_min_accept: float = 0.6
    parent_lookup_window_ms: int = 10_000
    back_forward_window_ms: int = 1_000
    back_forward_confidence: float = 0.9
    previous_visit_window_ms: int = 5 * MINUTE_MS
    hierarchy_window_ms: int = 5 * MINUTE_MS
    revisit_window_ms: int = 30_000
    revisit_min_confidence: float = 0.4
    transition_window_ms: int = 60_000
    transition_confidence: dict[str, float] = field(default_factory=lambda: {
        "reload": 0.8,
        "form_submit": 0.7,
        "auto_bookmark": 0.6,
        "typed": 0.4,
    })
    relation_priority: tuple[str, ...] = (
        "back_forward",
        "new_tab",
        "new_tab_time_based",
        "hierarchy_down",
        "hierarchy_up",
        "same_url_revisit",
        "transition",
    )
    root_time_offset_ms: int = 1_000
    synthesize_domain_roots: bool = True
    collapse_duplicates: bool = False


@dataclass(frozen=True)
class HierarchyMergeParams:
    """URL-hierarchy merge for the transition-ranked builder."""

    max_relations: int = 25
    certain_prefix_score: float = 1000.0
    depth_penalty: float = 5.0
    root_page_score: float = 800.0
    partial_match_score: float = 20.0
    shallow_base_score: float = 60.0
    shallow_depth_penalty: float = 10.0
    shallow_max_depth_diff: int = 3
    shallow_parent_bonus: float = 20.0
    override_score: float = 100.0
    orphan_merge_score: float = 50.0
    generic_pages: frozenset[str] = frozenset({"index", "home", "main", "top", "root"})


@dataclass(frozen=True)
class TreeConfig:
    """All builder parameters in one place."""

    scoring: ScoringParams = field(default_factory=ScoringParams)
    direct: DirectLinkParams = field(default_factory=DirectLinkParams)
    enhanced: EnhancedParams = field(default_factory=EnhancedParams)
    hierarchy: HierarchyMergeParams = field(default_factory=HierarchyMergeParams)
    merge_consecutive: bool = False
