"""Navigation tree reconstruction from visit collections."""

from history_tree.tree.aggregated import AggregatedTreeBuilder
from history_tree.tree.arborescence import ArborescenceSolver, greedy_resolve
from history_tree.tree.collapse import collapse_duplicates, merge_consecutive
from history_tree.tree.config import (
    DirectLinkParams,
    EnhancedParams,
    HierarchyMergeParams,
    ScoringParams,
    SignalWeights,
    TreeConfig,
)
from history_tree.tree.direct import DirectLinkTreeBuilder
from history_tree.tree.enhanced import EnhancedTreeBuilder, summarize_relations
from history_tree.tree.forest import ParentAssignment, find_cycle, iter_nodes, parent_pointers
from history_tree.tree.models import VIRTUAL_ROOT, DirectedEdge, Relation, TreeNode, URLAggregate
from history_tree.tree.ranked import TransitionRankedTreeBuilder
from history_tree.tree.scoring import EdgeScorer, aggregate_visits
from history_tree.tree.signals import NavigationEvent, NavigationTracker, TabCreatedEvent

__all__ = [
    "AggregatedTreeBuilder",
    "ArborescenceSolver",
    "greedy_resolve",
    "collapse_duplicates",
    "merge_consecutive",
    "DirectLinkParams",
    "EnhancedParams",
    "HierarchyMergeParams",
    "ScoringParams",
    "SignalWeights",
    "TreeConfig",
    "DirectLinkTreeBuilder",
    "EnhancedTreeBuilder",
    "summarize_relations",
    "ParentAssignment",
    "find_cycle",
    "iter_nodes",
    "parent_pointers",
    "VIRTUAL_ROOT",
    "DirectedEdge",
    "Relation",
    "TreeNode",
    "URLAggregate",
    "TransitionRankedTreeBuilder",
    "EdgeScorer",
    "aggregate_visits",
    "NavigationEvent",
    "NavigationTracker",
    "TabCreatedEvent",
]
