"""Data models for reconstructed navigation trees."""

from __future__ import annotations

from dataclasses import dataclass, field

from history_tree.history.models import Visit

# Synthetic parent of every forest root in a ParentMap.
VIRTUAL_ROOT = "__ROOT__"


@dataclass(frozen=True)
class Relation:
    """Why a node sits under its parent."""

    relation_type: str
    confidence: float
    parent_key: str | None = None
    details: dict = field(default_factory=dict, compare=False)


@dataclass
class TreeNode:
    """One node of a reconstructed forest.

    Wraps either a single visit (``visit_id`` set) or a URL aggregate.
    Children are ordered newest first unless a builder documents
    otherwise.
    """

    url: str
    title: str
    visit_time: int
    favicon: str = ""
    children: list[TreeNode] = field(default_factory=list)
    visit_id: str | None = None
    transition: str = ""
    visit_count: int = 1
    first_visit_time: int | None = None
    last_visit_time: int | None = None
    merged_visit_ids: list[str] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)
    is_generated: bool = False

    @property
    def key(self) -> str:
        return self.visit_id if self.visit_id is not None else self.url

    @classmethod
    def from_visit(cls, visit: Visit) -> TreeNode:
        return cls(
            url=visit.url,
            title=visit.title,
            visit_time=visit.visit_time,
            favicon=visit.favicon,
            visit_id=visit.visit_id,
            transition=visit.transition,
        )

    @classmethod
    def from_aggregate(cls, aggregate: URLAggregate) -> TreeNode:
        return cls(
            url=aggregate.url,
            title=aggregate.title,
            visit_time=aggregate.last_visit_time,
            favicon=aggregate.favicon,
            visit_count=aggregate.visit_count,
            first_visit_time=aggregate.first_visit_time,
            last_visit_time=aggregate.last_visit_time,
        )

    def to_dict(self) -> dict:
        """Plain-dict form for renderers and JSON output."""
        data = {
            "url": self.url,
            "title": self.title,
            "visit_time": self.visit_time,
            "favicon": self.favicon,
            "visit_id": self.visit_id,
            "transition": self.transition,
            "visit_count": self.visit_count,
            "children": [child.to_dict() for child in self.children],
        }
        if self.first_visit_time is not None:
            data["first_visit_time"] = self.first_visit_time
            data["last_visit_time"] = self.last_visit_time
        if self.merged_visit_ids:
            data["merged_visit_ids"] = list(self.merged_visit_ids)
        if self.relations:
            data["relations"] = [
                {"type": r.relation_type, "confidence": r.confidence, "parent": r.parent_key}
                for r in self.relations
            ]
        if self.is_generated:
            data["is_generated"] = True
        return data


@dataclass
class URLAggregate:
    """All visits sharing one URL."""

    url: str
    title: str
    favicon: str
    visits: list[Visit] = field(default_factory=list)
    first_visit_time: int = 0
    last_visit_time: int = 0
    visit_count: int = 0

    def add(self, visit: Visit) -> None:
        if not self.visits:
            self.first_visit_time = visit.visit_time
            self.last_visit_time = visit.visit_time
        self.visits.append(visit)
        self.visit_count += 1
        self.first_visit_time = min(self.first_visit_time, visit.visit_time)
        self.last_visit_time = max(self.last_visit_time, visit.visit_time)


@dataclass
class EdgeEvidence:
    """Observed referrer transitions between two URLs."""

    count: int = 0
    first_time: int = 0
    last_time: int = 0

    def observe(self, visit_time: int) -> None:
        if self.count == 0:
            self.first_time = visit_time
            self.last_time = visit_time
        self.count += 1
        self.first_time = min(self.first_time, visit_time)
        self.last_time = max(self.last_time, visit_time)


@dataclass(frozen=True)
class DirectedEdge:
    """Scored candidate parent edge ``source -> target``."""

    source: str
    target: str
    weight: float
    evidence: EdgeEvidence | None = None
    inferred: bool = False

    @property
    def count(self) -> int:
        return self.evidence.count if self.evidence else 0
