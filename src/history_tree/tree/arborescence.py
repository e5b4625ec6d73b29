"""Maximum-weight spanning arborescence over scored URL edges.

``ArborescenceSolver`` runs Chu-Liu/Edmonds with cycle contraction.
``greedy_resolve`` is the cheaper fallback: keep each node's best edge
and, while a cycle exists, move its weakest member to the next
candidate.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass

from history_tree.tree.forest import find_all_cycles, find_cycle
from history_tree.tree.models import VIRTUAL_ROOT, DirectedEdge

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Arc:
    source: Hashable
    target: Hashable
    weight: float
    base: _Arc | None = None


class _Supernode:
    """Contracted cycle; compared by identity."""

    def __init__(self, members: list):
        self.members = members

    def __repr__(self) -> str:
        return f"<cycle {self.members!r}>"


class ArborescenceSolver:
    """Chu-Liu/Edmonds maximum spanning arborescence.

    Args:
        contract_cycles: When False, ``solve`` returns None as soon as the
            best-incoming selection contains a cycle so the caller can
            fall back to ``greedy_resolve``.
    """

    def __init__(self, contract_cycles: bool = True):
        self.contract_cycles = contract_cycles

    def solve(self, root: Hashable, nodes: Iterable[Hashable], edges: Iterable[DirectedEdge]) -> dict | None:
        """Return ``node -> parent`` for every reachable non-root node.

        Nodes without any incoming edge are left out of the map; callers
        treat them as forest roots. Returns None only when cycle
        contraction is disabled and a cycle was found.
        """
        nodes = [n for n in dict.fromkeys(nodes) if n != root]
        node_set = set(nodes)
        arcs = [
            _Arc(e.source, e.target, e.weight)
            for e in edges
            if e.target in node_set and (e.source in node_set or e.source == root)
            and e.source != e.target
        ]

        if not self.contract_cycles:
            best = _best_incoming(root, arcs)
            parents = {v: arc.source for v, arc in best.items()}
            if find_cycle(parents, nodes) is not None:
                logger.debug("Best-incoming selection has a cycle; fallback required")
                return None
            return parents

        chosen = _edmonds(root, nodes, arcs)
        return {v: arc.source for v, arc in chosen.items()}


def _best_incoming(root, arcs: list[_Arc]) -> dict:
    best: dict = {}
    for arc in arcs:
        if arc.target == root or arc.source == arc.target:
            continue
        current = best.get(arc.target)
        if current is None or arc.weight > current.weight:
            best[arc.target] = arc
    return best


def _edmonds(root, nodes: list, arcs: list[_Arc]) -> dict:
    best = _best_incoming(root, arcs)
    cycles = find_all_cycles({v: a.source for v, a in best.items()}, nodes)
    if not cycles:
        return best

    owner: dict = {}
    supernodes = []
    for cycle in cycles:
        supernode = _Supernode(cycle)
        supernodes.append(supernode)
        for member in cycle:
            owner[member] = supernode

    contracted = []
    for arc in arcs:
        source = owner.get(arc.source, arc.source)
        target = owner.get(arc.target, arc.target)
        if source == target:
            continue
        weight = arc.weight - best[arc.target].weight if arc.target in owner else arc.weight
        contracted.append(_Arc(source, target, weight, base=arc))

    reduced_nodes = [n for n in nodes if n not in owner] + supernodes
    sub = _edmonds(root, reduced_nodes, contracted)

    result: dict = {}
    for v, arc in sub.items():
        level_arc = arc.base
        if isinstance(v, _Supernode):
            result[level_arc.target] = level_arc
        else:
            result[v] = level_arc

    for supernode in supernodes:
        members = supernode.members
        if supernode not in sub:
            # Nothing enters the cycle: open it at its weakest arc.
            weakest = min(members, key=lambda m: best[m].weight)
            logger.debug("Cycle %r unreachable from root; dropping arc into %r", members, weakest)
            for member in members:
                if member != weakest:
                    result[member] = best[member]
            continue
        for member in members:
            result.setdefault(member, best[member])
    return result


def greedy_resolve(nodes: Iterable[Hashable], incoming: Mapping[Hashable, list[DirectedEdge]]) -> dict:
    """Cycle-free parent map by repeatedly demoting the weakest cycle edge.

    ``incoming`` lists each node's candidate edges best first. A node
    whose candidates run out is attached to ``VIRTUAL_ROOT``, which never
    takes part in a cycle, so the loop terminates.
    """
    nodes = list(dict.fromkeys(nodes))
    choice: dict = {}
    position: dict = {}
    for node in nodes:
        candidates = incoming.get(node) or []
        if candidates:
            choice[node] = candidates[0]
            position[node] = 0

    def parents() -> dict:
        return {node: edge.source for node, edge in choice.items()}

    rounds = 0
    cycle = find_cycle(parents(), nodes)
    while cycle:
        weakest = min(cycle, key=lambda n: choice[n].weight)
        candidates = incoming.get(weakest) or []
        nxt = position[weakest] + 1
        if nxt < len(candidates):
            position[weakest] = nxt
            choice[weakest] = candidates[nxt]
        else:
            del choice[weakest]
            del position[weakest]
        rounds += 1
        cycle = find_cycle(parents(), nodes)

    if rounds:
        logger.debug("Greedy resolver broke cycles in %d rounds", rounds)
    return {node: choice[node].source if node in choice else VIRTUAL_ROOT for node in nodes}
