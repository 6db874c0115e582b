"""Dependency-order resolver for presenting a set of changed code units.

Given a :class:`~reviewgraph_cli.models.ChangeSet`, produce a total order in
which every unit is presented after the units it depends on:

- strongly connected components (mutual dependencies) are kept together
  and reported as cycle groups;
- ties in Kahn's algorithm are broken by layer rank, then fan-out, then
  identifier, so identical input always yields identical output;
- nested units (a function inside a file) are placed directly after their
  parent in a post-pass;
- an explicit order override replaces the computed order for the nodes it
  names, the rest follow in computed order.
"""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import (
    DuplicateNode,
    InternalInvariantViolation,
    InvalidOverride,
    SelfDependency,
    UnknownReference,
)
from .models import ChangeSet, Node, OrderEntry, ResolutionResult

logger = logging.getLogger(__name__)

SortKey = Tuple[int, int, str]


class _Ordering:
    """Intermediate result of ordering one set of nodes."""

    def __init__(self, order: List[str], group_of: Dict[str, int], cycle_groups: List[List[str]]):
        self.order = order
        self.group_of = group_of
        self.cycle_groups = cycle_groups


class DependencyOrderResolver:
    """Orders change-set nodes so that dependencies precede dependents.

    The resolver keeps no state between calls; one instance can serve any
    number of change-sets, from any number of threads.
    """

    def resolve(self, change_set: ChangeSet) -> ResolutionResult:
        """Resolve *change_set* into an ordered result envelope.

        Raises:
            DuplicateNode: a node identifier is repeated.
            UnknownReference: an edge or parent names a missing node.
            SelfDependency: an edge points at its own source, or a node is
                nested inside itself.
            InvalidOverride: the override names unknown or repeated nodes.
            InternalInvariantViolation: cycle condensation left a cycle.
        """
        _validate_nodes(change_set.nodes)
        edges = _validate_edges(change_set)
        override = list(change_set.override or ())

        if not override:
            ordering = self._compute(change_set.nodes, edges)
            logger.debug(
                "Resolved %d nodes into %d cycle group(s)",
                len(ordering.order),
                len(ordering.cycle_groups),
            )
            return ResolutionResult(
                entries=_build_entries(ordering.order, ordering.group_of),
                cycle_groups=ordering.cycle_groups,
            )

        _validate_override(override, {n.node_id for n in change_set.nodes})
        return self._resolve_with_override(change_set.nodes, edges, override)

    # ------------------------------------------------------------------
    # Override handling
    # ------------------------------------------------------------------

    def _resolve_with_override(
        self,
        nodes: Sequence[Node],
        edges: List[Tuple[str, str]],
        override: List[str],
    ) -> ResolutionResult:
        named = set(override)
        rest_nodes = [n for n in nodes if n.node_id not in named]
        rest_edges = [(src, dst) for src, dst in edges if src not in named and dst not in named]
        rest = self._compute(rest_nodes, rest_edges)

        entries = [OrderEntry.single(node_id) for node_id in override]
        entries.extend(_build_entries(rest.order, rest.group_of))
        result = ResolutionResult(
            entries=entries,
            cycle_groups=rest.cycle_groups,
            override_applied=True,
        )

        position = {node_id: i for i, node_id in enumerate(result.order)}
        for src, dst in edges:
            if position[dst] > position[src]:
                result.override_conflicts.append((src, dst))
        for node in nodes:
            if node.parent is not None and position[node.parent] > position[node.node_id]:
                result.nesting_conflicts.append((node.node_id, node.parent))
        result.nesting_conflicts.sort()

        if result.override_conflicts:
            logger.debug(
                "Override places %d dependent(s) before their dependencies",
                len(result.override_conflicts),
            )
        return result

    # ------------------------------------------------------------------
    # Computed order
    # ------------------------------------------------------------------

    def _compute(self, nodes: Sequence[Node], edges: Iterable[Tuple[str, str]]) -> _Ordering:
        ids = sorted(n.node_id for n in nodes)
        rank = {n.node_id: n.layer.rank for n in nodes}
        parent = {n.node_id: n.parent for n in nodes}
        deps: Dict[str, Set[str]] = {node_id: set() for node_id in ids}
        for src, dst in edges:
            deps[src].add(dst)

        components = strongly_connected_components(ids, deps)
        comp_of = {member: idx for idx, comp in enumerate(components) for member in comp}

        comp_deps: List[Set[int]] = [set() for _ in components]
        fan_out = [0] * len(components)
        for src in ids:
            for dst in deps[src]:
                a, b = comp_of[src], comp_of[dst]
                if a == b:
                    continue
                comp_deps[a].add(b)
                fan_out[a] += 1

        keys: List[SortKey] = [
            (min(rank[m] for m in comp), fan_out[idx], min(comp))
            for idx, comp in enumerate(components)
        ]
        comp_order = _kahn(comp_deps, keys)

        order: List[str] = []
        group_of: Dict[str, int] = {}
        cycle_groups: List[List[str]] = []
        for idx in comp_order:
            members = sorted(components[idx], key=lambda m: (rank[m], m))
            if len(members) > 1:
                for member in members:
                    group_of[member] = len(cycle_groups)
                cycle_groups.append(members)
            order.extend(members)

        return _Ordering(_nest(order, parent), group_of, cycle_groups)


def resolve_order(change_set: ChangeSet) -> ResolutionResult:
    """Resolve *change_set* with a default :class:`DependencyOrderResolver`."""
    return DependencyOrderResolver().resolve(change_set)


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def _validate_nodes(nodes: Sequence[Node]) -> None:
    seen: Set[str] = set()
    for node in nodes:
        if node.node_id in seen:
            raise DuplicateNode(
                f"Node '{node.node_id}' appears more than once", identifier=node.node_id
            )
        seen.add(node.node_id)

    for node in nodes:
        if node.parent is None:
            continue
        if node.parent == node.node_id:
            raise SelfDependency(
                f"Node '{node.node_id}' names itself as parent", identifier=node.node_id
            )
        if node.parent not in seen:
            raise UnknownReference(
                f"Node '{node.node_id}' names unknown parent '{node.parent}'",
                identifier=node.parent,
            )

    parent = {n.node_id: n.parent for n in nodes}
    settled: Set[str] = set()
    for start in sorted(parent):
        path: List[str] = []
        current: Optional[str] = start
        while current is not None and current not in settled:
            if current in path:
                raise SelfDependency(
                    f"Node '{current}' is nested inside itself", identifier=current
                )
            path.append(current)
            current = parent[current]
        settled.update(path)


def _validate_edges(change_set: ChangeSet) -> List[Tuple[str, str]]:
    """Check edge endpoints and return the de-duplicated edge list."""
    known = {n.node_id for n in change_set.nodes}
    unique: Set[Tuple[str, str]] = set()
    for edge in change_set.edges:
        for endpoint in (edge.src, edge.dst):
            if endpoint not in known:
                raise UnknownReference(
                    f"Edge {edge.src} -> {edge.dst} references unknown node '{endpoint}'",
                    identifier=endpoint,
                    edge=edge.as_tuple(),
                )
        if edge.src == edge.dst:
            raise SelfDependency(
                f"Node '{edge.src}' cannot depend on itself",
                identifier=edge.src,
                edge=edge.as_tuple(),
            )
        unique.add(edge.as_tuple())
    return sorted(unique)


def _validate_override(override: Sequence[str], known: Set[str]) -> None:
    seen: Set[str] = set()
    for node_id in override:
        if node_id not in known:
            raise InvalidOverride(
                f"Override references unknown node '{node_id}'", identifier=node_id
            )
        if node_id in seen:
            raise InvalidOverride(
                f"Override lists '{node_id}' more than once", identifier=node_id
            )
        seen.add(node_id)


# ----------------------------------------------------------------------
# Graph algorithms
# ----------------------------------------------------------------------

def strongly_connected_components(
    ids: Sequence[str], deps: Dict[str, Set[str]]
) -> List[List[str]]:
    """Tarjan's algorithm, iterative. Each component is returned sorted."""
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    stack: List[str] = []
    on_stack: Set[str] = set()
    components: List[List[str]] = []
    counter = 0

    for root in ids:
        if root in index_of:
            continue
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(sorted(deps[root])))]

        while work:
            node, neighbours = work[-1]
            descended = False
            for nxt in neighbours:
                if nxt not in index_of:
                    index_of[nxt] = lowlink[nxt] = counter
                    counter += 1
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, iter(sorted(deps[nxt]))))
                    descended = True
                    break
                if nxt in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[nxt])
            if descended:
                continue

            work.pop()
            if work:
                caller = work[-1][0]
                lowlink[caller] = min(lowlink[caller], lowlink[node])

            if lowlink[node] == index_of[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def _kahn(comp_deps: List[Set[int]], keys: List[SortKey]) -> List[int]:
    """Topologically sort the condensation, dependencies first."""
    dependents: List[List[int]] = [[] for _ in comp_deps]
    remaining = [0] * len(comp_deps)
    for idx, targets in enumerate(comp_deps):
        if idx in targets:
            raise InternalInvariantViolation(
                f"Condensed component {idx} depends on itself", identifier=str(idx)
            )
        remaining[idx] = len(targets)
        for target in targets:
            dependents[target].append(idx)

    ready = [(keys[idx], idx) for idx, count in enumerate(remaining) if count == 0]
    heapq.heapify(ready)
    ordered: List[int] = []
    while ready:
        _, idx = heapq.heappop(ready)
        ordered.append(idx)
        for dependent in dependents[idx]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, (keys[dependent], dependent))

    if len(ordered) != len(comp_deps):
        stuck = sorted(keys[idx][2] for idx, count in enumerate(remaining) if count > 0)
        raise InternalInvariantViolation(
            f"Condensed graph is not acyclic; unresolved components start at {stuck[:5]}",
            identifier=stuck[0] if stuck else None,
        )
    return ordered


def _nest(order: List[str], parent: Dict[str, Optional[str]]) -> List[str]:
    """Move every child directly after its parent, keeping relative order.

    A parent outside *order* counts as already placed, so its children stay
    at the top level.
    """
    present = set(order)
    roots: List[str] = []
    children: Dict[str, List[str]] = {}
    for node_id in order:
        owner = parent.get(node_id)
        if owner is None or owner not in present:
            roots.append(node_id)
        else:
            children.setdefault(owner, []).append(node_id)

    nested: List[str] = []
    pending = list(reversed(roots))
    while pending:
        node_id = pending.pop()
        nested.append(node_id)
        pending.extend(reversed(children.get(node_id, [])))
    return nested


def _build_entries(order: List[str], group_of: Dict[str, int]) -> List[OrderEntry]:
    """Collapse runs of same-group members into cycle entries."""
    entries: List[OrderEntry] = []
    i = 0
    while i < len(order):
        group = group_of.get(order[i])
        j = i + 1
        if group is not None:
            while j < len(order) and group_of.get(order[j]) == group:
                j += 1
        run = order[i:j]
        if len(run) > 1:
            entries.append(OrderEntry.cycle(run, group))
        else:
            entries.append(OrderEntry.single(run[0], group))
        i = j
    return entries
