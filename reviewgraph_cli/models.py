"""Core data models shared by the resolver, scanner, loaders and exporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class LayerHint(str, Enum):
    """Architectural layer of a reviewable unit, used only to break ties."""

    DATA_STRUCTURE = "data-structure"
    CONFIG = "config"
    UTILITY = "utility"
    DATA_ACCESS = "data-access"
    BUSINESS_LOGIC = "business-logic"
    ORCHESTRATION = "orchestration"
    ENTRY_POINT = "entry-point"
    TEST = "test"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return _LAYER_ORDER.index(self)

    @classmethod
    def parse(cls, value: str) -> "LayerHint":
        normalized = value.strip().lower().replace("_", "-").replace(" ", "-")
        return cls(normalized)


_LAYER_ORDER: List[LayerHint] = list(LayerHint)


@dataclass(frozen=True)
class Node:
    node_id: str
    parent: Optional[str] = None
    layer: LayerHint = LayerHint.UNKNOWN


@dataclass(frozen=True)
class Edge:
    """``src`` depends on ``dst``."""

    src: str
    dst: str

    def as_tuple(self) -> Tuple[str, str]:
        return (self.src, self.dst)


@dataclass(frozen=True)
class ChangeSet:
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...] = ()
    override: Optional[Tuple[str, ...]] = None

    @classmethod
    def build(
        cls,
        nodes: Sequence[Node],
        edges: Sequence[Edge] = (),
        override: Optional[Sequence[str]] = None,
    ) -> "ChangeSet":
        return cls(
            nodes=tuple(nodes),
            edges=tuple(edges),
            override=tuple(override) if override is not None else None,
        )

    @property
    def node_ids(self) -> List[str]:
        return [n.node_id for n in self.nodes]

    def with_override(self, override: Optional[Sequence[str]]) -> "ChangeSet":
        return ChangeSet.build(self.nodes, self.edges, override)


@dataclass(frozen=True)
class OrderEntry:
    """One presentation slot: a single node or a mutually dependent group."""

    kind: str
    members: Tuple[str, ...]
    group: Optional[int] = None

    NODE = "node"
    CYCLE = "cycle"

    @property
    def is_cycle(self) -> bool:
        return self.kind == self.CYCLE

    @classmethod
    def single(cls, node_id: str, group: Optional[int] = None) -> "OrderEntry":
        return cls(kind=cls.NODE, members=(node_id,), group=group)

    @classmethod
    def cycle(cls, members: Sequence[str], group: int) -> "OrderEntry":
        return cls(kind=cls.CYCLE, members=tuple(members), group=group)


@dataclass
class ResolutionResult:
    entries: List[OrderEntry]
    cycle_groups: List[List[str]] = field(default_factory=list)
    override_applied: bool = False
    override_conflicts: List[Tuple[str, str]] = field(default_factory=list)
    nesting_conflicts: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def order(self) -> List[str]:
        return [node_id for entry in self.entries for node_id in entry.members]

    @property
    def override_contradicts_dependencies(self) -> bool:
        return bool(self.override_conflicts)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycle_groups)
