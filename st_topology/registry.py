"""
Per-snapshot entity registry.

Entities live in arenas (tuples in input order); Identifier lookups go
through id -> index maps. The first entity with a given id wins the lookup,
later duplicates stay in the arena so the validator can report them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, FrozenSet, Generic, Iterable, Optional, Tuple, TypeVar

from .datatypes import Identifier
from .errors import UnresolvedReference

if TYPE_CHECKING:
    from .boundary import LogicalLaneBoundary
    from .lane import LogicalLane
    from .reference_line import ReferenceLine


T = TypeVar("T")


class Arena(Generic[T]):
    """Ordered, read-only store of one entity kind."""

    def __init__(self, kind: str, items: Iterable[T]):
        self.kind = kind
        self.items: Tuple[T, ...] = tuple(items)
        index: Dict[Identifier, int] = {}
        for i, item in enumerate(self.items):
            index.setdefault(item.id, i)  # type: ignore[attr-defined]
        self._index = index

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __contains__(self, id: Identifier) -> bool:
        return id in self._index

    def index_of(self, id: Identifier) -> int:
        try:
            return self._index[id]
        except KeyError:
            raise UnresolvedReference(self.kind, id) from None

    def get(self, id: Identifier, referrer: Optional[Identifier] = None) -> T:
        try:
            return self.items[self._index[id]]
        except KeyError:
            raise UnresolvedReference(self.kind, id, referrer) from None


class Registry:
    """Identifier -> entity lookup for one snapshot. Not shared across snapshots."""

    def __init__(
        self,
        reference_lines: Iterable["ReferenceLine"] = (),
        boundaries: Iterable["LogicalLaneBoundary"] = (),
        lanes: Iterable["LogicalLane"] = (),
        physical_boundary_ids: Optional[Iterable[Identifier]] = None,
        physical_lane_ids: Optional[Iterable[Identifier]] = None,
    ):
        self.reference_lines: Arena["ReferenceLine"] = Arena("reference_line", reference_lines)
        self.boundaries: Arena["LogicalLaneBoundary"] = Arena("logical_lane_boundary", boundaries)
        self.lanes: Arena["LogicalLane"] = Arena("logical_lane", lanes)
        # physical entities are external; None means "not known, do not check"
        self.physical_boundary_ids: Optional[FrozenSet[Identifier]] = (
            frozenset(physical_boundary_ids) if physical_boundary_ids is not None else None
        )
        self.physical_lane_ids: Optional[FrozenSet[Identifier]] = (
            frozenset(physical_lane_ids) if physical_lane_ids is not None else None
        )

    def reference_line(self, id: Identifier, referrer: Optional[Identifier] = None) -> "ReferenceLine":
        return self.reference_lines.get(id, referrer)

    def boundary(self, id: Identifier, referrer: Optional[Identifier] = None) -> "LogicalLaneBoundary":
        return self.boundaries.get(id, referrer)

    def lane(self, id: Identifier, referrer: Optional[Identifier] = None) -> "LogicalLane":
        return self.lanes.get(id, referrer)
