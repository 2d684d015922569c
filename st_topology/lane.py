"""
Logical lane: an S range on a reference line bounded by boundary chains.

Lanes reference boundaries, reference lines and other lanes only by
Identifier. The registry of the owning snapshot resolves them on access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .boundary import LogicalLaneBoundary, chain_member_at
from .datatypes import (
    ExternalReference,
    Identifier,
    LaneConnection,
    LaneEnd,
    LaneRelation,
    LaneSubtype,
    PassingRule,
    Point3D,
    Side,
    require,
)
from .errors import OutOfRange, TopologyError

if TYPE_CHECKING:
    from .reference_line import ReferenceLine
    from .registry import Registry


@dataclass(frozen=True)
class LogicalLane:
    id: Identifier
    reference_line_id: Identifier
    start_s: float
    end_s: float
    reference_line_is_driving_direction: bool = True
    type: LaneSubtype = LaneSubtype.UNKNOWN
    physical_lane_id: Optional[Identifier] = None
    right_adjacent_lanes: Tuple[LaneRelation, ...] = ()
    left_adjacent_lanes: Tuple[LaneRelation, ...] = ()
    overlapping_lanes: Tuple[LaneRelation, ...] = ()
    right_boundary_ids: Tuple[Identifier, ...] = ()
    left_boundary_ids: Tuple[Identifier, ...] = ()
    predecessor_lanes: Tuple[LaneConnection, ...] = ()
    successor_lanes: Tuple[LaneConnection, ...] = ()
    source_references: Tuple[ExternalReference, ...] = ()
    registry: Optional["Registry"] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in (
            "right_adjacent_lanes",
            "left_adjacent_lanes",
            "overlapping_lanes",
            "right_boundary_ids",
            "left_boundary_ids",
            "predecessor_lanes",
            "successor_lanes",
            "source_references",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def _registry(self) -> "Registry":
        if self.registry is None:
            raise TopologyError(f"lane {self.id!r} is not bound to a snapshot")
        return self.registry

    # -- accessors --

    @property
    def reference_line(self) -> "ReferenceLine":
        return self._registry().reference_line(self.reference_line_id, self.id)

    def boundary_ids(self, side: Side) -> Tuple[Identifier, ...]:
        return self.left_boundary_ids if side is Side.LEFT else self.right_boundary_ids

    def boundary_chain(self, side: Side) -> Tuple[LogicalLaneBoundary, ...]:
        reg = self._registry()
        return tuple(reg.boundary(bid, self.id) for bid in self.boundary_ids(side))

    def adjacent(self, side: Side) -> Tuple[LaneRelation, ...]:
        return self.left_adjacent_lanes if side is Side.LEFT else self.right_adjacent_lanes

    def overlapping(self) -> Tuple[LaneRelation, ...]:
        return self.overlapping_lanes

    def connections(self, end: LaneEnd) -> Tuple[LaneConnection, ...]:
        """Predecessors meet the lane at start_s, successors at end_s."""
        return self.predecessor_lanes if end is LaneEnd.START else self.successor_lanes

    def next_lanes(self) -> Tuple[LaneConnection, ...]:
        """Connections ahead in driving direction."""
        if self.reference_line_is_driving_direction:
            return self.successor_lanes
        return self.predecessor_lanes

    def previous_lanes(self) -> Tuple[LaneConnection, ...]:
        if self.reference_line_is_driving_direction:
            return self.predecessor_lanes
        return self.successor_lanes

    # -- derived queries --

    def contains_s(self, s: float) -> bool:
        return self.start_s <= s <= self.end_s

    def _check_s(self, s: float) -> None:
        if not self.contains_s(s):
            raise OutOfRange(self.id, s, (self.start_s, self.end_s))

    def boundary_at(self, side: Side, s: float) -> LogicalLaneBoundary:
        self._check_s(s)
        chain = self.boundary_chain(side)
        member = chain_member_at(chain, s)
        if member is None:
            raise OutOfRange(self.id, s, _chain_domain(chain, (self.start_s, self.end_s)))
        return member

    def passing_rule_at(self, side: Side, s: float) -> PassingRule:
        return self.boundary_at(side, s).passing_rule

    def width_at(self, s: float) -> float:
        left = self.boundary_at(Side.LEFT, s)
        right = self.boundary_at(Side.RIGHT, s)
        return left.width_at(right, s)

    def centerline_at(self, s: float) -> Point3D:
        """Midpoint between the left and right boundary positions at s."""
        pl = self.boundary_at(Side.LEFT, s).point_at(s)
        pr = self.boundary_at(Side.RIGHT, s).point_at(s)
        return Point3D(
            0.5 * (pl.x + pr.x),
            0.5 * (pl.y + pr.y),
            0.5 * (pl.z + pr.z),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> LogicalLane:
        return cls(
            id=require(d, "id"),
            reference_line_id=require(d, "reference_line_id"),
            start_s=float(d.get("start_s", 0)),
            end_s=float(d.get("end_s", 0)),
            reference_line_is_driving_direction=bool(
                d.get("reference_line_is_driving_direction", True)
            ),
            type=LaneSubtype.parse(d.get("type", LaneSubtype.UNKNOWN)),
            physical_lane_id=d.get("physical_lane_id"),
            right_adjacent_lanes=[LaneRelation.from_dict(r) for r in d.get("right_adjacent_lane", [])],
            left_adjacent_lanes=[LaneRelation.from_dict(r) for r in d.get("left_adjacent_lane", [])],
            overlapping_lanes=[LaneRelation.from_dict(r) for r in d.get("overlapping_lane", [])],
            right_boundary_ids=list(d.get("right_boundary_id", [])),
            left_boundary_ids=list(d.get("left_boundary_id", [])),
            predecessor_lanes=[LaneConnection.from_dict(c) for c in d.get("predecessor_lane", [])],
            successor_lanes=[LaneConnection.from_dict(c) for c in d.get("successor_lane", [])],
            source_references=[ExternalReference.from_dict(r) for r in d.get("source_reference", [])],
        )


def _chain_domain(chain, default: Tuple[float, float]) -> Tuple[float, float]:
    if not chain:
        return default
    return (min(b.s_start for b in chain), max(b.s_end for b in chain))
