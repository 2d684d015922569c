"""
Logical lane boundary: an ST-anchored polyline tied to one reference line.

S along the boundary is non-decreasing; repeated S values model a sudden
width change at a fixed S. Queries never extrapolate beyond the boundary's
own S range.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .datatypes import (
    BoundaryPoint,
    ExternalReference,
    Identifier,
    PassingRule,
    Point3D,
    require,
)
from .errors import OutOfRange, OutOfSequence


@dataclass(frozen=True)
class LogicalLaneBoundary:
    id: Identifier
    boundary_line: Tuple[BoundaryPoint, ...]
    reference_line_id: Identifier
    physical_boundary_ids: Tuple[Identifier, ...] = ()
    passing_rule: PassingRule = PassingRule.UNKNOWN
    source_references: Tuple[ExternalReference, ...] = ()
    _s: List[float] = field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "boundary_line", tuple(self.boundary_line))
        object.__setattr__(self, "physical_boundary_ids", tuple(self.physical_boundary_ids))
        object.__setattr__(self, "source_references", tuple(self.source_references))
        if len(self.boundary_line) < 2:
            raise OutOfSequence(
                f"need at least 2 boundary points, got {len(self.boundary_line)}", self.id
            )
        object.__setattr__(self, "_s", [p.s for p in self.boundary_line])

    @property
    def s_start(self) -> float:
        return self._s[0]

    @property
    def s_end(self) -> float:
        return self._s[-1]

    @property
    def first_point(self) -> Point3D:
        return self.boundary_line[0].position

    @property
    def last_point(self) -> Point3D:
        return self.boundary_line[-1].position

    def covers(self, s: float) -> bool:
        return self.s_start <= s <= self.s_end

    def _bracket(self, s: float) -> Tuple[BoundaryPoint, BoundaryPoint, float]:
        if not self.covers(s):
            raise OutOfRange(self.id, s, (self.s_start, self.s_end))
        n = len(self._s)
        # greatest point with s_i <= s; at a vertical jump this is the later point
        i = min(bisect.bisect_right(self._s, s) - 1, n - 2)
        a = self.boundary_line[i]
        b = self.boundary_line[i + 1]
        span = b.s - a.s
        if span <= 0.0:
            return a, b, 1.0
        return a, b, (s - a.s) / span

    def t_at(self, s: float) -> float:
        a, b, frac = self._bracket(s)
        return a.t + frac * (b.t - a.t)

    def point_at(self, s: float) -> Point3D:
        a, b, frac = self._bracket(s)
        pa = a.position
        pb = b.position
        return Point3D(
            pa.x + frac * (pb.x - pa.x),
            pa.y + frac * (pb.y - pa.y),
            pa.z + frac * (pb.z - pa.z),
        )

    def width_at(self, other_boundary: LogicalLaneBoundary, s: float) -> float:
        """Absolute T distance between this boundary and `other_boundary` at s."""
        return abs(self.t_at(s) - other_boundary.t_at(s))

    def is_s_non_decreasing(self) -> bool:
        return all(b >= a for a, b in zip(self._s, self._s[1:]))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> LogicalLaneBoundary:
        return cls(
            id=require(d, "id"),
            boundary_line=[BoundaryPoint.from_dict(p) for p in d.get("boundary_line", [])],
            reference_line_id=require(d, "reference_line_id"),
            physical_boundary_ids=list(d.get("physical_boundary_id", d.get("physical_boundary_ids", []))),
            passing_rule=PassingRule.parse(d.get("passing_rule", PassingRule.UNKNOWN)),
            source_references=[ExternalReference.from_dict(r) for r in d.get("source_reference", [])],
        )


def chain_member_at(
    chain: Sequence[LogicalLaneBoundary], s: float
) -> Optional[LogicalLaneBoundary]:
    """Boundary of a chain covering s; at a shared endpoint the later one wins."""
    found = None
    for b in chain:
        if b.covers(s):
            found = b
    return found
