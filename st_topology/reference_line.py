"""
Reference line: the anchor of an ST coordinate system.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .datatypes import Identifier, Point3D, PolylinePoint, ProjectionResult, require
from .polyline import Polyline
from .projection import DEFAULT_TIE_TOLERANCE, project


class ReferenceLine:
    """Identifier plus an owned polyline of at least two points."""

    def __init__(
        self,
        id: Identifier,
        points: Sequence[PolylinePoint],
        s_tolerance: float = 0.0,
        tie_tolerance: float = DEFAULT_TIE_TOLERANCE,
    ):
        self.id = id
        self.polyline = Polyline(points, s_tolerance=s_tolerance, entity_id=id)
        self.tie_tolerance = tie_tolerance

    @property
    def s_start(self) -> float:
        return self.polyline.s_start

    @property
    def s_end(self) -> float:
        return self.polyline.s_end

    @property
    def points(self) -> List[PolylinePoint]:
        return self.polyline.points

    def contains_s(self, s: float, tol: float = 0.0) -> bool:
        return self.s_start - tol <= s <= self.s_end + tol

    def at(self, s: float) -> Point3D:
        return self.polyline.at(s)

    def world_at(self, s: float, t: float) -> Point3D:
        """World position of (s, t); T runs along the left normal of the segment holding s."""
        return Point3D.from_array(self.polyline.offset_at(s, t))

    def project(self, point: Any) -> ProjectionResult:
        return project(self.polyline, point, tie_tolerance=self.tie_tolerance)

    def __repr__(self) -> str:
        return (
            f"ReferenceLine(id={self.id!r}, points={len(self.polyline)}, "
            f"s=[{self.s_start}, {self.s_end}])"
        )

    @classmethod
    def from_dict(
        cls,
        d: Dict[str, Any],
        s_tolerance: float = 0.0,
        tie_tolerance: float = DEFAULT_TIE_TOLERANCE,
    ) -> ReferenceLine:
        raw = d.get("poly_line", d.get("points", []))
        return cls(
            id=require(d, "id"),
            points=[PolylinePoint.from_dict(p) for p in raw],
            s_tolerance=s_tolerance,
            tie_tolerance=tie_tolerance,
        )
