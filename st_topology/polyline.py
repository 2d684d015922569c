"""
Polyline core: ordered 3D points with strictly increasing S.

Between two points both the world position and S are interpolated linearly.
Outside [s_start, s_end] the first and last segments are extended, with S
measured as 2D (XY) distance from the respective endpoint.
"""

from __future__ import annotations

import bisect
import math
from typing import Any, List, Optional, Sequence

import numpy as np

from .datatypes import Point3D, PolylinePoint
from .errors import NonMonotonicInput, OutOfSequence


class Polyline:
    """Immutable S-parametrized polyline."""

    def __init__(
        self,
        points: Sequence[PolylinePoint],
        s_tolerance: float = 0.0,
        entity_id: Any = None,
    ):
        if len(points) < 2:
            raise OutOfSequence(f"need at least 2 points, got {len(points)}", entity_id)

        xyz = np.array(
            [[p.position.x, p.position.y, p.position.z] for p in points],
            dtype=np.float64,
        )
        s = np.array([p.s for p in points], dtype=np.float64)

        ds = np.diff(s)
        d2 = np.hypot(np.diff(xyz[:, 0]), np.diff(xyz[:, 1]))
        for i in range(len(ds)):
            if not ds[i] > 0.0:
                raise NonMonotonicInput(
                    f"s not strictly increasing at point {i + 1} ({s[i]} -> {s[i + 1]})",
                    entity_id,
                )
            if ds[i] + s_tolerance < d2[i]:
                raise NonMonotonicInput(
                    f"s delta {ds[i]:.9g} smaller than 2D distance {d2[i]:.9g} "
                    f"between points {i} and {i + 1}",
                    entity_id,
                )

        xyz.setflags(write=False)
        s.setflags(write=False)
        self._xyz = xyz
        self._s = s
        self._s_list: List[float] = s.tolist()
        self._d2 = d2

    @property
    def xyz(self) -> np.ndarray:
        """(N, 3) read-only array of positions."""
        return self._xyz

    @property
    def s_values(self) -> np.ndarray:
        return self._s

    @property
    def s_start(self) -> float:
        return self._s_list[0]

    @property
    def s_end(self) -> float:
        return self._s_list[-1]

    def __len__(self) -> int:
        return len(self._s_list)

    @property
    def points(self) -> List[PolylinePoint]:
        return [
            PolylinePoint(Point3D.from_array(p), s)
            for p, s in zip(self._xyz, self._s_list)
        ]

    def segment_index(self, s: float) -> int:
        """Index i of the segment [i, i+1] used for S; extensions map to the end segments."""
        i = bisect.bisect_right(self._s_list, s) - 1
        return min(max(i, 0), len(self._s_list) - 2)

    def extension_step(self, i: int) -> np.ndarray:
        """Displacement per unit S along the extension of end segment i."""
        delta = self._xyz[i + 1] - self._xyz[i]
        length = self._d2[i]
        if length > 0.0:
            return delta / length
        # purely vertical segment: no XY direction, fall back to S scaling
        return delta / (self._s_list[i + 1] - self._s_list[i])

    def at_array(self, s: float) -> np.ndarray:
        i = self.segment_index(s)
        s0 = self._s_list[i]
        s1 = self._s_list[i + 1]
        if s < self.s_start:
            return self._xyz[0] + (s - s0) * self.extension_step(0)
        if s > self.s_end:
            return self._xyz[-1] + (s - s1) * self.extension_step(i)
        frac = (s - s0) / (s1 - s0)
        return self._xyz[i] + frac * (self._xyz[i + 1] - self._xyz[i])

    def at(self, s: float) -> Point3D:
        """Position at parameter s, extrapolating linearly outside [s_start, s_end]."""
        return Point3D.from_array(self.at_array(float(s)))

    def heading(self, i: int) -> float:
        """XY heading of segment i."""
        d = self._xyz[i + 1] - self._xyz[i]
        return math.atan2(float(d[1]), float(d[0]))

    def heading_segment(self, i: int) -> int:
        """Segment i, or the nearest one after (then before) it that has an XY extent."""
        n = len(self._d2)
        for j in list(range(i, n)) + list(range(i - 1, -1, -1)):
            if self._d2[j] > 0.0:
                return j
        return i

    def offset_at(self, s: float, t: float) -> np.ndarray:
        """Position at S moved by T along the left XY normal of the segment holding S."""
        h = self.heading(self.heading_segment(self.segment_index(s)))
        return self.at_array(float(s)) + t * np.array([-math.sin(h), math.cos(h), 0.0])

    def length_2d(self) -> float:
        return float(np.sum(self._d2))

    @classmethod
    def from_arrays(
        cls,
        xyz: Sequence[Sequence[float]],
        s: Optional[Sequence[float]] = None,
        s_tolerance: float = 0.0,
        entity_id: Any = None,
    ) -> Polyline:
        """Build from raw coordinates; S defaults to cumulative 2D length."""
        arr = np.asarray(xyz, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise OutOfSequence("coordinates must be of shape (N, 2) or (N, 3)", entity_id)
        if arr.shape[1] == 2:
            arr = np.column_stack([arr, np.zeros(arr.shape[0])])
        if s is None:
            s = cumulative_s(arr)
        pts = [PolylinePoint(Point3D.from_array(p), float(v)) for p, v in zip(arr, s)]
        return cls(pts, s_tolerance=s_tolerance, entity_id=entity_id)


def cumulative_s(xyz: np.ndarray, s0: float = 0.0) -> List[float]:
    """
    Cumulative 2D arc length starting at s0.

    Each value is nudged up until its delta is not below the segment's 2D
    length after rounding, so the result always satisfies the S-delta rule.
    """
    out = [float(s0)]
    for i in range(1, len(xyz)):
        d = math.hypot(xyz[i][0] - xyz[i - 1][0], xyz[i][1] - xyz[i - 1][1])
        nxt = out[-1] + d
        while nxt - out[-1] < d:
            nxt = float(np.nextafter(nxt, math.inf))
        out.append(nxt)
    return out
