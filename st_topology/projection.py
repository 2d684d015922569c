"""
ST projection of world points onto a reference polyline.

The nearest point is searched in 3D over every segment, the first and last
segments being extended infinitely. Ties within `tie_tolerance` resolve to
the smallest S; a nearest point on a vertex takes the heading of the
following segment. T is the signed XY distance, positive to the left.
"""

from __future__ import annotations

import math
from typing import Any, Union

import numpy as np

from .datatypes import Point3D, ProjectionResult
from .polyline import Polyline

DEFAULT_TIE_TOLERANCE = 1e-9


def _as_polyline(line: Any) -> Polyline:
    if isinstance(line, Polyline):
        return line
    return line.polyline


def project(
    line: Union[Polyline, Any],
    world_point: Any,
    tie_tolerance: float = DEFAULT_TIE_TOLERANCE,
) -> ProjectionResult:
    """
    Project `world_point` onto `line` (a Polyline or anything exposing `.polyline`).

    O(n) in the number of points; all segments are evaluated at once.
    """
    poly = _as_polyline(line)
    w = Point3D.coerce(world_point).as_array()

    xyz = poly.xyz
    s = poly.s_values
    n_seg = len(s) - 1

    p0 = xyz[:-1]
    d = xyz[1:] - p0
    len_sq = np.einsum("ij,ij->i", d, d)
    seg_len = np.sqrt(len_sq)
    safe = np.where(len_sq > 0.0, len_sq, 1.0)
    u = np.where(len_sq > 0.0, np.einsum("ij,ij->i", w - p0, d) / safe, 0.0)

    # only the first segment extends backwards, only the last forwards
    lo = np.zeros(n_seg)
    hi = np.ones(n_seg)
    lo[0] = -np.inf
    hi[-1] = np.inf
    u = np.clip(u, lo, hi)

    # snap onto vertices so shared vertices yield identical S on both segments
    u = np.where(np.abs(u) * seg_len <= tie_tolerance, 0.0, u)
    u = np.where(np.abs(u - 1.0) * seg_len <= tie_tolerance, 1.0, u)

    nearest = p0 + u[:, None] * d
    dist = np.linalg.norm(w - nearest, axis=1)

    ds = np.diff(s)
    d2 = np.hypot(d[:, 0], d[:, 1])
    ext = np.where(d2 > 0.0, d2, ds)
    seg_s = np.where(
        u <= 0.0,
        s[:-1] + np.minimum(u, 0.0) * ext,
        np.where(u >= 1.0, s[1:] + np.maximum(u - 1.0, 0.0) * ext, s[:-1] + u * ds),
    )

    best_dist = float(dist.min())
    tied = np.flatnonzero(dist <= best_dist + tie_tolerance)
    best_s = float(seg_s[tied].min())
    # among candidates at that S (a shared vertex) prefer the following segment
    idx = int(tied[seg_s[tied] == best_s].max())
    # degenerate segments have no heading; use the next one that has
    head = poly.heading_segment(idx)

    c = nearest[idx]
    dx = float(d[head, 0])
    dy = float(d[head, 1])
    rx = float(w[0] - c[0])
    ry = float(w[1] - c[1])
    cross = dx * ry - dy * rx
    dist_2d = math.hypot(rx, ry)
    t = dist_2d if cross >= 0.0 else -dist_2d

    return ProjectionResult(
        s=best_s,
        t=t,
        tangent_angle=math.atan2(dy, dx),
        segment_index=head,
        nearest=Point3D.from_array(c),
    )
