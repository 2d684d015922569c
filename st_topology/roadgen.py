"""
Synthetic road scenes: a reference line, parallel lanes and their boundaries.

Shapes follow the usual test tracks (tangent, horizontal_curve, s_curve,
hairpin, roundabout). The reference line starts at (0, 0) heading +x.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .config import TopologyConfig
from .datatypes import PassingRule
from .polyline import cumulative_s
from .snapshot import Snapshot


Point = Tuple[float, float]


@dataclass
class RoadSpec:
    """Road shape, lane layout and sampling of a generated scene."""

    shape: str
    length_m: float = 120.0  # tangent
    radius_m: float = 30.0   # horizontal_curve, hairpin (at least 8 m)
    angle_deg: float = 90.0  # horizontal_curve, hairpin (at least 150 deg)
    roundabout_radius_m: float = 25.0
    s_curve_radius_m: float = 35.0
    s_curve_angle_deg: float = 45.0
    grade: float = 0.0       # dz/ds
    lane_width_m: float = 3.5
    lanes_left: int = 1
    lanes_right: int = 1
    sections: int = 1        # longitudinal lane sections
    density: int = 1         # reference points multiplier

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> RoadSpec:
        return cls(
            shape=str(d.get("shape", "tangent")),
            length_m=float(d.get("length_m", 120.0)),
            radius_m=float(d.get("radius_m", 30.0)),
            angle_deg=float(d.get("angle_deg", 90.0)),
            roundabout_radius_m=float(d.get("roundabout_radius_m", 25.0)),
            s_curve_radius_m=float(d.get("s_curve_radius_m", 35.0)),
            s_curve_angle_deg=float(d.get("s_curve_angle_deg", 45.0)),
            grade=float(d.get("grade", 0.0)),
            lane_width_m=float(d.get("lane_width_m", 3.5)),
            lanes_left=int(d.get("lanes_left", 1)),
            lanes_right=int(d.get("lanes_right", 1)),
            sections=int(d.get("sections", 1)),
            density=int(d.get("density", 1)),
        )


def _arc(center: Point, r: float, a0: float, sweep: float, n: int) -> np.ndarray:
    """n points on the circle (center, r) from angle a0 through `sweep` radians, ccw positive."""
    a = a0 + sweep * np.linspace(0.0, 1.0, max(2, n))
    return np.column_stack([center[0] + r * np.cos(a), center[1] + r * np.sin(a)])


def _left_turn(r: float, sweep: float, n: int) -> np.ndarray:
    # circle touching the x axis at the origin
    return _arc((0.0, r), r, -math.pi / 2, sweep, n)


def centerline(spec: RoadSpec, density: Optional[int] = None) -> np.ndarray:
    """
    (N, 2) XY centerline in world meters, leaving the origin along +x.

    `density` multiplies the default point count; large values sample the
    ideal curve densely.
    """
    k = max(1, density if density is not None else spec.density)
    shape = spec.shape.lower()
    if shape == "tangent":
        n = max(50, int(spec.length_m * 2)) * k
        return np.column_stack([np.linspace(0.0, spec.length_m, n), np.zeros(n)])
    if shape == "horizontal_curve":
        return _left_turn(spec.radius_m, math.radians(spec.angle_deg), 200 * k)
    if shape == "hairpin":
        sweep = math.radians(max(150.0, spec.angle_deg))
        return _left_turn(max(8.0, spec.radius_m), sweep, 260 * k)
    if shape == "s_curve":
        r = spec.s_curve_radius_m
        ang = math.radians(spec.s_curve_angle_deg)
        first = _left_turn(r, ang, 140 * k)
        # right-hand arc centred on the right normal of the joint (heading `ang`)
        jx, jy = first[-1]
        second = _arc((jx + r * math.sin(ang), jy - r * math.cos(ang)), r, ang + math.pi / 2, -ang, 140 * k)
        return np.vstack([first, second[1:]])
    if shape == "roundabout":
        # closed ring; the last point coincides with the first
        return _left_turn(spec.roundabout_radius_m, 2.0 * math.pi, 800 * k)
    raise ValueError(f"Unsupported road shape={spec.shape}")


def reference_polyline(spec: RoadSpec, density: Optional[int] = None) -> Tuple[np.ndarray, List[float]]:
    """3D reference points and S values satisfying the S-delta rule."""
    xy = np.asarray(centerline(spec, density), dtype=np.float64)
    xyz = np.column_stack([xy, np.zeros(len(xy))])
    s = cumulative_s(xyz)
    xyz[:, 2] = spec.grade * np.asarray(s)
    return xyz, s


def left_normals(xyz: np.ndarray) -> np.ndarray:
    """Unit XY normals pointing left, averaged over the segments meeting at each vertex."""
    d = np.diff(xyz[:, :2], axis=0)
    d = d / np.linalg.norm(d, axis=1, keepdims=True)
    tangents = np.zeros((len(xyz), 2))
    tangents[:-1] += d
    tangents[1:] += d
    tangents /= np.linalg.norm(tangents, axis=1, keepdims=True)
    return np.column_stack([-tangents[:, 1], tangents[:, 0]])


def _section_bounds(n_points: int, sections: int) -> List[Tuple[int, int]]:
    sections = max(1, min(sections, n_points - 1))
    cuts = [round(i * (n_points - 1) / sections) for i in range(sections + 1)]
    return list(zip(cuts[:-1], cuts[1:]))


def _passing_rule(j: int, spec: RoadSpec) -> PassingRule:
    if j in (-spec.lanes_right, spec.lanes_left):
        return PassingRule.NONE_ALLOWED
    if j == 0 and spec.lanes_left > 0 and spec.lanes_right > 0:
        return PassingRule.NONE_ALLOWED
    return PassingRule.BOTH_ALLOWED


def _relation(other_id: str, s0: float, s1: float) -> Dict[str, Any]:
    # neighbours share the reference line, so both spans coincide
    return {
        "other_lane_id": other_id,
        "start_s": s0,
        "end_s": s1,
        "start_s_other": s0,
        "end_s_other": s1,
    }


def build_road_records(spec: RoadSpec, line_id: str = "rl") -> Dict[str, Any]:
    """
    Snapshot description (Snapshot.from_dict format) for the road.

    Boundary j sits at T = j * lane_width for j in [-lanes_right, lanes_left];
    lane k lies between boundaries k-1 and k. Lanes right of the reference
    line drive along it.
    """
    xyz, s = reference_polyline(spec)
    normals = left_normals(xyz)
    w = spec.lane_width_m

    ref = {
        "id": line_id,
        "poly_line": [
            {"world_position": p.tolist(), "s_position": sv} for p, sv in zip(xyz, s)
        ],
    }

    bounds = _section_bounds(len(xyz), spec.sections)
    boundaries: List[Dict[str, Any]] = []
    for sec, (i0, i1) in enumerate(bounds):
        for j in range(-spec.lanes_right, spec.lanes_left + 1):
            t = j * w
            pts = []
            for i in range(i0, i1 + 1):
                pos = xyz[i].copy()
                pos[:2] += t * normals[i]
                pts.append({"position": pos.tolist(), "s_position": s[i], "t_position": t})
            boundaries.append({
                "id": f"b{sec}_{j}",
                "reference_line_id": line_id,
                "boundary_line": pts,
                "passing_rule": _passing_rule(j, spec).name,
            })

    lane_ks = list(range(-spec.lanes_right + 1, spec.lanes_left + 1))
    lanes: List[Dict[str, Any]] = []
    for sec, (i0, i1) in enumerate(bounds):
        s0, s1 = s[i0], s[i1]
        for k in lane_ks:
            lane: Dict[str, Any] = {
                "id": f"l{sec}_{k}",
                "type": "NORMAL",
                "reference_line_id": line_id,
                "start_s": s0,
                "end_s": s1,
                "reference_line_is_driving_direction": k <= 0,
                "right_boundary_id": [f"b{sec}_{k - 1}"],
                "left_boundary_id": [f"b{sec}_{k}"],
                "right_adjacent_lane": [_relation(f"l{sec}_{k - 1}", s0, s1)] if k - 1 in lane_ks else [],
                "left_adjacent_lane": [_relation(f"l{sec}_{k + 1}", s0, s1)] if k + 1 in lane_ks else [],
                "predecessor_lane": [],
                "successor_lane": [],
            }
            if sec > 0:
                lane["predecessor_lane"].append({"other_lane_id": f"l{sec - 1}_{k}", "at_begin_of_other_lane": False})
            if sec < len(bounds) - 1:
                lane["successor_lane"].append({"other_lane_id": f"l{sec + 1}_{k}", "at_begin_of_other_lane": True})
            lanes.append(lane)

    ideal, _ = reference_polyline(spec, density=max(1, spec.density) * 8)
    return {
        "reference_lines": [ref],
        "logical_lane_boundaries": boundaries,
        "logical_lanes": lanes,
        "source_curves": {line_id: ideal.tolist()},
    }


def build_road_snapshot(spec: RoadSpec, config: Optional[TopologyConfig] = None) -> Snapshot:
    return Snapshot.from_dict(build_road_records(spec), config)
