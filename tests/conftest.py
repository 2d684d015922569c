from typing import Any, Dict, List, Sequence, Tuple

import pytest

from st_topology import ReferenceLine, Snapshot, TopologyConfig


def line_record(id: Any, pts: Sequence[Tuple[float, float, float, float]]) -> Dict[str, Any]:
    """Reference line record from (x, y, z, s) tuples."""
    return {
        "id": id,
        "poly_line": [
            {"world_position": {"x": x, "y": y, "z": z}, "s_position": s} for x, y, z, s in pts
        ],
    }


def boundary_record(
    id: Any,
    t: float,
    s0: float,
    s1: float,
    reference_line_id: Any = "rl",
    passing_rule: str = "NONE_ALLOWED",
) -> Dict[str, Any]:
    """Straight boundary at constant T along the x axis reference line."""
    return {
        "id": id,
        "reference_line_id": reference_line_id,
        "passing_rule": passing_rule,
        "boundary_line": [
            {"position": [s0, t, 0.0], "s_position": s0, "t_position": t},
            {"position": [s1, t, 0.0], "s_position": s1, "t_position": t},
        ],
    }


def lane_record(
    id: Any,
    right: List[Any],
    left: List[Any],
    start_s: float = 0.0,
    end_s: float = 10.0,
    reference_line_id: Any = "rl",
    **extra: Any,
) -> Dict[str, Any]:
    rec = {
        "id": id,
        "reference_line_id": reference_line_id,
        "start_s": start_s,
        "end_s": end_s,
        "right_boundary_id": right,
        "left_boundary_id": left,
    }
    rec.update(extra)
    return rec


STRAIGHT = [(0.0, 0.0, 0.0, 0.0), (10.0, 0.0, 0.0, 10.0)]
CORNER = [(0.0, 0.0, 0.0, 0.0), (5.0, 0.0, 0.0, 5.0), (5.0, 5.0, 0.0, 10.0)]


@pytest.fixture
def straight_line() -> ReferenceLine:
    return ReferenceLine.from_dict(line_record("rl", STRAIGHT))


@pytest.fixture
def corner_line() -> ReferenceLine:
    return ReferenceLine.from_dict(line_record("corner", CORNER))


def two_lane_records() -> Dict[str, Any]:
    """
    Straight road along x in [0, 10] with lanes A (right, t in [-3.5, 0])
    and B (left, t in [0, 3.5]). Lane A's right boundary is split at s=5.
    """
    return {
        "reference_lines": [line_record("rl", STRAIGHT)],
        "logical_lane_boundaries": [
            boundary_record("r1", -3.5, 0.0, 5.0),
            boundary_record("r2", -3.5, 5.0, 10.0),
            boundary_record("mid", 0.0, 0.0, 10.0, passing_rule="BOTH_ALLOWED"),
            boundary_record("l", 3.5, 0.0, 10.0),
        ],
        "logical_lanes": [
            lane_record(
                "A", ["r1", "r2"], ["mid"],
                left_adjacent_lane=[{
                    "other_lane_id": "B", "start_s": 0.0, "end_s": 10.0,
                    "start_s_other": 0.0, "end_s_other": 10.0,
                }],
            ),
            lane_record(
                "B", ["mid"], ["l"],
                reference_line_is_driving_direction=False,
                right_adjacent_lane=[{
                    "other_lane_id": "A", "start_s": 0.0, "end_s": 10.0,
                    "start_s_other": 0.0, "end_s_other": 10.0,
                }],
            ),
        ],
    }


@pytest.fixture
def two_lane_snapshot() -> Snapshot:
    return Snapshot.from_dict(two_lane_records())


@pytest.fixture
def config() -> TopologyConfig:
    return TopologyConfig()
