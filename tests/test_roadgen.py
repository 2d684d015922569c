import pytest

from st_topology import LaneSubtype, PassingRule, Side, TopologyConfig, validate
from st_topology.roadgen import RoadSpec, build_road_records, build_road_snapshot, centerline

SHAPES = ["tangent", "horizontal_curve", "s_curve", "hairpin", "roundabout"]


@pytest.mark.parametrize("shape", SHAPES)
def test_generated_roads_validate(shape):
    spec = RoadSpec(shape=shape, lanes_left=2, lanes_right=2, sections=3)
    snap = build_road_snapshot(spec)
    assert not snap.build_errors
    report = validate(snap)
    assert report.ok, report.to_dicts()[:5]


def test_sloped_road_validates():
    snap = build_road_snapshot(RoadSpec(shape="horizontal_curve", grade=0.04))
    assert validate(snap, TopologyConfig(workers=2)).ok
    line = snap.reference_line("rl")
    assert line.at(line.s_end).z == pytest.approx(0.04 * line.s_end)


def test_boundaries_sit_at_lane_offsets():
    spec = RoadSpec(shape="tangent", length_m=40.0, lanes_left=2, lanes_right=1)
    snap = build_road_snapshot(spec)
    line = snap.reference_line("rl")
    for j in (-1, 0, 1, 2):
        b = snap.boundary(f"b0_{j}")
        for p in b.boundary_line[::10]:
            res = line.project(p.position)
            assert res.s == pytest.approx(p.s, abs=1e-9)
            assert res.t == pytest.approx(j * 3.5, abs=1e-9)
    assert snap.boundary("b0_-1").passing_rule is PassingRule.NONE_ALLOWED
    assert snap.boundary("b0_1").passing_rule is PassingRule.BOTH_ALLOWED


def test_lane_layout():
    spec = RoadSpec(shape="tangent", lanes_left=1, lanes_right=2)
    snap = build_road_snapshot(spec)
    assert [l.id for l in snap.lanes] == ["l0_-1", "l0_0", "l0_1"]
    right = snap.lane("l0_-1")
    assert right.reference_line_is_driving_direction
    assert not snap.lane("l0_1").reference_line_is_driving_direction
    assert right.type is LaneSubtype.NORMAL
    assert [r.other_lane_id for r in right.adjacent(Side.LEFT)] == ["l0_0"]
    assert right.adjacent(Side.RIGHT) == ()
    assert right.width_at(30.0) == pytest.approx(3.5)
    assert right.centerline_at(30.0).y == pytest.approx(-5.25)


def test_sections_are_linked():
    snap = build_road_snapshot(RoadSpec(shape="s_curve", sections=3))
    mid = snap.lane("l1_0")
    assert [c.other_lane_id for c in mid.previous_lanes()] == ["l0_0"]
    assert [c.other_lane_id for c in mid.next_lanes()] == ["l2_0"]
    assert mid.start_s == snap.lane("l0_0").end_s
    # left lane drives against the reference line
    left = snap.lane("l1_1")
    assert [c.other_lane_id for c in left.next_lanes()] == ["l0_1"]
    assert snap.lane("l0_0").predecessor_lanes == ()
    assert snap.lane("l2_0").successor_lanes == ()


def test_records_carry_source_curve():
    recs = build_road_records(RoadSpec(shape="roundabout"), line_id="ring")
    assert list(recs["source_curves"]) == ["ring"]
    assert len(recs["source_curves"]["ring"]) == 8 * len(recs["reference_lines"][0]["poly_line"])


def test_road_spec_from_dict():
    spec = RoadSpec.from_dict({"shape": "hairpin", "radius_m": "12", "lanes_left": 3})
    assert spec.radius_m == 12.0
    assert spec.lanes_left == 3
    assert spec.lanes_right == 1
    pts = centerline(spec)
    assert tuple(pts[0]) == pytest.approx((0.0, 0.0))


def test_unknown_shape():
    with pytest.raises(ValueError):
        centerline(RoadSpec(shape="spiral"))
