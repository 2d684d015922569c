import pytest

from st_topology import (
    LaneConnection,
    LaneEnd,
    LaneRelation,
    LaneSubtype,
    LogicalLane,
    OutOfRange,
    PassingRule,
    Point3D,
    Side,
    Snapshot,
    TopologyError,
    UnresolvedReference,
)

from conftest import lane_record, two_lane_records


def test_boundary_chain_resolves_in_order(two_lane_snapshot):
    lane = two_lane_snapshot.lane("A")
    assert [b.id for b in lane.boundary_chain(Side.RIGHT)] == ["r1", "r2"]
    assert [b.id for b in lane.boundary_chain(Side.LEFT)] == ["mid"]
    assert lane.reference_line.id == "rl"


def test_adjacency_accessors(two_lane_snapshot):
    a = two_lane_snapshot.lane("A")
    b = two_lane_snapshot.lane("B")
    assert [r.other_lane_id for r in a.adjacent(Side.LEFT)] == ["B"]
    assert a.adjacent(Side.RIGHT) == ()
    assert [r.other_lane_id for r in b.adjacent(Side.RIGHT)] == ["A"]
    assert a.overlapping() == ()


def test_centerline_and_width(two_lane_snapshot):
    a = two_lane_snapshot.lane("A")
    assert a.centerline_at(2.0) == Point3D(2.0, -1.75, 0.0)
    # s=5 sits on the joint of r1 and r2
    assert a.centerline_at(5.0) == Point3D(5.0, -1.75, 0.0)
    assert a.centerline_at(10.0) == Point3D(10.0, -1.75, 0.0)
    assert a.width_at(7.0) == pytest.approx(3.5)
    assert a.boundary_at(Side.RIGHT, 5.0).id == "r2"
    assert a.boundary_at(Side.RIGHT, 4.0).id == "r1"


@pytest.mark.parametrize("s", [-0.5, 10.5])
def test_centerline_outside_lane(two_lane_snapshot, s):
    with pytest.raises(OutOfRange) as exc:
        two_lane_snapshot.lane("A").centerline_at(s)
    assert exc.value.domain == (0.0, 10.0)


def test_centerline_over_chain_gap():
    recs = two_lane_records()
    recs["logical_lane_boundaries"][1]["boundary_line"][0].update(
        {"position": [6.0, -3.5, 0.0], "s_position": 6.0}
    )
    snap = Snapshot.from_dict(recs)
    with pytest.raises(OutOfRange):
        snap.lane("A").centerline_at(5.5)


def test_passing_rule_at(two_lane_snapshot):
    a = two_lane_snapshot.lane("A")
    assert a.passing_rule_at(Side.LEFT, 3.0) is PassingRule.BOTH_ALLOWED
    assert a.passing_rule_at(Side.RIGHT, 3.0) is PassingRule.NONE_ALLOWED


def test_driving_direction_connections():
    lane = LogicalLane(
        id="x",
        reference_line_id="rl",
        start_s=0.0,
        end_s=10.0,
        reference_line_is_driving_direction=False,
        predecessor_lanes=[LaneConnection("p", at_begin_of_other_lane=False)],
        successor_lanes=[LaneConnection("n", at_begin_of_other_lane=True)],
    )
    assert lane.connections(LaneEnd.START)[0].other_lane_id == "p"
    assert lane.connections(LaneEnd.END)[0].other_lane_id == "n"
    assert lane.next_lanes()[0].other_lane_id == "p"
    assert lane.previous_lanes()[0].other_lane_id == "n"


def test_unbound_lane_cannot_resolve():
    lane = LogicalLane(id="x", reference_line_id="rl", start_s=0.0, end_s=1.0, left_boundary_ids=["l"])
    with pytest.raises(TopologyError):
        lane.boundary_chain(Side.LEFT)


def test_dangling_boundary_raises_on_access():
    recs = two_lane_records()
    recs["logical_lanes"][0]["right_boundary_id"] = ["r1", "gone"]
    snap = Snapshot.from_dict(recs)
    with pytest.raises(UnresolvedReference) as exc:
        snap.lane("A").boundary_chain(Side.RIGHT)
    assert exc.value.missing_id == "gone"
    assert exc.value.referrer == "A"


def test_from_dict_schema_fields():
    lane = LogicalLane.from_dict(lane_record(
        7, [1], [2],
        type="SUBTYPE_ONRAMP",
        physical_lane_id=99,
        overlapping_lane=[{
            "other_lane_id": 8, "start_s": 2.0, "end_s": 4.0,
            "start_s_other": 30.0, "end_s_other": 28.0,
        }],
        successor_lane=[{"other_lane_id": 9, "at_begin_of_other_lane": False}],
    ))
    assert lane.type is LaneSubtype.ONRAMP
    assert lane.physical_lane_id == 99
    assert lane.right_boundary_ids == (1,)
    assert lane.overlapping_lanes[0].end_s_other == 28.0
    assert lane.successor_lanes == (LaneConnection(9, False),)
    assert lane.registry is None


def test_relation_maps_s_to_other_line():
    rel = LaneRelation("o", start_s=10.0, end_s=20.0, start_s_other=100.0, end_s_other=80.0)
    assert rel.other_s(10.0) == 100.0
    assert rel.other_s(15.0) == pytest.approx(90.0)
    assert rel.other_s(20.0) == pytest.approx(80.0)
    assert rel.sort_key == (10.0, 20.0)
