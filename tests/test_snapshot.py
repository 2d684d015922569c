import json

import pytest
import yaml

from st_topology import (
    LogicalLane,
    MalformedRecord,
    NonMonotonicInput,
    OutOfSequence,
    ReferenceLine,
    Snapshot,
    TopologyConfig,
    UnresolvedReference,
)

from conftest import STRAIGHT, boundary_record, lane_record, line_record, two_lane_records


def test_partial_snapshot_keeps_siblings():
    recs = two_lane_records()
    recs["reference_lines"].append(line_record("bad", [(0, 0, 0, 0), (10, 0, 0, 5)]))
    recs["reference_lines"].append(line_record("short", [(0, 0, 0, 0)]))
    recs["logical_lane_boundaries"].append(boundary_record("orphan", 7.0, 0.0, 10.0, reference_line_id="bad"))
    recs["logical_lanes"].append(lane_record("C", ["l"], ["orphan"], reference_line_id="nowhere"))

    snap = Snapshot.from_dict(recs)

    assert [l.id for l in snap.reference_lines] == ["rl"]
    assert [b.id for b in snap.boundaries] == ["r1", "r2", "mid", "l"]
    assert [l.id for l in snap.lanes] == ["A", "B"]
    errs = [(e.kind, e.entity_id, type(e.error)) for e in snap.build_errors]
    assert errs == [
        ("reference_line", "bad", NonMonotonicInput),
        ("reference_line", "short", OutOfSequence),
        ("logical_lane_boundary", "orphan", UnresolvedReference),
        ("logical_lane", "C", UnresolvedReference),
    ]
    assert snap.build_errors[2].unresolved
    assert not snap.build_errors[0].unresolved


def test_lookups(two_lane_snapshot):
    assert two_lane_snapshot.reference_line("rl").s_end == 10.0
    assert two_lane_snapshot.boundary("mid").t_at(3.0) == 0.0
    assert two_lane_snapshot.lane("B").reference_line_is_driving_direction is False
    res = two_lane_snapshot.project("rl", (4.0, -1.0, 0.0))
    assert (res.s, res.t) == (4.0, -1.0)
    with pytest.raises(UnresolvedReference) as exc:
        two_lane_snapshot.lane("Z")
    assert exc.value.kind == "logical_lane"
    with pytest.raises(KeyError):
        two_lane_snapshot.boundary("Z")


def test_duplicate_ids_first_wins():
    recs = two_lane_records()
    recs["logical_lane_boundaries"].append(boundary_record("mid", 99.0, 0.0, 10.0))
    snap = Snapshot.from_dict(recs)
    assert len(snap.boundaries) == 5
    assert snap.boundary("mid").t_at(1.0) == 0.0


def test_snapshots_do_not_share_registries():
    a = Snapshot.from_dict(two_lane_records())
    recs = two_lane_records()
    recs["logical_lanes"] = recs["logical_lanes"][:1]
    b = Snapshot.from_dict(recs)
    assert a.registry is not b.registry
    assert a.lane("B").id == "B"
    with pytest.raises(UnresolvedReference):
        b.lane("B")
    assert a.lane("A").registry is a.registry
    assert b.lane("A").registry is b.registry


def test_accepts_built_entities():
    line = ReferenceLine.from_dict(line_record("rl", STRAIGHT))
    lane = LogicalLane(id="A", reference_line_id="rl", start_s=0.0, end_s=10.0)
    snap = Snapshot.build(reference_lines=[line], lanes=[lane])
    assert snap.reference_line("rl") is line
    assert snap.lane("A").registry is snap.registry
    assert lane.registry is None


def test_config_flows_into_polylines():
    recs = {"reference_lines": [line_record("rl", [(0, 0, 0, 0), (10, 0, 0, 9.99)])]}
    assert Snapshot.from_dict(recs).build_errors
    snap = Snapshot.from_dict(recs, TopologyConfig(s_tolerance=0.05))
    assert not snap.build_errors
    recs["config"] = {"s_tolerance": 0.05}
    assert Snapshot.from_dict(recs).config.s_tolerance == 0.05


def test_from_yaml_and_json(tmp_path):
    recs = two_lane_records()
    recs["source_curves"] = {"rl": [[0, 0, 0], [5, 0, 0], [10, 0, 0]]}
    ypath = tmp_path / "snap.yaml"
    ypath.write_text(yaml.safe_dump(recs))
    jpath = tmp_path / "snap.json"
    jpath.write_text(json.dumps(recs))

    for snap in (Snapshot.from_yaml(str(ypath)), Snapshot.from_json(str(jpath))):
        assert [l.id for l in snap.lanes] == ["A", "B"]
        assert snap.source_curves["rl"].shape == (3, 3)
        assert snap.lane("A").centerline_at(5.0).y == pytest.approx(-1.75)


def test_malformed_records_drop_only_their_entity():
    recs = two_lane_records()
    del recs["logical_lanes"][1]["reference_line_id"]
    recs["logical_lane_boundaries"][3]["passing_rule"] = "SOLID"
    del recs["logical_lanes"][0]["left_adjacent_lane"][0]["other_lane_id"]
    recs["logical_lanes"].append(lane_record("C", ["r1"], ["mid"], type="HIGHWAY"))
    recs["logical_lanes"].append(lane_record("D", ["r1"], ["mid"], end_s=5.0))

    snap = Snapshot.from_dict(recs)

    assert [b.id for b in snap.boundaries] == ["r1", "r2", "mid"]
    assert [l.id for l in snap.lanes] == ["D"]
    errs = [(e.kind, e.entity_id) for e in snap.build_errors]
    assert errs == [
        ("logical_lane_boundary", "l"),
        ("logical_lane", "A"),
        ("logical_lane", "B"),
        ("logical_lane", "C"),
    ]
    assert all(isinstance(e.error, MalformedRecord) for e in snap.build_errors)
    assert "other_lane_id" in str(snap.build_errors[1].error)


def test_record_without_id_is_dropped():
    recs = two_lane_records()
    del recs["reference_lines"][0]["id"]
    snap = Snapshot.from_dict(recs)
    assert snap.reference_lines == ()
    assert snap.build_errors[0].entity_id is None
    assert isinstance(snap.build_errors[0].error, MalformedRecord)
