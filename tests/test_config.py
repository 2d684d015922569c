import json

import pytest
import yaml

from st_topology import TopologyConfig


def test_defaults():
    cfg = TopologyConfig()
    assert cfg.s_tolerance == 0.0
    assert cfg.geometry_tolerance == 0.05
    assert not cfg.strict_boundary_extent
    assert cfg.workers == 1
    assert TopologyConfig.from_dict(cfg.to_dict()) == cfg


def test_from_dict_coerces_types():
    cfg = TopologyConfig.from_dict({"geometry_samples": "9", "s_tolerance": 1, "workers": 4.0})
    assert cfg.geometry_samples == 9
    assert isinstance(cfg.s_tolerance, float)
    assert cfg.workers == 4


def test_unknown_keys_rejected():
    with pytest.raises(ValueError, match="gap_tolerance"):
        TopologyConfig.from_dict({"gap_tolerance": 0.1})


def test_from_files(tmp_path):
    ypath = tmp_path / "cfg.yaml"
    ypath.write_text(yaml.safe_dump({"strict_boundary_extent": True, "coverage_tolerance": 0.01}))
    jpath = tmp_path / "cfg.json"
    jpath.write_text(json.dumps({"require_passing_rule": True}))
    empty = tmp_path / "empty.yaml"
    empty.write_text("")

    ycfg = TopologyConfig.from_yaml(str(ypath))
    assert ycfg.strict_boundary_extent
    assert ycfg.coverage_tolerance == 0.01
    assert TopologyConfig.from_json(str(jpath)).require_passing_rule
    assert TopologyConfig.from_yaml(str(empty)) == TopologyConfig()


@pytest.mark.parametrize(
    "raw, expected",
    [("false", False), ("No", False), (0, False), ("true", True), ("on", True), (1, True), (True, True)],
)
def test_bool_fields_parse_words(raw, expected):
    assert TopologyConfig.from_dict({"check_geometry": raw}).check_geometry is expected


@pytest.mark.parametrize("raw", ["maybe", 2, 0.5])
def test_bool_fields_reject_other_values(raw):
    with pytest.raises(ValueError, match="strict_boundary_extent"):
        TopologyConfig.from_dict({"strict_boundary_extent": raw})
