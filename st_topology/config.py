from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

import yaml


_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE:
            return True
        if word in _FALSE:
            return False
    raise ValueError(f"Config key {key} expects a boolean, got {value!r}")


@dataclass
class TopologyConfig:
    # slack [m] allowed when an S delta is below the 2D point distance
    s_tolerance: float = 0.0
    # distance window [m] in which projection candidates count as tied
    tie_tolerance: float = 1e-9

    # boundary point position vs. the position its (s, t) names on the reference line [m]
    st_tolerance: float = 0.05

    # S tolerance [m] for chain gaps, overlaps and lane extent
    coverage_tolerance: float = 1e-6
    # consecutive chain boundaries must share an endpoint within this distance [m]
    endpoint_tolerance: float = 1e-6

    # shared boundaries of adjacent lanes must agree in XY [m]
    check_geometry: bool = True
    geometry_tolerance: float = 0.05
    geometry_samples: int = 5
    # sampled polyline vs. ideal source curve, lateral and vertical [m]
    approximation_tolerance: float = 0.05

    # report boundaries whose passing rule is UNKNOWN (not allowed in ground truth)
    require_passing_rule: bool = False

    # chains reaching beyond [start_s, end_s] of their lane are violations
    strict_boundary_extent: bool = False

    # thread fan-out for the validator (1 = inline)
    workers: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> TopologyConfig:
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(d) - set(known))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        kwargs: Dict[str, Any] = {}
        defaults = cls()
        for k, v in d.items():
            default = getattr(defaults, k)
            if isinstance(default, bool):
                kwargs[k] = _parse_bool(k, v)
            else:
                kwargs[k] = type(default)(v)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> TopologyConfig:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, path: str) -> TopologyConfig:
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
