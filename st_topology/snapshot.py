"""
Snapshot: one immutable map scene (reference lines, boundaries, lanes).

Building is tolerant of partial failure: an entity whose record or polyline
is malformed, or whose reference line cannot be resolved, is dropped and
recorded as a BuildError while its siblings keep building.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

import numpy as np
import yaml

from .boundary import LogicalLaneBoundary
from .config import TopologyConfig
from .datatypes import Identifier, ProjectionResult
from .errors import MalformedPolyline, MalformedRecord, UnresolvedReference
from .lane import LogicalLane
from .log import logger
from .reference_line import ReferenceLine
from .registry import Arena, Registry


E = TypeVar("E")


@dataclass(frozen=True)
class BuildError:
    """Entity dropped while building a snapshot."""

    kind: str
    entity_id: Any
    error: Exception

    @property
    def unresolved(self) -> bool:
        return isinstance(self.error, UnresolvedReference)


def _build_each(
    kind: str,
    records: Iterable[Any],
    make: Callable[[Any], E],
    errors: List[BuildError],
) -> List[E]:
    out: List[E] = []
    for rec in records:
        try:
            out.append(make(rec))
        except (MalformedPolyline, MalformedRecord, UnresolvedReference) as e:
            eid = rec.get("id") if isinstance(rec, Mapping) else getattr(rec, "id", None)
            logger.warning("Dropping %s %r: %s", kind, eid, e)
            errors.append(BuildError(kind, eid, e))
    return out


class Snapshot:
    """Entities of one scene plus the registry resolving their references."""

    def __init__(
        self,
        registry: Registry,
        config: TopologyConfig,
        build_errors: Iterable[BuildError] = (),
        source_curves: Optional[Mapping[Identifier, np.ndarray]] = None,
    ):
        self.registry = registry
        self.config = config
        self.build_errors = tuple(build_errors)
        self.source_curves: Dict[Identifier, np.ndarray] = dict(source_curves or {})

    @classmethod
    def build(
        cls,
        reference_lines: Iterable[Any] = (),
        boundaries: Iterable[Any] = (),
        lanes: Iterable[Any] = (),
        config: Optional[TopologyConfig] = None,
        source_curves: Optional[Mapping[Identifier, Any]] = None,
        physical_boundary_ids: Optional[Iterable[Identifier]] = None,
        physical_lane_ids: Optional[Iterable[Identifier]] = None,
    ) -> Snapshot:
        """
        Build a snapshot from dict records or already constructed entities.

        Reference lines are built first; boundaries and lanes must resolve
        their reference line or they are dropped. All other references are
        weak and left to the validator.
        """
        cfg = config or TopologyConfig()
        errors: List[BuildError] = []

        def make_line(rec: Any) -> ReferenceLine:
            if isinstance(rec, ReferenceLine):
                return rec
            return ReferenceLine.from_dict(
                rec, s_tolerance=cfg.s_tolerance, tie_tolerance=cfg.tie_tolerance
            )

        lines = _build_each("reference_line", reference_lines, make_line, errors)
        line_arena = Arena("reference_line", lines)

        def make_boundary(rec: Any) -> LogicalLaneBoundary:
            b = rec if isinstance(rec, LogicalLaneBoundary) else LogicalLaneBoundary.from_dict(rec)
            line_arena.get(b.reference_line_id, b.id)
            return b

        bounds = _build_each("logical_lane_boundary", boundaries, make_boundary, errors)

        def make_lane(rec: Any) -> LogicalLane:
            lane = rec if isinstance(rec, LogicalLane) else LogicalLane.from_dict(rec)
            line_arena.get(lane.reference_line_id, lane.id)
            return lane

        unbound = _build_each("logical_lane", lanes, make_lane, errors)

        registry = Registry(
            reference_lines=lines,
            boundaries=bounds,
            physical_boundary_ids=physical_boundary_ids,
            physical_lane_ids=physical_lane_ids,
        )
        registry.lanes = Arena(
            "logical_lane", [dataclasses.replace(l, registry=registry) for l in unbound]
        )

        curves = {
            k: np.asarray(v, dtype=np.float64) for k, v in (source_curves or {}).items()
        }
        logger.info(
            "Built snapshot: %d reference lines, %d boundaries, %d lanes (%d dropped)",
            len(lines), len(bounds), len(unbound), len(errors),
        )
        return cls(registry, cfg, errors, curves)

    # -- lookups --

    @property
    def reference_lines(self):
        return self.registry.reference_lines.items

    @property
    def boundaries(self):
        return self.registry.boundaries.items

    @property
    def lanes(self):
        return self.registry.lanes.items

    def reference_line(self, id: Identifier) -> ReferenceLine:
        return self.registry.reference_line(id)

    def boundary(self, id: Identifier) -> LogicalLaneBoundary:
        return self.registry.boundary(id)

    def lane(self, id: Identifier) -> LogicalLane:
        return self.registry.lane(id)

    def project(self, reference_line_id: Identifier, point: Any) -> ProjectionResult:
        return self.reference_line(reference_line_id).project(point)

    # -- loading --

    @classmethod
    def from_dict(cls, d: Dict[str, Any], config: Optional[TopologyConfig] = None) -> Snapshot:
        if config is None and "config" in d:
            config = TopologyConfig.from_dict(d["config"])
        return cls.build(
            reference_lines=d.get("reference_lines", []),
            boundaries=d.get("logical_lane_boundaries", []),
            lanes=d.get("logical_lanes", []),
            config=config,
            source_curves=d.get("source_curves"),
            physical_boundary_ids=d.get("physical_lane_boundary_ids"),
            physical_lane_ids=d.get("physical_lane_ids"),
        )

    @classmethod
    def from_yaml(cls, path: str, config: Optional[TopologyConfig] = None) -> Snapshot:
        """Load snapshot from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data, config)

    @classmethod
    def from_json(cls, path: str, config: Optional[TopologyConfig] = None) -> Snapshot:
        """Load snapshot from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data, config)
