"""
Topology validation over a complete snapshot.

Every check appends to a list of violations; nothing short-circuits across
entities and nothing mutates the snapshot. Results are ordered: build
errors, duplicate ids, then reference lines, boundaries and lanes in input
order, each entity's findings in check order.
"""

from __future__ import annotations

import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .boundary import LogicalLaneBoundary, chain_member_at
from .config import TopologyConfig
from .datatypes import Identifier, LaneConnection, LaneRelation, PassingRule, Side
from .errors import InvariantViolation, MalformedRecord, UnresolvedReference
from .lane import LogicalLane
from .log import logger
from .reference_line import ReferenceLine
from .registry import Arena, Registry
from .snapshot import Snapshot


class ViolationKind(Enum):
    DUPLICATE_ID = "duplicate_id"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    MALFORMED_POLYLINE = "malformed_polyline"
    MALFORMED_RECORD = "malformed_record"
    BOUNDARY_S_ORDER = "boundary_s_order"
    BOUNDARY_S_RANGE = "boundary_s_range"
    ST_INCONSISTENT = "st_inconsistent"
    LANE_S_RANGE = "lane_s_range"
    CHAIN_ORDER = "chain_order"
    COVERAGE_GAP = "coverage_gap"
    COVERAGE_OVERLAP = "coverage_overlap"
    COVERAGE_EXTENT = "coverage_extent"
    CHAIN_DISCONTINUITY = "chain_discontinuity"
    REFERENCE_LINE_MISMATCH = "reference_line_mismatch"
    RELATION_ORDER = "relation_order"
    RELATION_RANGE = "relation_range"
    UNKNOWN_PASSING_RULE = "unknown_passing_rule"
    ADJACENT_GEOMETRY = "adjacent_geometry"
    APPROXIMATION_ERROR = "approximation_error"


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    entity_id: Any
    detail: str
    entity_kind: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "violation_kind": self.kind.value,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "detail": self.detail,
        }


@dataclass
class ValidationReport:
    violations: List[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations

    def __len__(self) -> int:
        return len(self.violations)

    def __iter__(self):
        return iter(self.violations)

    def of_kind(self, kind: ViolationKind) -> List[Violation]:
        return [v for v in self.violations if v.kind is kind]

    def counts(self) -> Dict[ViolationKind, int]:
        return dict(Counter(v.kind for v in self.violations))

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [v.to_dict() for v in self.violations]

    def raise_if_invalid(self) -> None:
        if self.violations:
            raise InvariantViolation(self.violations)


LINE = "reference_line"
BOUNDARY = "logical_lane_boundary"
LANE = "logical_lane"


def polyline_deviation(xyz: np.ndarray, samples: np.ndarray) -> Tuple[float, float]:
    """
    Max lateral (XY) and vertical deviation of `samples` from the polyline `xyz`.

    Each sample is matched to its XY-nearest point on the polyline; the
    vertical deviation is taken at that point.
    """
    p0 = xyz[:-1]
    d = xyz[1:] - p0
    len_sq = d[:, 0] ** 2 + d[:, 1] ** 2
    safe = np.where(len_sq > 0.0, len_sq, 1.0)
    max_lat = 0.0
    max_vert = 0.0
    for q in samples:
        rel = q[:2] - p0[:, :2]
        u = np.clip(np.where(len_sq > 0.0, np.einsum("ij,ij->i", rel, d[:, :2]) / safe, 0.0), 0.0, 1.0)
        nearest = p0 + u[:, None] * d
        dist = np.hypot(q[0] - nearest[:, 0], q[1] - nearest[:, 1])
        i = int(np.argmin(dist))
        max_lat = max(max_lat, float(dist[i]))
        if samples.shape[1] > 2:
            max_vert = max(max_vert, abs(float(q[2] - nearest[i, 2])))
    return max_lat, max_vert


class TopologyValidator:
    """Batch invariant checks for one snapshot."""

    def __init__(self, config: Optional[TopologyConfig] = None):
        self.config = config

    def validate(self, snapshot: Snapshot) -> ValidationReport:
        cfg = self.config or snapshot.config
        reg = snapshot.registry
        out: List[Violation] = []

        out.extend(self._build_errors(snapshot))
        for arena, kind in (
            (reg.reference_lines, LINE),
            (reg.boundaries, BOUNDARY),
            (reg.lanes, LANE),
        ):
            out.extend(self._duplicates(arena, kind))

        jobs: List[Callable[[], List[Violation]]] = []
        for line in reg.reference_lines:
            jobs.append(lambda line=line: self._check_reference_line(line, snapshot, cfg))
        for b in reg.boundaries:
            jobs.append(lambda b=b: self._check_boundary(b, snapshot, cfg))
        for lane in reg.lanes:
            jobs.append(lambda lane=lane: self._check_lane(lane, reg, cfg))

        if cfg.workers > 1:
            with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
                results = list(pool.map(lambda job: job(), jobs))
        else:
            results = [job() for job in jobs]
        for r in results:
            out.extend(r)

        report = ValidationReport(out)
        if report.ok:
            logger.info("Snapshot valid")
        else:
            logger.info(
                "Snapshot has %d violation(s): %s",
                len(out),
                ", ".join(f"{k.value}={n}" for k, n in report.counts().items()),
            )
        return report

    # -- global --

    @staticmethod
    def _build_errors(snapshot: Snapshot) -> List[Violation]:
        out: List[Violation] = []
        for e in snapshot.build_errors:
            if e.unresolved:
                kind = ViolationKind.UNRESOLVED_REFERENCE
            elif isinstance(e.error, MalformedRecord):
                kind = ViolationKind.MALFORMED_RECORD
            else:
                kind = ViolationKind.MALFORMED_POLYLINE
            out.append(Violation(kind, e.entity_id, f"not built: {e.error}", e.kind))
        return out

    @staticmethod
    def _duplicates(arena: Arena, kind: str) -> List[Violation]:
        counts = Counter(item.id for item in arena)
        out: List[Violation] = []
        for id, n in counts.items():
            if n > 1:
                out.append(Violation(ViolationKind.DUPLICATE_ID, id, f"id used by {n} {kind} entities", kind))
        return out

    # -- reference lines --

    def _check_reference_line(self, line: ReferenceLine, snapshot: Snapshot, cfg: TopologyConfig) -> List[Violation]:
        curve = snapshot.source_curves.get(line.id)
        if curve is None:
            return []
        return self._approximation(line.id, LINE, line.polyline.xyz, curve, cfg)

    @staticmethod
    def _approximation(
        id: Identifier, kind: str, xyz: np.ndarray, curve: np.ndarray, cfg: TopologyConfig
    ) -> List[Violation]:
        lat, vert = polyline_deviation(xyz, curve)
        out: List[Violation] = []
        if lat > cfg.approximation_tolerance:
            out.append(Violation(
                ViolationKind.APPROXIMATION_ERROR, id,
                f"lateral deviation {lat:.4f} m from source curve > {cfg.approximation_tolerance}", kind,
            ))
        if vert > cfg.approximation_tolerance:
            out.append(Violation(
                ViolationKind.APPROXIMATION_ERROR, id,
                f"vertical deviation {vert:.4f} m from source curve > {cfg.approximation_tolerance}", kind,
            ))
        return out

    # -- boundaries --

    def _check_boundary(self, b: LogicalLaneBoundary, snapshot: Snapshot, cfg: TopologyConfig) -> List[Violation]:
        reg = snapshot.registry
        out: List[Violation] = []

        def add(kind: ViolationKind, detail: str) -> None:
            out.append(Violation(kind, b.id, detail, BOUNDARY))

        if not b.is_s_non_decreasing():
            add(ViolationKind.BOUNDARY_S_ORDER, "boundary_line s values decrease")

        try:
            line = reg.reference_line(b.reference_line_id, b.id)
        except UnresolvedReference as e:
            add(ViolationKind.UNRESOLVED_REFERENCE, str(e))
        else:
            tol = cfg.coverage_tolerance
            bad = [p.s for p in b.boundary_line if not line.contains_s(p.s, tol)]
            if bad:
                add(
                    ViolationKind.BOUNDARY_S_RANGE,
                    f"{len(bad)} point(s) outside [{line.s_start}, {line.s_end}] "
                    f"of reference line {line.id!r} (first s={bad[0]})",
                )
            out.extend(self._st_consistency(b, line, cfg))

        if reg.physical_boundary_ids is not None:
            for pid in b.physical_boundary_ids:
                if pid not in reg.physical_boundary_ids:
                    add(ViolationKind.UNRESOLVED_REFERENCE, f"unknown physical lane boundary id {pid!r}")

        if cfg.require_passing_rule and b.passing_rule is PassingRule.UNKNOWN:
            add(ViolationKind.UNKNOWN_PASSING_RULE, "passing rule UNKNOWN is not allowed in ground truth")

        curve = snapshot.source_curves.get(b.id)
        if curve is not None:
            xyz = np.array([[p.position.x, p.position.y, p.position.z] for p in b.boundary_line])
            out.extend(self._approximation(b.id, BOUNDARY, xyz, curve, cfg))
        return out

    @staticmethod
    def _st_consistency(b: LogicalLaneBoundary, line: ReferenceLine, cfg: TopologyConfig) -> List[Violation]:
        """Each point's position must match the position its (s, t) names on the reference line."""
        worst = 0.0
        worst_i = 0
        for i, p in enumerate(b.boundary_line):
            q = line.world_at(p.s, p.t)
            dist = math.hypot(p.position.x - q.x, p.position.y - q.y)
            if dist > worst:
                worst = dist
                worst_i = i
        if worst <= cfg.st_tolerance:
            return []
        p = b.boundary_line[worst_i]
        return [Violation(
            ViolationKind.ST_INCONSISTENT, b.id,
            f"point {worst_i} (s={p.s}, t={p.t}) lies {worst:.4f} m from its ST position "
            f"on reference line {line.id!r} > {cfg.st_tolerance}",
            BOUNDARY,
        )]

    # -- lanes --

    def _check_lane(self, lane: LogicalLane, reg: Registry, cfg: TopologyConfig) -> List[Violation]:
        out: List[Violation] = []

        def add(kind: ViolationKind, detail: str) -> None:
            out.append(Violation(kind, lane.id, detail, LANE))

        tol = cfg.coverage_tolerance
        if not lane.end_s > lane.start_s:
            add(ViolationKind.LANE_S_RANGE, f"end_s {lane.end_s} <= start_s {lane.start_s}")
        try:
            line = reg.reference_line(lane.reference_line_id, lane.id)
        except UnresolvedReference as e:
            add(ViolationKind.UNRESOLVED_REFERENCE, str(e))
        else:
            if not (line.contains_s(lane.start_s, tol) and line.contains_s(lane.end_s, tol)):
                add(
                    ViolationKind.LANE_S_RANGE,
                    f"[{lane.start_s}, {lane.end_s}] not inside [{line.s_start}, {line.s_end}] "
                    f"of reference line {line.id!r}",
                )

        if (
            lane.physical_lane_id is not None
            and reg.physical_lane_ids is not None
            and lane.physical_lane_id not in reg.physical_lane_ids
        ):
            add(ViolationKind.UNRESOLVED_REFERENCE, f"unknown physical lane id {lane.physical_lane_id!r}")

        chains: Dict[Side, Optional[List[LogicalLaneBoundary]]] = {}
        for side in (Side.RIGHT, Side.LEFT):
            chains[side] = self._check_chain(lane, side, reg, cfg, add)

        for name, rels in (
            ("right_adjacent_lane", lane.right_adjacent_lanes),
            ("left_adjacent_lane", lane.left_adjacent_lanes),
            ("overlapping_lane", lane.overlapping_lanes),
        ):
            self._check_relations(lane, name, rels, reg, cfg, add)

        for name, conns in (
            ("predecessor_lane", lane.predecessor_lanes),
            ("successor_lane", lane.successor_lanes),
        ):
            self._check_connections(lane, name, conns, reg, add)

        if cfg.check_geometry:
            for side, rels in ((Side.RIGHT, lane.right_adjacent_lanes), (Side.LEFT, lane.left_adjacent_lanes)):
                own = chains[side]
                if own is None:
                    continue
                for rel in rels:
                    self._check_adjacent_geometry(lane, side, own, rel, reg, cfg, add)
        return out

    def _check_chain(
        self,
        lane: LogicalLane,
        side: Side,
        reg: Registry,
        cfg: TopologyConfig,
        add: Callable[[ViolationKind, str], None],
    ) -> Optional[List[LogicalLaneBoundary]]:
        """Checks one boundary chain; returns it when fully resolved."""
        name = f"{side.value}_boundary_id"
        ids = lane.boundary_ids(side)
        if not ids:
            add(ViolationKind.COVERAGE_GAP, f"{name} is empty, [{lane.start_s}, {lane.end_s}] uncovered")
            return None

        chain: List[LogicalLaneBoundary] = []
        for bid in ids:
            try:
                chain.append(reg.boundary(bid, lane.id))
            except UnresolvedReference as e:
                add(ViolationKind.UNRESOLVED_REFERENCE, f"{name}: {e}")
        if len(chain) != len(ids):
            return None

        for b in chain:
            if b.reference_line_id != lane.reference_line_id:
                add(
                    ViolationKind.REFERENCE_LINE_MISMATCH,
                    f"{name} {b.id!r} uses reference line {b.reference_line_id!r}, "
                    f"lane uses {lane.reference_line_id!r}",
                )

        tol = cfg.coverage_tolerance
        for a, b in zip(chain, chain[1:]):
            if b.s_start < a.s_start - tol:
                add(ViolationKind.CHAIN_ORDER, f"{name} not sorted by start s ({a.id!r} before {b.id!r})")
                return chain

        first = chain[0]
        if first.s_start > lane.start_s + tol:
            add(ViolationKind.COVERAGE_GAP, f"{name} starts at {first.s_start}, lane starts at {lane.start_s}")
        elif first.s_start < lane.start_s - tol and cfg.strict_boundary_extent:
            add(ViolationKind.COVERAGE_EXTENT, f"{name} starts at {first.s_start} before lane start {lane.start_s}")

        for a, b in zip(chain, chain[1:]):
            gap = b.s_start - a.s_end
            if gap > tol:
                add(ViolationKind.COVERAGE_GAP, f"{name} gap between {a.id!r} and {b.id!r}: [{a.s_end}, {b.s_start}]")
            elif gap < -tol:
                add(ViolationKind.COVERAGE_OVERLAP, f"{name} overlap between {a.id!r} and {b.id!r}: [{b.s_start}, {a.s_end}]")
            else:
                pa = a.last_point
                pb = b.first_point
                dist = math.sqrt((pa.x - pb.x) ** 2 + (pa.y - pb.y) ** 2 + (pa.z - pb.z) ** 2)
                if dist > cfg.endpoint_tolerance:
                    add(
                        ViolationKind.CHAIN_DISCONTINUITY,
                        f"{name} {a.id!r} and {b.id!r} do not share an endpoint (distance {dist:.6f} m)",
                    )

        last = chain[-1]
        if last.s_end < lane.end_s - tol:
            add(ViolationKind.COVERAGE_GAP, f"{name} ends at {last.s_end}, lane ends at {lane.end_s}")
        elif last.s_end > lane.end_s + tol and cfg.strict_boundary_extent:
            add(ViolationKind.COVERAGE_EXTENT, f"{name} ends at {last.s_end} after lane end {lane.end_s}")
        return chain

    @staticmethod
    def _check_relations(
        lane: LogicalLane,
        name: str,
        rels: Sequence[LaneRelation],
        reg: Registry,
        cfg: TopologyConfig,
        add: Callable[[ViolationKind, str], None],
    ) -> None:
        keys = [r.sort_key for r in rels]
        if keys != sorted(keys):
            add(ViolationKind.RELATION_ORDER, f"{name} not ordered by (start_s, end_s)")

        tol = cfg.coverage_tolerance
        for r in rels:
            if not r.end_s > r.start_s:
                add(ViolationKind.RELATION_RANGE, f"{name} {r.other_lane_id!r}: end_s {r.end_s} <= start_s {r.start_s}")
            elif r.start_s < lane.start_s - tol or r.end_s > lane.end_s + tol:
                add(
                    ViolationKind.RELATION_RANGE,
                    f"{name} {r.other_lane_id!r}: [{r.start_s}, {r.end_s}] outside lane [{lane.start_s}, {lane.end_s}]",
                )
            try:
                other = reg.lane(r.other_lane_id, lane.id)
            except UnresolvedReference as e:
                add(ViolationKind.UNRESOLVED_REFERENCE, f"{name}: {e}")
                continue
            lo = min(r.start_s_other, r.end_s_other)
            hi = max(r.start_s_other, r.end_s_other)
            if lo < other.start_s - tol or hi > other.end_s + tol:
                add(
                    ViolationKind.RELATION_RANGE,
                    f"{name} {r.other_lane_id!r}: other span [{r.start_s_other}, {r.end_s_other}] "
                    f"outside other lane [{other.start_s}, {other.end_s}]",
                )

    @staticmethod
    def _check_connections(
        lane: LogicalLane,
        name: str,
        conns: Sequence[LaneConnection],
        reg: Registry,
        add: Callable[[ViolationKind, str], None],
    ) -> None:
        keys: List[Tuple[float, float]] = []
        for c in conns:
            try:
                other = reg.lane(c.other_lane_id, lane.id)
            except UnresolvedReference as e:
                add(ViolationKind.UNRESOLVED_REFERENCE, f"{name}: {e}")
                continue
            keys.append((other.start_s, other.end_s))
        if len(keys) == len(conns) and keys != sorted(keys):
            add(ViolationKind.RELATION_ORDER, f"{name} not ordered by (start_s, end_s) of the other lanes")

    @staticmethod
    def _check_adjacent_geometry(
        lane: LogicalLane,
        side: Side,
        own: List[LogicalLaneBoundary],
        rel: LaneRelation,
        reg: Registry,
        cfg: TopologyConfig,
        add: Callable[[ViolationKind, str], None],
    ) -> None:
        """Our boundary on `side` must coincide in XY with the facing boundary of the neighbour."""
        try:
            other = reg.lane(rel.other_lane_id, lane.id)
            # an antiparallel neighbour faces us with the same-named side
            parallel = rel.end_s_other >= rel.start_s_other
            facing = side.opposite if parallel else side
            theirs = other.boundary_chain(facing)
        except UnresolvedReference:
            return
        if not rel.end_s > rel.start_s:
            return

        n = max(2, cfg.geometry_samples)
        worst = 0.0
        worst_s = rel.start_s
        for k in range(n):
            s = rel.start_s + (rel.end_s - rel.start_s) * k / (n - 1)
            mine = chain_member_at(own, s)
            their = chain_member_at(theirs, rel.other_s(s))
            if mine is None or their is None:
                continue
            p = mine.point_at(s)
            q = their.point_at(rel.other_s(s))
            dist = math.hypot(p.x - q.x, p.y - q.y)
            if dist > worst:
                worst = dist
                worst_s = s
        if worst > cfg.geometry_tolerance:
            add(
                ViolationKind.ADJACENT_GEOMETRY,
                f"{side.value} boundary differs from lane {rel.other_lane_id!r} by {worst:.4f} m at s={worst_s}",
            )


def validate(snapshot: Snapshot, config: Optional[TopologyConfig] = None) -> ValidationReport:
    return TopologyValidator(config).validate(snapshot)
