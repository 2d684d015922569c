"""
S/T reference-line geometry and logical-lane topology engine.

Provides:
- Polyline / ReferenceLine: S-parametrized polylines with extension beyond both ends
- project: nearest-point ST projection with deterministic tie-breaking
- LogicalLaneBoundary / LogicalLane: ST-anchored boundaries and lanes
- Snapshot / Registry: one immutable scene and its Identifier lookups
- TopologyValidator: batch invariant checks producing a ValidationReport
"""

from .boundary import LogicalLaneBoundary
from .config import TopologyConfig
from .datatypes import (
    BoundaryPoint,
    ExternalReference,
    LaneConnection,
    LaneEnd,
    LaneRelation,
    LaneSubtype,
    PassingRule,
    Point3D,
    PolylinePoint,
    ProjectionResult,
    Side,
)
from .errors import (
    InvariantViolation,
    MalformedPolyline,
    MalformedRecord,
    NonMonotonicInput,
    OutOfRange,
    OutOfSequence,
    TopologyError,
    UnresolvedReference,
)
from .lane import LogicalLane
from .polyline import Polyline
from .projection import project
from .reference_line import ReferenceLine
from .registry import Registry
from .snapshot import BuildError, Snapshot
from .validator import TopologyValidator, ValidationReport, Violation, ViolationKind, validate

__all__ = [
    "BoundaryPoint",
    "BuildError",
    "ExternalReference",
    "InvariantViolation",
    "LaneConnection",
    "LaneEnd",
    "LaneRelation",
    "LaneSubtype",
    "LogicalLane",
    "LogicalLaneBoundary",
    "MalformedPolyline",
    "MalformedRecord",
    "NonMonotonicInput",
    "OutOfRange",
    "OutOfSequence",
    "PassingRule",
    "Point3D",
    "Polyline",
    "PolylinePoint",
    "ProjectionResult",
    "ReferenceLine",
    "Registry",
    "Side",
    "Snapshot",
    "TopologyConfig",
    "TopologyError",
    "TopologyValidator",
    "UnresolvedReference",
    "ValidationReport",
    "Violation",
    "ViolationKind",
    "project",
    "validate",
]
