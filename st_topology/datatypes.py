"""
Plain records shared by the engine.

Supports:
- Point3D / PolylinePoint / BoundaryPoint: positions in the shared world frame
- PassingRule, LaneSubtype: closed tag sets from the exchange schema
- Side, LaneEnd: selectors for the lane traversal accessors
- LaneRelation, LaneConnection, ExternalReference: lane-to-lane links
- ProjectionResult: output of an ST projection
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Sequence, Union

import numpy as np

from .errors import MalformedRecord


Identifier = Union[int, str]


def require(d: Dict[str, Any], key: str) -> Any:
    """d[key], raising MalformedRecord when the field is absent."""
    try:
        return d[key]
    except KeyError:
        raise MalformedRecord(f"missing required field {key!r}", d.get("id")) from None


def _parse_tag(cls, value: Any, prefix: str):
    if isinstance(value, cls):
        return value
    try:
        if isinstance(value, str):
            name = value.upper()
            if name.startswith(prefix):
                name = name[len(prefix):]
            return cls[name]
        return cls(int(value))
    except (KeyError, ValueError, TypeError):
        raise MalformedRecord(f"unknown {cls.__name__} {value!r}") from None


@dataclass(frozen=True)
class Point3D:
    """World position (x, y, z)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, a: Sequence[float]) -> Point3D:
        return cls(float(a[0]), float(a[1]), float(a[2]) if len(a) > 2 else 0.0)

    @classmethod
    def coerce(cls, value: Any) -> Point3D:
        """Accept a Point3D, a {x, y, z} mapping or an [x, y(, z)] sequence."""
        if isinstance(value, Point3D):
            return value
        if isinstance(value, dict):
            return cls.from_dict(value)
        return cls.from_array(value)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> Point3D:
        return cls(
            x=float(d.get("x", 0)),
            y=float(d.get("y", 0)),
            z=float(d.get("z", 0)),
        )


@dataclass(frozen=True)
class PolylinePoint:
    """Reference line point: world position plus S."""

    position: Point3D
    s: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> PolylinePoint:
        pos = d.get("world_position", d.get("position", {}))
        return cls(
            position=Point3D.coerce(pos),
            s=float(d.get("s_position", d.get("s", 0))),
        )


@dataclass(frozen=True)
class BoundaryPoint:
    """Logical lane boundary point: world position plus S and T."""

    position: Point3D
    s: float
    t: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> BoundaryPoint:
        return cls(
            position=Point3D.coerce(d.get("position", {})),
            s=float(d.get("s_position", d.get("s", 0))),
            t=float(d.get("t_position", d.get("t", 0))),
        )


class PassingRule(IntEnum):
    """Crossing permissions derived from road markings alone."""

    UNKNOWN = 0
    NONE_ALLOWED = 1
    INCREASING_T = 2
    DECREASING_T = 3
    BOTH_ALLOWED = 4
    OTHER = 5

    def allows(self, increasing_t: bool) -> bool:
        """
        Whether a crossing in the given T direction is permitted.

        Raises ValueError for UNKNOWN and OTHER, which carry no answer.
        """
        if self is PassingRule.NONE_ALLOWED:
            return False
        if self is PassingRule.INCREASING_T:
            return increasing_t
        if self is PassingRule.DECREASING_T:
            return not increasing_t
        if self is PassingRule.BOTH_ALLOWED:
            return True
        if self in (PassingRule.UNKNOWN, PassingRule.OTHER):
            raise ValueError(f"passing rule {self.name} does not determine crossing")
        raise AssertionError(f"unhandled passing rule {self!r}")

    @classmethod
    def parse(cls, value: Any) -> PassingRule:
        return _parse_tag(cls, value, "PASSING_RULE_")


class LaneSubtype(IntEnum):
    """Physical lane subtype a logical lane is classified as."""

    UNKNOWN = 0
    OTHER = 1
    NORMAL = 2
    BIKING = 3
    SIDEWALK = 4
    PARKING = 5
    STOP = 6
    RESTRICTED = 7
    BORDER = 8
    SHOULDER = 9
    EXIT = 10
    ENTRY = 11
    ONRAMP = 12
    OFFRAMP = 13
    CONNECTINGRAMP = 14

    @classmethod
    def parse(cls, value: Any) -> LaneSubtype:
        return _parse_tag(cls, value, "SUBTYPE_")


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> Side:
        return Side.RIGHT if self is Side.LEFT else Side.LEFT


class LaneEnd(Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class ExternalReference:
    """Opaque pointer back to the source the entity was derived from."""

    reference: str = ""
    type: str = ""
    identifier: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ExternalReference:
        return cls(
            reference=str(d.get("reference", "")),
            type=str(d.get("type", "")),
            identifier=[str(i) for i in d.get("identifier", [])],
        )


@dataclass(frozen=True)
class LaneRelation:
    """
    Span shared with another lane.

    start_s/end_s are measured on this lane's reference line; the *_other
    pair is the same span on the other lane's reference line and may be
    decreasing when the two lines run antiparallel.
    """

    other_lane_id: Identifier
    start_s: float
    end_s: float
    start_s_other: float
    end_s_other: float

    @property
    def sort_key(self):
        return (self.start_s, self.end_s)

    def other_s(self, s: float) -> float:
        """Map an S on this lane's line to the other lane's line."""
        span = self.end_s - self.start_s
        if span == 0.0:
            return self.start_s_other
        frac = (s - self.start_s) / span
        return self.start_s_other + frac * (self.end_s_other - self.start_s_other)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> LaneRelation:
        return cls(
            other_lane_id=require(d, "other_lane_id"),
            start_s=float(d.get("start_s", 0)),
            end_s=float(d.get("end_s", 0)),
            start_s_other=float(d.get("start_s_other", 0)),
            end_s_other=float(d.get("end_s_other", 0)),
        )


@dataclass(frozen=True)
class LaneConnection:
    """Predecessor/successor link; at_begin_of_other_lane tells which end of the other lane meets us."""

    other_lane_id: Identifier
    at_begin_of_other_lane: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> LaneConnection:
        return cls(
            other_lane_id=require(d, "other_lane_id"),
            at_begin_of_other_lane=bool(d.get("at_begin_of_other_lane", True)),
        )


@dataclass(frozen=True)
class ProjectionResult:
    s: float
    t: float
    tangent_angle: float
    segment_index: int = 0
    nearest: Point3D = field(default_factory=Point3D)
