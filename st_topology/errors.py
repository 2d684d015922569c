"""
Error kinds raised by the geometry and topology engine.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple


class TopologyError(Exception):
    """Base class for all engine errors."""


class MalformedPolyline(TopologyError, ValueError):
    """A polyline violates its structural rules (point count, S ordering)."""

    def __init__(self, message: str, entity_id: Any = None):
        self.entity_id = entity_id
        super().__init__(message if entity_id is None else f"{entity_id}: {message}")


class OutOfSequence(MalformedPolyline):
    """Fewer than two points were supplied."""


class NonMonotonicInput(MalformedPolyline):
    """S values are not strictly increasing, or an S-delta is below the 2D distance."""


class MalformedRecord(TopologyError, ValueError):
    """A record lacks a required field or carries an unknown enumeration tag."""

    def __init__(self, message: str, entity_id: Any = None):
        self.entity_id = entity_id
        super().__init__(message if entity_id is None else f"{entity_id}: {message}")


class OutOfRange(TopologyError, ValueError):
    """Query S lies outside the domain of a bounded entity."""

    def __init__(self, entity_id: Any, s: float, domain: Tuple[float, float]):
        self.entity_id = entity_id
        self.s = s
        self.domain = domain
        super().__init__(
            f"s={s} outside [{domain[0]}, {domain[1]}] of {entity_id}"
        )


class UnresolvedReference(TopologyError, KeyError):
    """An Identifier does not resolve to an entity of the expected kind."""

    def __init__(self, kind: str, missing_id: Any, referrer: Any = None):
        self.kind = kind
        self.missing_id = missing_id
        self.referrer = referrer
        msg = f"unknown {kind} id {missing_id!r}"
        if referrer is not None:
            msg += f" (referenced by {referrer!r})"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError would quote the message otherwise
        return str(self.args[0])


class InvariantViolation(TopologyError):
    """Raised on request when a validation report is not clean."""

    def __init__(self, violations: Sequence[Any], message: Optional[str] = None):
        self.violations: List[Any] = list(violations)
        super().__init__(message or f"{len(self.violations)} invariant violation(s)")
