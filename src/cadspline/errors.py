"""Exception types and result codes raised or returned by curve operations."""

from __future__ import annotations

from enum import IntEnum


class BSplineError(Exception):
    """Base class of every error raised by :mod:`cadspline`."""


class ConstructionError(BSplineError, ValueError):
    """Invalid degree, knots, multiplicities, poles or weights.

    Raised before any curve buffer is replaced, so the target object is left
    unchanged.
    """


class RangeError(BSplineError, IndexError):
    """Index argument outside its valid bounds."""


class DomainError(BSplineError, ValueError):
    """Operation not defined for the given curve state or parameter range."""


class MoveStatus(IntEnum):
    """Result of a point-and-tangent constrained edit.

    Attributes:
        SUCCESS: The curve was modified and satisfies both constraints.
        INVALID_CONDITIONS: The end conditions are outside ``[-1, degree]`` or
            leave too few free poles.
        OUT_OF_RANGE: The parameter is too close to a constrained end.
        SINGULAR_SYSTEM: The 2x2 correction system is singular within the
            requested tolerance.
    """

    SUCCESS = 0
    INVALID_CONDITIONS = 1
    OUT_OF_RANGE = 2
    SINGULAR_SYSTEM = 3
