"""Knot vectors stored as (knot, multiplicity) pairs.

This module provides the :class:`KnotVector` container with the analysis used
by curves (pole count relation, flattening, domain indices, distribution and
continuity classification) and a helper to generate uniform knot vectors.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
import numpy.typing as npt

from ._knots_impl import (
    _first_knot_index_impl,
    _flatten_knots_impl,
    _last_knot_index_impl,
    _num_poles_impl,
)
from .errors import ConstructionError, RangeError
from .tolerance import epsilon


class KnotDistribution(Enum):
    """Classification of a knot vector.

    Attributes:
        NON_UNIFORM (KnotDistribution): None of the forms below.
        UNIFORM (KnotDistribution): Equally spaced knots, all of multiplicity 1.
        QUASI_UNIFORM (KnotDistribution): Equally spaced knots, multiplicity 1
            except clamped (degree + 1) ends.
        PIECEWISE_BEZIER (KnotDistribution): Equally spaced knots whose
            interior multiplicity is the degree (clamped ends), or only two knots.
    """

    NON_UNIFORM = "non_uniform"
    UNIFORM = "uniform"
    QUASI_UNIFORM = "quasi_uniform"
    PIECEWISE_BEZIER = "piecewise_bezier"


class MultiplicityDistribution(Enum):
    """Classification of a multiplicity vector.

    Attributes:
        NON_CONSTANT (MultiplicityDistribution): Arbitrary multiplicities.
        CONSTANT (MultiplicityDistribution): All multiplicities equal.
        QUASI_CONSTANT (MultiplicityDistribution): Equal interior
            multiplicities and equal end multiplicities.
    """

    NON_CONSTANT = "non_constant"
    CONSTANT = "constant"
    QUASI_CONSTANT = "quasi_constant"


class Continuity(Enum):
    """Global parametric continuity of a curve.

    Attributes:
        C0 (Continuity): Continuous.
        C1 (Continuity): Continuous first derivative.
        C2 (Continuity): Continuous second derivative.
        C3 (Continuity): Continuous third derivative (or better, with knots).
        CN (Continuity): Infinitely differentiable (no interior knots).
    """

    C0 = "C0"
    C1 = "C1"
    C2 = "C2"
    C3 = "C3"
    CN = "CN"

    @property
    def order(self) -> int | None:
        """Number of continuous derivatives, ``None`` for :attr:`CN`."""
        if self is Continuity.CN:
            return None
        return int(self.value[1])


_CONTINUITY_BY_ORDER = (Continuity.C0, Continuity.C1, Continuity.C2, Continuity.C3)


def _read_only(array: npt.NDArray[np.generic]) -> npt.NDArray[np.generic]:
    """Read-only view of an array."""
    view = array.view()
    view.flags.writeable = False
    return view


def _check_knot_data(knots: npt.NDArray[np.float64], mults: npt.NDArray[np.int64]) -> None:
    """Validate raw knot and multiplicity arrays.

    Args:
        knots (npt.NDArray[np.float64]): Knot values.
        mults (npt.NDArray[np.int64]): Multiplicities.

    Raises:
        ConstructionError: If the arrays are not 1D, have different lengths,
            hold fewer than two knots, non-positive multiplicities or knots
            that are not strictly increasing.
    """
    if knots.ndim != 1 or mults.ndim != 1:
        raise ConstructionError("Knots and multiplicities must be 1D arrays")
    if knots.size != mults.size:
        raise ConstructionError(
            f"Knots and multiplicities must have the same length ({knots.size} != {mults.size})"
        )
    if knots.size < 2:
        raise ConstructionError("At least two knots are required")
    if np.any(mults < 1):
        raise ConstructionError("Multiplicities must be positive")
    if not np.all(np.isfinite(knots)):
        raise ConstructionError("Knots must be finite")
    check_knots_increasing(knots)


def check_knots_increasing(knots: npt.NDArray[np.float64]) -> None:
    """Check that consecutive knots are distinct floating-point values.

    Each gap must exceed the float spacing at the lower knot.

    Args:
        knots (npt.NDArray[np.float64]): Knot values.

    Raises:
        ConstructionError: If two consecutive knots are not strictly increasing.
    """
    gaps = np.diff(knots)
    spacing = np.spacing(np.abs(knots[:-1]))
    bad = np.flatnonzero(gaps <= spacing)
    if bad.size > 0:
        i = int(bad[0])
        raise ConstructionError(
            f"Knots must be strictly increasing (knot {i + 1} = {knots[i + 1]} "
            f"follows {knots[i]})"
        )


class KnotVector:
    """Distinct knot values with their multiplicities.

    The vector owns its buffers; :attr:`knots` and :attr:`multiplicities`
    return read-only views. Whether the vector is periodic and which degree it
    supports are properties of the curve, so the analysis methods take them as
    arguments.

    Attributes:
        _knots (npt.NDArray[np.float64]): Strictly increasing knot values.
        _mults (npt.NDArray[np.int64]): Multiplicity of every knot.
    """

    _knots: npt.NDArray[np.float64]
    _mults: npt.NDArray[np.int64]

    def __init__(self, knots: npt.ArrayLike, multiplicities: npt.ArrayLike) -> None:
        """Initialize a knot vector.

        Args:
            knots (npt.ArrayLike): Strictly increasing knot values.
            multiplicities (npt.ArrayLike): Positive integer multiplicities.

        Raises:
            ConstructionError: If the data is invalid (see
                :func:`check_knots_increasing`).
        """
        knots_array = np.array(knots, dtype=np.float64)
        mults_raw = np.asarray(multiplicities)
        if mults_raw.size > 0 and not np.all(np.equal(np.mod(mults_raw, 1), 0)):
            raise ConstructionError("Multiplicities must be integers")
        mults_array = np.array(mults_raw, dtype=np.int64)
        _check_knot_data(knots_array, mults_array)
        self._knots = knots_array
        self._mults = mults_array

    def __len__(self) -> int:
        return int(self._knots.size)

    def __repr__(self) -> str:
        return f"KnotVector(knots={self._knots.tolist()}, multiplicities={self._mults.tolist()})"

    def copy(self) -> KnotVector:
        """Independent copy of the knot vector."""
        return KnotVector(self._knots, self._mults)

    @property
    def knots(self) -> npt.NDArray[np.float64]:
        """Read-only view of the knot values."""
        return _read_only(self._knots)

    @property
    def multiplicities(self) -> npt.NDArray[np.int64]:
        """Read-only view of the multiplicities."""
        return _read_only(self._mults)

    @property
    def period(self) -> float:
        """Distance between the last and the first knot."""
        return float(self._knots[-1] - self._knots[0])

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._knots.size:
            raise RangeError(f"Knot index {index} out of range [0, {self._knots.size - 1}]")

    def knot(self, index: int) -> float:
        """Knot value at ``index``.

        Raises:
            RangeError: If the index is out of range.
        """
        self._check_index(index)
        return float(self._knots[index])

    def multiplicity(self, index: int) -> int:
        """Multiplicity of the knot at ``index``.

        Raises:
            RangeError: If the index is out of range.
        """
        self._check_index(index)
        return int(self._mults[index])

    def num_poles(self, degree: int, periodic: bool) -> int:
        """Number of poles a curve of the given degree needs on this vector.

        Args:
            degree (int): Polynomial degree.
            periodic (bool): Whether the curve is periodic.

        Returns:
            int: Pole count; 0 if the multiplicities are incompatible with the
            degree.
        """
        return int(_num_poles_impl(degree, periodic, self._mults))

    def first_index(self, degree: int, periodic: bool) -> int:
        """Index of the knot at which the parametric domain starts."""
        return int(_first_knot_index_impl(degree, periodic, self._mults))

    def last_index(self, degree: int, periodic: bool) -> int:
        """Index of the knot at which the parametric domain ends."""
        return int(_last_knot_index_impl(degree, periodic, self._mults))

    def flatten(self, degree: int, periodic: bool) -> npt.NDArray[np.float64]:
        """Flattened knot sequence, each knot repeated by its multiplicity.

        For a periodic curve ``degree + 1 - multiplicities[0]`` knots of the
        periodic extension are added on each side. For a non-periodic uniform
        vector the flat sequence is the knot buffer itself (no copy).

        Args:
            degree (int): Polynomial degree.
            periodic (bool): Whether the curve is periodic.

        Returns:
            npt.NDArray[np.float64]: Read-only flat knot sequence.
        """
        return _read_only(self._flatten_buffer(degree, periodic))

    def _flatten_buffer(self, degree: int, periodic: bool) -> npt.NDArray[np.float64]:
        """Writable flat sequence; shares the knot buffer for uniform vectors."""
        if not periodic and self.distribution(degree) == KnotDistribution.UNIFORM:
            return self._knots
        return _flatten_knots_impl(self._knots, self._mults, degree, periodic)

    def is_uniform_spacing(self) -> bool:
        """Whether consecutive knot gaps are equal within floating-point spacing."""
        gaps = np.diff(self._knots)
        for i in range(1, gaps.size):
            eps = epsilon(self._knots[i]) + epsilon(self._knots[i + 1]) + epsilon(gaps[i - 1])
            if abs(gaps[i] - gaps[i - 1]) > eps:
                return False
        return True

    def multiplicity_distribution(self) -> MultiplicityDistribution:
        """Classify the multiplicity vector.

        Returns:
            MultiplicityDistribution: ``CONSTANT`` if all multiplicities are
            equal, ``QUASI_CONSTANT`` if the ends are equal and the interior
            is constant, ``NON_CONSTANT`` otherwise.
        """
        mults = self._mults
        last = mults.size - 1
        first_mult = mults[0]
        form = MultiplicityDistribution.CONSTANT
        mult = mults[1]
        i = 1
        while form != MultiplicityDistribution.NON_CONSTANT and i <= last:
            if i == 1:
                if mult != first_mult:
                    form = MultiplicityDistribution.QUASI_CONSTANT
            elif i == last:
                expected = first_mult if form == MultiplicityDistribution.QUASI_CONSTANT else mult
                if mults[i] != expected:
                    form = MultiplicityDistribution.NON_CONSTANT
            else:
                if mults[i] != mult:
                    form = MultiplicityDistribution.NON_CONSTANT
                mult = mults[i]
            i += 1
        return form

    def distribution(self, degree: int) -> KnotDistribution:
        """Classify the knot vector for the given degree.

        Args:
            degree (int): Polynomial degree.

        Returns:
            KnotDistribution: Distribution of the knots.
        """
        if not self.is_uniform_spacing():
            return KnotDistribution.NON_UNIFORM

        form = self.multiplicity_distribution()
        if form == MultiplicityDistribution.CONSTANT:
            if self._knots.size == 2:
                return KnotDistribution.PIECEWISE_BEZIER
            if self._mults[0] == 1:
                return KnotDistribution.UNIFORM
        elif form == MultiplicityDistribution.QUASI_CONSTANT and self._mults[0] == degree + 1:
            interior = self._mults[1]
            if interior == degree:
                return KnotDistribution.PIECEWISE_BEZIER
            if interior == 1:
                return KnotDistribution.QUASI_UNIFORM
        return KnotDistribution.NON_UNIFORM

    def max_interior_multiplicity(self, degree: int, periodic: bool) -> int:
        """Largest multiplicity of a knot strictly inside the parametric domain.

        For periodic vectors the seam knot is inside the domain as well.

        Returns:
            int: Maximum interior multiplicity, 0 if there is no interior knot.
        """
        first = self.first_index(degree, periodic)
        last = self.last_index(degree, periodic)
        interior = self._mults[first + 1 : last]
        max_mult = int(interior.max()) if interior.size > 0 else 0
        if periodic:
            max_mult = max(max_mult, int(self._mults[0]))
        return max_mult

    def continuity(self, degree: int, periodic: bool) -> Continuity:
        """Global continuity of a curve of the given degree on this vector."""
        max_mult = self.max_interior_multiplicity(degree, periodic)
        if max_mult == 0:
            return Continuity.CN
        return _CONTINUITY_BY_ORDER[min(max(degree - max_mult, 0), 3)]

    def set_value(self, index: int, value: float) -> None:
        """Move one knot in place, keeping the vector strictly increasing.

        Args:
            index (int): Knot index.
            value (float): New knot value.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the value does not lie strictly between the
                neighbouring knots.
        """
        self._check_index(index)
        margin = abs(epsilon(value))
        if index > 0 and value - self._knots[index - 1] <= margin:
            raise ConstructionError(
                f"Knot {index} must be greater than its predecessor {self._knots[index - 1]}"
            )
        if index < self._knots.size - 1 and self._knots[index + 1] - value <= margin:
            raise ConstructionError(
                f"Knot {index} must be less than its successor {self._knots[index + 1]}"
            )
        self._knots[index] = value


def create_uniform_knots(
    num_intervals: int,
    degree: int,
    continuity: int | None = None,
    domain: tuple[float, float] | None = None,
    periodic: bool = False,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
    """Create uniformly spaced knots and their multiplicities.

    Open vectors have ends of multiplicity ``degree + 1`` so the curve
    interpolates its first and last poles; periodic vectors use the interior
    multiplicity everywhere.

    Args:
        num_intervals (int): Number of intervals in the domain. Must be positive.
        degree (int): Curve degree. Must be positive.
        continuity (int | None): Continuity at interior knots, between 0 and
            ``degree - 1``. Defaults to ``degree - 1``.
        domain (tuple[float, float] | None): Domain as (start, end).
            Defaults to (0.0, 1.0).
        periodic (bool): Whether to build a periodic vector.

    Returns:
        tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]: Knots and
        multiplicities.

    Raises:
        ValueError: If any parameter is invalid.

    Example:
        >>> create_uniform_knots(2, 2)
        (array([0. , 0.5, 1. ]), array([3, 1, 3]))
    """
    start, end = (0.0, 1.0) if domain is None else (float(domain[0]), float(domain[1]))
    continuity = degree - 1 if continuity is None else continuity

    if start >= end:
        raise ValueError("domain[0] must be less than domain[1]")
    if num_intervals < 1:
        raise ValueError("num_intervals must be positive")
    if degree < 1:
        raise ValueError("degree must be positive")
    if continuity < 0 or continuity >= degree:
        raise ValueError(f"Continuity must be between 0 and {degree - 1} for degree {degree}.")

    knots = np.linspace(start, end, num_intervals + 1, dtype=np.float64)
    mults = np.full(num_intervals + 1, degree - continuity, dtype=np.int64)
    if not periodic:
        mults[0] = mults[-1] = degree + 1
    return knots, mults
