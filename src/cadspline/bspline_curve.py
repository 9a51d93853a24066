"""Rational and non-rational B-spline curves in any ambient dimension.

A :class:`BSplineCurve` owns a :class:`~cadspline.knots.KnotVector`, a
:class:`~cadspline.control_polygon.ControlPolygon` and a
:class:`~cadspline.span_cache.SpanCache`. Structural operations (degree
elevation, knot insertion and removal, reversal, segmentation, periodicity
changes) validate their inputs, build the new knot vector and polygon, and
replace the old ones together. Elementwise edits (poles, weights, single knot
values) modify the buffers in place. Every change invalidates the cache.

Indices are 0-based. Pole ``j`` is attached to the ``j``-th basis function
of the flattened knot sequence; for periodic curves pole indices wrap around.
"""

from __future__ import annotations

import bisect
import logging
from typing import Final

import numpy as np
import numpy.typing as npt

from ._bezier_impl import (
    _basis_funs_impl,
    _bezier_derivatives_impl,
    _rational_derivatives_impl,
    _span_to_bezier_impl,
)
from ._knots_impl import _locate_knot_impl, _locate_span_impl, _num_poles_impl
from ._modify_impl import (
    _elevate_degree_impl,
    _insert_knot_once_impl,
    _remove_knot_impl,
    bezier_elevation_matrix,
    group_flat_knots,
    refit_poles,
    removal_tolerance,
    schoenberg_points,
)
from .control_polygon import ControlPolygon
from .errors import ConstructionError, DomainError, MoveStatus, RangeError
from .knots import Continuity, KnotDistribution, KnotVector
from .span_cache import SpanCache
from .tolerance import epsilon, get_default_tolerance, get_resolution

logger = logging.getLogger(__name__)

MAX_DEGREE: Final[int] = 25


def _check_degree(degree: int) -> None:
    if not 1 <= degree <= MAX_DEGREE:
        raise ConstructionError(f"Degree must be between 1 and {MAX_DEGREE}, got {degree}")


def _check_pole_count(knot_vector: KnotVector, degree: int, periodic: bool, num_poles: int) -> None:
    expected = knot_vector.num_poles(degree, periodic)
    if expected != num_poles:
        raise ConstructionError(
            f"Knots and multiplicities require {expected} poles for degree {degree}"
            f"{' (periodic)' if periodic else ''}, got {num_poles}"
        )


class BSplineCurve:
    """A B-spline curve with optional weights and periodicity.

    Attributes:
        _degree (int): Polynomial degree.
        _periodic (bool): Whether the curve is periodic.
        _knot_vector (KnotVector): Distinct knots and multiplicities.
        _polygon (ControlPolygon): Poles and weights.
        _flat_knots (npt.NDArray[np.float64]): Flattened knot sequence.
        _knot_distribution (KnotDistribution): Classification of the knots.
        _continuity (Continuity): Global continuity.
        _last_span (int): Index of the last non-degenerate span of the domain.
        _cache (SpanCache): Evaluation cache.
    """

    _degree: int
    _periodic: bool
    _knot_vector: KnotVector
    _polygon: ControlPolygon
    _flat_knots: npt.NDArray[np.float64]
    _knot_distribution: KnotDistribution
    _continuity: Continuity
    _last_span: int
    _cache: SpanCache

    def __init__(
        self,
        poles: npt.ArrayLike,
        knots: npt.ArrayLike,
        multiplicities: npt.ArrayLike,
        degree: int,
        periodic: bool = False,
        weights: npt.ArrayLike | None = None,
        check_rational: bool = True,
    ) -> None:
        """Initialize a curve.

        Checks run in this order: degree range, pole count, knot and
        multiplicity lengths, strictly increasing knots, pole count relation,
        weights. Nothing is stored if a check fails.

        Args:
            poles (npt.ArrayLike): Poles of shape (num_poles, dim).
            knots (npt.ArrayLike): Strictly increasing distinct knots.
            multiplicities (npt.ArrayLike): Knot multiplicities.
            degree (int): Polynomial degree, between 1 and :data:`MAX_DEGREE`.
            periodic (bool): Whether the curve is periodic.
            weights (npt.ArrayLike | None): Optional pole weights.
            check_rational (bool): If True, equal weights are dropped and the
                curve is non-rational.

        Raises:
            ConstructionError: If any check fails.
        """
        degree = int(degree)
        periodic = bool(periodic)
        _check_degree(degree)
        points = ControlPolygon(poles)
        knot_vector = KnotVector(knots, multiplicities)
        _check_pole_count(knot_vector, degree, periodic, points.num_points)
        polygon = points if weights is None else ControlPolygon(poles, weights, check_rational)

        self._degree = degree
        self._periodic = periodic
        self._knot_vector = knot_vector
        self._polygon = polygon
        self._cache = SpanCache(degree, polygon.dimension, polygon.is_rational)
        self._update_knots()

    def __repr__(self) -> str:
        return (
            f"BSplineCurve(degree={self._degree}, num_poles={self.num_poles}, "
            f"dimension={self.dimension}, periodic={self._periodic}, rational={self.is_rational})"
        )

    def copy(self) -> BSplineCurve:
        """Independent copy of the curve."""
        return BSplineCurve(
            self._polygon.points,
            self._knot_vector.knots,
            self._knot_vector.multiplicities,
            self._degree,
            self._periodic,
            self._polygon.weights if self.is_rational else None,
            check_rational=False,
        )

    @staticmethod
    def max_degree() -> int:
        """Highest supported degree."""
        return MAX_DEGREE

    # ------------------------------------------------------------------
    # Internal state management
    # ------------------------------------------------------------------

    def _update_knots(self) -> None:
        """Recompute the data derived from the knots and invalidate the cache."""
        kv = self._knot_vector
        self._flat_knots = kv._flatten_buffer(self._degree, self._periodic)
        self._knot_distribution = kv.distribution(self._degree)
        self._continuity = kv.continuity(self._degree, self._periodic)
        self._last_span = int(
            _locate_span_impl(self._flat_knots, self._degree, self.last_parameter)
        )
        self._cache.invalidate()

    def _commit(
        self,
        degree: int,
        periodic: bool,
        knot_vector: KnotVector,
        polygon: ControlPolygon,
    ) -> None:
        """Replace the knot vector and polygon together after a final check."""
        _check_pole_count(knot_vector, degree, periodic, polygon.num_points)
        self._degree = degree
        self._periodic = periodic
        self._knot_vector = knot_vector
        self._polygon = polygon
        self._update_knots()

    def _polygon_from_homogeneous(self, poles: npt.NDArray[np.float64]) -> ControlPolygon:
        return ControlPolygon.from_homogeneous(poles, self.is_rational)

    def _normalize_parameter(self, u: float) -> float:
        """Bring a periodic parameter into ``[first_parameter, last_parameter]``."""
        u = float(u)
        if self._periodic:
            first = self.first_parameter
            last = self.last_parameter
            if u < first or u > last:
                u = first + float(np.mod(u - first, last - first))
        return u

    def _check_pole_index(self, index: int) -> None:
        if not 0 <= index < self.num_poles:
            raise RangeError(f"Pole index {index} out of range [0, {self.num_poles - 1}]")

    def _check_knot_index(self, index: int) -> None:
        if not 0 <= index < self.num_knots:
            raise RangeError(f"Knot index {index} out of range [0, {self.num_knots - 1}]")

    def _check_point(self, point: npt.ArrayLike) -> npt.NDArray[np.float64]:
        point_array = np.asarray(point, dtype=np.float64)
        if point_array.shape != (self.dimension,):
            raise ConstructionError(
                f"Expected a point of shape ({self.dimension},), got {point_array.shape}"
            )
        return point_array

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def degree(self) -> int:
        """Polynomial degree."""
        return self._degree

    @property
    def dimension(self) -> int:
        """Dimension of the ambient space."""
        return self._polygon.dimension

    @property
    def is_periodic(self) -> bool:
        """Whether the curve is periodic."""
        return self._periodic

    @property
    def is_rational(self) -> bool:
        """Whether the curve carries non-uniform weights."""
        return self._polygon.is_rational

    @property
    def num_poles(self) -> int:
        """Number of poles."""
        return self._polygon.num_points

    @property
    def num_knots(self) -> int:
        """Number of distinct knots."""
        return len(self._knot_vector)

    @property
    def poles(self) -> npt.NDArray[np.float64]:
        """Read-only view of the poles, shape (num_poles, dim)."""
        return self._polygon.points

    @property
    def weights(self) -> npt.NDArray[np.float64]:
        """Pole weights (all ones for a non-rational curve)."""
        return self._polygon.weights

    @property
    def knots(self) -> npt.NDArray[np.float64]:
        """Read-only view of the distinct knots."""
        return self._knot_vector.knots

    @property
    def multiplicities(self) -> npt.NDArray[np.int64]:
        """Read-only view of the knot multiplicities."""
        return self._knot_vector.multiplicities

    @property
    def flat_knots(self) -> npt.NDArray[np.float64]:
        """Read-only view of the flattened knot sequence."""
        view = self._flat_knots.view()
        view.flags.writeable = False
        return view

    @property
    def knot_vector(self) -> KnotVector:
        """Copy of the knot vector."""
        return self._knot_vector.copy()

    @property
    def control_polygon(self) -> ControlPolygon:
        """Copy of the control polygon."""
        return self._polygon.copy()

    @property
    def knot_distribution(self) -> KnotDistribution:
        """Classification of the knot vector."""
        return self._knot_distribution

    @property
    def continuity(self) -> Continuity:
        """Global continuity of the curve."""
        return self._continuity

    @property
    def first_knot_index(self) -> int:
        """Index of the knot at which the domain starts."""
        return self._knot_vector.first_index(self._degree, self._periodic)

    @property
    def last_knot_index(self) -> int:
        """Index of the knot at which the domain ends."""
        return self._knot_vector.last_index(self._degree, self._periodic)

    @property
    def first_parameter(self) -> float:
        """Start of the parametric domain."""
        return float(self._flat_knots[self._degree])

    @property
    def last_parameter(self) -> float:
        """End of the parametric domain."""
        return float(self._flat_knots[self._flat_knots.size - self._degree - 1])

    @property
    def period(self) -> float:
        """Length of the parametric domain of a periodic curve.

        Raises:
            DomainError: If the curve is not periodic.
        """
        if not self._periodic:
            raise DomainError("The curve is not periodic")
        return self.last_parameter - self.first_parameter

    def pole(self, index: int) -> npt.NDArray[np.float64]:
        """Copy of the pole at ``index``."""
        return self._polygon.point(index)

    def weight(self, index: int) -> float:
        """Weight of the pole at ``index``."""
        return self._polygon.weight(index)

    def knot(self, index: int) -> float:
        """Knot value at ``index``."""
        return self._knot_vector.knot(index)

    def multiplicity(self, index: int) -> int:
        """Multiplicity of the knot at ``index``."""
        return self._knot_vector.multiplicity(index)

    def is_cn(self, n: int) -> bool:
        """Whether the curve is at least ``n`` times continuously differentiable."""
        if self._continuity == Continuity.CN:
            return True
        max_mult = self._knot_vector.max_interior_multiplicity(self._degree, self._periodic)
        return n <= self._degree - max_mult

    def is_closed(self, tolerance: float | None = None) -> bool:
        """Whether the start and end points coincide within ``tolerance``."""
        if tolerance is None:
            tolerance = get_default_tolerance(np.float64)
        return bool(np.linalg.norm(self.end_point() - self.start_point()) <= tolerance)

    def reversed_parameter(self, u: float) -> float:
        """Parameter on the reversed curve of the point at ``u``."""
        return self.first_parameter + self.last_parameter - float(u)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _is_cache_valid(self, u: float) -> bool:
        """Whether ``u`` can be evaluated from the cached span."""
        return self._cache.contains(u)

    def _validate_cache(self, u: float) -> None:
        """Rebuild the cache on the span holding ``u``."""
        span = int(_locate_span_impl(self._flat_knots, self._degree, u))
        indices = np.arange(span - self._degree, span + 1) % self.num_poles
        local_poles = self._polygon.homogeneous()[indices]
        self._cache.rebuild(
            self._flat_knots,
            self._degree,
            span,
            local_poles,
            self.is_rational,
            span == self._last_span,
        )

    def evaluate(self, u: float, n_derivs: int = 0) -> npt.NDArray[np.float64]:
        """Point and derivatives up to order ``n_derivs``.

        Args:
            u (float): Parameter; periodic curves accept any value.
            n_derivs (int): Highest derivative order. Defaults to 0.

        Returns:
            npt.NDArray[np.float64]: Array of shape (n_derivs + 1, dim).

        Raises:
            RangeError: If ``n_derivs`` is negative.
        """
        if n_derivs < 0:
            raise RangeError(f"Derivative order must be non-negative, got {n_derivs}")
        u = self._normalize_parameter(u)
        if not self._is_cache_valid(u):
            self._validate_cache(u)
        return self._cache.evaluate(u, n_derivs)

    def value(self, u: float) -> npt.NDArray[np.float64]:
        """Point at ``u``."""
        return self.evaluate(u, 0)[0]

    def d1(self, u: float) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Point and first derivative at ``u``."""
        derivs = self.evaluate(u, 1)
        return derivs[0], derivs[1]

    def d2(
        self, u: float
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Point, first and second derivatives at ``u``."""
        derivs = self.evaluate(u, 2)
        return derivs[0], derivs[1], derivs[2]

    def d3(
        self, u: float
    ) -> tuple[
        npt.NDArray[np.float64],
        npt.NDArray[np.float64],
        npt.NDArray[np.float64],
        npt.NDArray[np.float64],
    ]:
        """Point and derivatives up to the third at ``u``."""
        derivs = self.evaluate(u, 3)
        return derivs[0], derivs[1], derivs[2], derivs[3]

    def dn(self, u: float, n: int) -> npt.NDArray[np.float64]:
        """Derivative of order ``n`` at ``u``.

        Raises:
            RangeError: If ``n`` is less than 1.
        """
        if n < 1:
            raise RangeError(f"Derivative order must be at least 1, got {n}")
        return self.evaluate(u, n)[n]

    def start_point(self) -> npt.NDArray[np.float64]:
        """Point at the first parameter."""
        return self.value(self.first_parameter)

    def end_point(self) -> npt.NDArray[np.float64]:
        """Point at the last parameter."""
        return self.value(self.last_parameter)

    def _evaluate_columns(
        self, columns: npt.NDArray[np.float64], u: float, n_derivs: int
    ) -> npt.NDArray[np.float64]:
        """Evaluate arbitrary per-pole columns on the curve's basis, bypassing the cache."""
        flat = self._flat_knots
        span = int(_locate_span_impl(flat, self._degree, u))
        indices = np.arange(span - self._degree, span + 1) % self.num_poles
        coeffs = _span_to_bezier_impl(
            flat, self._degree, span, np.ascontiguousarray(columns[indices])
        )
        length = flat[span + 1] - flat[span]
        scales = (1.0 / length) ** np.arange(n_derivs + 1)
        derivs = _bezier_derivatives_impl(coeffs, (u - flat[span]) / length, n_derivs)
        return derivs * scales[:, np.newaxis]

    # ------------------------------------------------------------------
    # Degree elevation
    # ------------------------------------------------------------------

    def _elevated_unclamped_knots(
        self, degree: int, step: int
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
        """Knots of an elevated non-periodic curve whose ends are not clamped.

        Every multiplicity grows by ``step``; outer knots are then trimmed so
        that exactly ``degree + 1`` flat knots end at the first domain knot
        (and start at the last one).
        """
        kv = self._knot_vector
        knots = kv.knots
        mults = kv.multiplicities + step
        first = kv.first_index(self._degree, False)
        last = kv.last_index(self._degree, False)

        start = first
        total = int(mults[start])
        while total < degree + 1:
            start -= 1
            total += int(mults[start])
        mults[start] -= total - (degree + 1)

        stop = last
        total = int(mults[stop])
        while total < degree + 1:
            stop += 1
            total += int(mults[stop])
        mults[stop] -= total - (degree + 1)

        return knots[start : stop + 1].copy(), mults[start : stop + 1].copy()

    def increase_degree(self, degree: int) -> None:
        """Raise the degree while keeping the shape and the continuity.

        Args:
            degree (int): New degree.

        Raises:
            ConstructionError: If ``degree`` is lower than the current degree
                or above :data:`MAX_DEGREE`.
        """
        if degree == self._degree:
            return
        if degree < self._degree or degree > MAX_DEGREE:
            raise ConstructionError(
                f"Degree can only be raised from {self._degree} up to {MAX_DEGREE}, got {degree}"
            )

        step = degree - self._degree
        kv = self._knot_vector
        mults = kv.multiplicities
        poles = self._polygon.homogeneous()
        clamped = mults[0] == self._degree + 1 and mults[-1] == self._degree + 1

        if not self._periodic and clamped:
            new_knots = kv.knots.copy()
            new_mults = mults + step
            num_new_poles = int(_num_poles_impl(degree, False, new_mults))
            _, new_poles = _elevate_degree_impl(
                np.array(self._flat_knots),
                poles,
                self._degree,
                step,
                bezier_elevation_matrix(self._degree, step),
                num_new_poles,
            )
        else:
            if self._periodic:
                new_knots = kv.knots.copy()
                new_mults = mults + step
            else:
                new_knots, new_mults = self._elevated_unclamped_knots(degree, step)
            new_kv = KnotVector(new_knots, new_mults)
            new_poles, _, _ = refit_poles(
                (self._flat_knots, self._degree, poles, self._periodic),
                (
                    new_kv._flatten_buffer(degree, self._periodic),
                    degree,
                    new_kv.num_poles(degree, self._periodic),
                    self._periodic,
                ),
            )

        old_poles = self.num_poles
        self._commit(
            degree,
            self._periodic,
            KnotVector(new_knots, new_mults),
            self._polygon_from_homogeneous(new_poles),
        )
        logger.debug(
            "Raised degree to %d (%d -> %d poles)", degree, old_poles, self.num_poles
        )

    # ------------------------------------------------------------------
    # Knot insertion
    # ------------------------------------------------------------------

    def _plan_insertion(
        self,
        add_knots: npt.NDArray[np.float64],
        add_mults: npt.NDArray[np.int64],
        tolerance: float,
        add: bool,
    ) -> tuple[list[float], list[int], list[tuple[float, int]]]:
        """Compute the knots and multiplicities after an insertion request.

        Returns:
            tuple[list[float], list[int], list[tuple[float, int]]]: New knots,
            new multiplicities and the ``(value, count)`` insertions to apply.
        """
        degree = self._degree
        kv = self._knot_vector
        knots = kv.knots
        first = kv.first_index(degree, self._periodic)
        last = kv.last_index(degree, self._periodic)
        if knots[first] - add_knots[0] > tolerance or add_knots[-1] - knots[last] > tolerance:
            raise ConstructionError(
                f"Knots to insert must lie in [{knots[first]}, {knots[last]}] "
                f"within tolerance {tolerance}"
            )

        new_knots = [float(k) for k in knots]
        new_mults = [int(m) for m in kv.multiplicities]
        insertions: list[tuple[float, int]] = []
        seam_done = False

        ak = 0
        while ak < add_knots.size:
            au = float(add_knots[ak])
            eps = max(tolerance, epsilon(au))
            amult = max(0, int(add_mults[ak]))
            while ak + 1 < add_knots.size and abs(add_knots[ak + 1] - au) <= eps:
                ak += 1
                if add:
                    amult += max(0, int(add_mults[ak]))
                else:
                    amult = max(amult, int(add_mults[ak]))
            ak += 1

            distances = np.abs(np.asarray(new_knots) - au)
            pos = int(np.argmin(distances))
            if distances[pos] <= eps:
                seam = self._periodic and pos in (0, len(new_knots) - 1)
                if seam and seam_done and add:
                    continue
                mult = new_mults[pos]
                target = max(mult, min(mult + amult if add else amult, degree))
                if target > mult:
                    if seam:
                        new_mults[0] = new_mults[-1] = target
                    else:
                        new_mults[pos] = target
                    insertions.append((new_knots[pos], target - mult))
                seam_done = seam_done or seam
            elif amult > 0:
                amult = min(amult, degree)
                index = bisect.bisect_left(new_knots, au)
                new_knots.insert(index, au)
                new_mults.insert(index, amult)
                insertions.append((au, amult))

        return new_knots, new_mults, insertions

    def insert_knots(
        self,
        knots: npt.ArrayLike,
        multiplicities: npt.ArrayLike | None = None,
        tolerance: float = 0.0,
        add: bool = False,
    ) -> None:
        """Insert several knots without changing the shape of the curve.

        Args:
            knots (npt.ArrayLike): Knot values in ascending order.
            multiplicities (npt.ArrayLike | None): Requested multiplicities
                (defaults to 1 each). Negative values count as 0.
            tolerance (float): Knots closer than ``tolerance`` to an existing
                knot are merged with it. Defaults to 0.0.
            add (bool): If True the multiplicities are added to the existing
                ones, otherwise existing knots are raised to them. Defaults to
                False.

        Raises:
            ConstructionError: If the lengths differ, the knots are not sorted,
                a requested multiplicity exceeds ``degree + 1`` or a knot lies
                outside the domain by more than ``tolerance``.
        """
        add_knots = np.atleast_1d(np.asarray(knots, dtype=np.float64))
        if multiplicities is None:
            add_mults = np.ones(add_knots.size, dtype=np.int64)
        else:
            add_mults = np.atleast_1d(np.asarray(multiplicities, dtype=np.int64))
        if add_knots.ndim != 1 or add_knots.shape != add_mults.shape:
            raise ConstructionError("Knots and multiplicities to insert must have the same length")
        if add_knots.size == 0:
            return
        if np.any(np.diff(add_knots) < 0.0):
            raise ConstructionError("Knots to insert must be sorted in ascending order")
        if np.any(add_mults > self._degree + 1):
            raise ConstructionError(
                f"Requested multiplicity exceeds degree + 1 = {self._degree + 1}"
            )

        new_knots, new_mults, insertions = self._plan_insertion(
            add_knots, add_mults, tolerance, add
        )
        new_kv = KnotVector(new_knots, new_mults)
        num_new_poles = new_kv.num_poles(self._degree, self._periodic)
        if num_new_poles == self.num_poles:
            return

        poles = self._polygon.homogeneous()
        if self._periodic:
            poles, _, _ = refit_poles(
                (self._flat_knots, self._degree, poles, True),
                (new_kv._flatten_buffer(self._degree, True), self._degree, num_new_poles, True),
            )
        else:
            flat = np.array(self._flat_knots)
            for value, count in insertions:
                for _ in range(count):
                    span = _locate_span_impl(flat, self._degree, value)
                    flat, poles = _insert_knot_once_impl(flat, poles, self._degree, value, span)

        old_poles = self.num_poles
        self._commit(self._degree, self._periodic, new_kv, self._polygon_from_homogeneous(poles))
        logger.debug("Inserted knots %s (%d -> %d poles)", insertions, old_poles, self.num_poles)

    def insert_knot(
        self,
        u: float,
        multiplicity: int = 1,
        tolerance: float = 0.0,
        add: bool = True,
    ) -> None:
        """Insert a single knot. See :meth:`insert_knots`."""
        self.insert_knots([u], [multiplicity], tolerance, add)

    def _check_knot_range(self, first: int, last: int) -> None:
        if not 0 <= first <= last < self.num_knots:
            raise RangeError(
                f"Knot index range [{first}, {last}] invalid for {self.num_knots} knots"
            )

    def increase_multiplicity(self, index: int, multiplicity: int) -> None:
        """Raise the multiplicity of the knot at ``index`` to ``multiplicity``.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the knot cannot be inserted.
        """
        self.increase_multiplicity_range(index, index, multiplicity)

    def increase_multiplicity_range(self, first: int, last: int, multiplicity: int) -> None:
        """Raise the multiplicity of the knots ``first`` to ``last`` to ``multiplicity``.

        Raises:
            RangeError: If the index range is invalid.
            ConstructionError: If a knot cannot be inserted.
        """
        self._check_knot_range(first, last)
        mults = self._knot_vector.multiplicities[first : last + 1]
        self.insert_knots(
            self._knot_vector.knots[first : last + 1].copy(),
            multiplicity - mults,
            epsilon(1.0),
            add=True,
        )

    def increment_multiplicity(self, first: int, last: int, step: int) -> None:
        """Add ``step`` to the multiplicity of the knots ``first`` to ``last``.

        Raises:
            RangeError: If the index range is invalid.
            ConstructionError: If a knot cannot be inserted.
        """
        self._check_knot_range(first, last)
        self.insert_knots(
            self._knot_vector.knots[first : last + 1].copy(),
            np.full(last - first + 1, step, dtype=np.int64),
            epsilon(1.0),
            add=True,
        )

    # ------------------------------------------------------------------
    # Knot removal
    # ------------------------------------------------------------------

    def remove_knot(self, index: int, multiplicity: int, tolerance: float) -> bool:
        """Lower the multiplicity of a knot if the shape is kept within ``tolerance``.

        A knot brought down to multiplicity 0 is deleted.

        Args:
            index (int): Knot index, strictly inside the domain for
                non-periodic curves.
            multiplicity (int): Target multiplicity.
            tolerance (float): Allowed deviation of the curve. Values below
                the default tolerance (relative to the polygon size) are raised
                to it.

        Returns:
            bool: True if the knot has the target multiplicity afterwards (or
            nothing had to be done), False if the removal would change the
            shape, in which case the curve is unchanged.

        Raises:
            RangeError: If the index is not a removable knot.
        """
        if multiplicity < 0:
            return True
        kv = self._knot_vector
        first = kv.first_index(self._degree, self._periodic)
        last = kv.last_index(self._degree, self._periodic)
        valid = first <= index <= last if self._periodic else first < index < last
        if not valid:
            raise RangeError(
                f"Knot index {index} cannot be removed (valid range "
                f"{'[' if self._periodic else '('}{first}, {last}{']' if self._periodic else ')'})"
            )

        mults = kv.multiplicities.copy()
        knots = kv.knots.copy()
        current = int(mults[index])
        step = current - multiplicity
        if step <= 0:
            return True

        scale = max(1.0, float(np.max(np.abs(self._polygon.points))))
        tol = max(float(tolerance), get_default_tolerance(np.float64) * scale)
        poles = self._polygon.homogeneous()

        if not self._periodic:
            r = int(np.sum(mults[: index + 1])) - 1
            htol = removal_tolerance(poles, tol, self.is_rational)
            removed, _, new_poles = _remove_knot_impl(
                np.array(self._flat_knots), poles, self._degree, r, current, step, htol
            )
            if removed < step:
                logger.debug(
                    "Knot %d removable only %d of %d times within %g", index, removed, step, tol
                )
                return False
            mults[index] = multiplicity
            keep = mults > 0
            new_kv = KnotVector(knots[keep], mults[keep])
        else:
            new_kv_or_none = self._periodic_removal_knots(knots, mults, index, multiplicity)
            if new_kv_or_none is None:
                return False
            new_kv = new_kv_or_none
            num_new_poles = new_kv.num_poles(self._degree, True)
            if num_new_poles < 2:
                return False
            new_poles, samples, fitted = refit_poles(
                (self._flat_knots, self._degree, poles, True),
                (new_kv._flatten_buffer(self._degree, True), self._degree, num_new_poles, True),
            )
            before = samples[:, :-1] / samples[:, -1:]
            after = fitted[:, :-1] / fitted[:, -1:]
            deviation = float(np.max(np.linalg.norm(after - before, axis=1)))
            if deviation > tol:
                logger.debug("Knot %d not removable: deviation %g > %g", index, deviation, tol)
                return False

        self._commit(self._degree, self._periodic, new_kv, self._polygon_from_homogeneous(new_poles))
        logger.debug("Removed knot %d down to multiplicity %d", index, multiplicity)
        return True

    def _periodic_removal_knots(
        self,
        knots: npt.NDArray[np.float64],
        mults: npt.NDArray[np.int64],
        index: int,
        multiplicity: int,
    ) -> KnotVector | None:
        """Knot vector of a periodic curve after lowering one multiplicity."""
        n = knots.size
        seam = index in (0, n - 1)
        if seam and multiplicity == 0:
            if n < 3:
                return None
            new_knots = np.append(knots[1 : n - 1], knots[1] + (knots[-1] - knots[0]))
            new_mults = np.append(mults[1 : n - 1], mults[1])
            return KnotVector(new_knots, new_mults)
        if seam:
            mults[0] = mults[-1] = multiplicity
            return KnotVector(knots, mults)
        mults[index] = multiplicity
        keep = mults > 0
        return KnotVector(knots[keep], mults[keep])

    # ------------------------------------------------------------------
    # Reversal and segmentation
    # ------------------------------------------------------------------

    def reverse(self) -> None:
        """Reverse the orientation; the parametric domain is unchanged.

        The point at ``u`` moves to :meth:`reversed_parameter` of ``u``.
        """
        kv = self._knot_vector
        knots = kv.knots
        n = knots.size
        num_poles = self.num_poles
        if self._periodic:
            # the end knots are the domain ends and stay exact
            new_knots = knots.copy()
            t_first = k_first = float(knots[0])
            t_last = k_last = float(knots[-1])
            i, j = 1, n - 2
            while i <= j:
                t_first += k_last - knots[j]
                t_last -= knots[i] - k_first
                k_first = float(knots[i])
                k_last = float(knots[j])
                new_knots[i] = t_first
                new_knots[j] = t_last
                i += 1
                j -= 1
            last = self._flat_knots.size - self._degree - 2
            order = (last - np.arange(num_poles)) % num_poles
        else:
            # mirror about the domain, which differs from the stored ends when unclamped
            first_u = self.first_parameter
            last_u = self.last_parameter
            new_knots = (first_u + last_u) - knots[::-1]
            new_knots[n - 1 - kv.last_index(self._degree, False)] = first_u
            new_knots[n - 1 - kv.first_index(self._degree, False)] = last_u
            order = np.arange(num_poles)[::-1]

        self._commit(
            self._degree,
            self._periodic,
            KnotVector(new_knots, kv.multiplicities[::-1]),
            self._polygon.take(order),
        )

    def segment(self, u1: float, u2: float) -> None:
        """Restrict the curve to ``[u1, u2]``.

        The result is non-periodic with clamped ends. For periodic curves
        ``u2 - u1`` is reduced by whole periods (a multiple of the period
        keeps a full period) and the domain of the result is ``[u1, u1 + du]``.

        Args:
            u1 (float): Start parameter.
            u2 (float): End parameter.

        Raises:
            DomainError: If ``u2 < u1``, or for non-periodic curves if the
                range is empty or not inside the domain.
        """
        u1 = float(u1)
        u2 = float(u2)
        if u2 < u1:
            raise DomainError(f"Segment bounds must satisfy u1 <= u2, got [{u1}, {u2}]")

        degree = self._degree
        first = self.first_parameter
        last = self.last_parameter
        was_periodic = self._periodic

        delta_u = 0.0
        if was_periodic:
            period = last - first
            delta_u = u2 - u1
            if delta_u > period:
                delta_u = float(np.mod(delta_u, period))
            if delta_u <= epsilon(period):
                delta_u = period
            new_u1 = first + float(np.mod(u1 - first, period))
            new_u2 = first + float(np.mod(u2 - first, period))
        else:
            new_u1, new_u2 = u1, u2

        eps = 100.0 * epsilon(max(abs(new_u1), abs(new_u2), abs(first), abs(last)))
        if not was_periodic and (u2 - u1 <= eps or u1 < first - eps or u2 > last + eps):
            raise DomainError(
                f"Segment [{u1}, {u2}] must be a non-empty range inside [{first}, {last}]"
            )

        work = self.copy()
        work.insert_knots(
            [min(new_u1, new_u2), max(new_u1, new_u2)], [degree, degree], eps, add=False
        )
        if was_periodic:
            work.set_origin(int(_locate_knot_impl(work._knot_vector._knots, new_u1, eps)))
            work.set_not_periodic()
            new_u2 = new_u1 + delta_u

        knots = work._knot_vector.knots
        mults = work._knot_vector.multiplicities
        index1 = int(_locate_knot_impl(knots, new_u1, eps))
        index2 = int(_locate_knot_impl(knots, new_u2, eps))

        new_knots = knots[index1 : index2 + 1].copy()
        new_mults = mults[index1 : index2 + 1].copy()
        new_mults[0] = new_mults[-1] = degree + 1

        block1 = int(np.sum(mults[:index1]))
        block2 = int(np.sum(mults[:index2]))
        first_pole = block1 + int(mults[index1]) - degree - 1
        last_pole = block2 - 1

        if was_periodic:
            new_knots -= new_u1 - u1
            new_knots[0] = u1
            new_knots[-1] = u1 + delta_u

        self._commit(
            degree,
            False,
            KnotVector(new_knots, new_mults),
            work._polygon.take(np.arange(first_pole, last_pole + 1)),
        )
        logger.debug("Segmented curve to [%g, %g] (%d poles)", u1, u2, self.num_poles)

    # ------------------------------------------------------------------
    # Knot values
    # ------------------------------------------------------------------

    def set_knot(self, index: int, value: float, multiplicity: int | None = None) -> None:
        """Move one knot, optionally raising its multiplicity first.

        Args:
            index (int): Knot index.
            value (float): New value, strictly between the neighbouring knots.
            multiplicity (int | None): If given, the knot multiplicity is
                first raised to it (see :meth:`increase_multiplicity`).

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the value breaks the knot ordering.
        """
        self._check_knot_index(index)
        value = float(value)
        if multiplicity is not None:
            work = self.copy()
            work.increase_multiplicity(index, multiplicity)
            work._knot_vector.set_value(index, value)
            self._commit(work._degree, work._periodic, work._knot_vector, work._polygon)
            return
        if value == self._knot_vector.knot(index):
            return
        self._knot_vector.set_value(index, value)
        self._update_knots()

    def set_knots(self, knots: npt.ArrayLike) -> None:
        """Replace all knot values, keeping the multiplicities.

        Raises:
            ConstructionError: If the new knots fail the construction checks.
        """
        new_kv = KnotVector(knots, self._knot_vector.multiplicities)
        self._commit(self._degree, self._periodic, new_kv, self._polygon)

    # ------------------------------------------------------------------
    # Periodicity
    # ------------------------------------------------------------------

    def set_periodic(self) -> None:
        """Make the curve periodic on its current domain.

        Outer knots are dropped, both end multiplicities become
        ``min(degree, max(first, last))`` and the first poles are kept. The
        shape is only preserved for closed curves with matching end
        continuity.

        Raises:
            ConstructionError: If fewer than two poles would remain.
        """
        if self._periodic:
            return
        kv = self._knot_vector
        first = kv.first_index(self._degree, False)
        last = kv.last_index(self._degree, False)
        knots = kv.knots[first : last + 1].copy()
        mults = kv.multiplicities[first : last + 1].copy()
        end_mult = min(self._degree, max(int(mults[0]), int(mults[-1])))
        mults[0] = mults[-1] = end_mult

        new_kv = KnotVector(knots, mults)
        num_poles = new_kv.num_poles(self._degree, True)
        if not 2 <= num_poles <= self.num_poles:
            raise ConstructionError(f"A periodic curve on these knots needs {num_poles} poles")
        self._commit(self._degree, True, new_kv, self._polygon.take(np.arange(num_poles)))

    def set_not_periodic(self) -> None:
        """Convert a periodic curve to an equivalent non-periodic one.

        The flat knot sequence is kept and the poles are unrolled, so the
        shape and the parametrization do not change.
        """
        if not self._periodic:
            return
        flat = np.array(self._flat_knots)
        knots, mults = group_flat_knots(flat)
        num_poles = flat.size - self._degree - 1
        polygon = self._polygon.take(np.arange(num_poles) % self.num_poles)
        self._commit(self._degree, False, KnotVector(knots, mults), polygon)
        logger.debug("Unperiodized curve (%d poles)", self.num_poles)

    def set_origin(self, index: int) -> None:
        """Make the knot at ``index`` the start of a periodic curve.

        Raises:
            DomainError: If the curve is not periodic.
            RangeError: If the index is out of range.
        """
        if not self._periodic:
            raise DomainError("The origin can only be moved on a periodic curve")
        self._check_knot_index(index)
        if index == 0:
            return

        kv = self._knot_vector
        knots = kv.knots
        mults = kv.multiplicities
        period = kv.period
        new_knots = np.concatenate((knots[index:], knots[1 : index + 1] + period))
        new_mults = np.concatenate((mults[index:], mults[1 : index + 1]))
        offset = int(np.sum(mults[1 : index + 1]))
        order = (np.arange(self.num_poles) + offset) % self.num_poles

        self._commit(
            self._degree, True, KnotVector(new_knots, new_mults), self._polygon.take(order)
        )

    def set_origin_at(self, u: float, tolerance: float) -> None:
        """Make ``u`` the start of a periodic curve.

        If ``u`` lies outside the domain (by more than ``tolerance``) the
        knots are first shifted by whole periods so that it lies inside. A
        knot is inserted at ``u`` unless one exists within ``tolerance``.

        Raises:
            DomainError: If the curve is not periodic.
        """
        if not self._periodic:
            raise DomainError("The origin can only be moved on a periodic curve")
        u = float(u)
        first = self.first_parameter
        last = self.last_parameter
        period = last - first

        u_local = u
        if u_local < first - tolerance or u_local >= last - tolerance:
            u_local = first - tolerance + float(np.mod(u - first + tolerance, period))
        shift = u - u_local
        if abs(shift) > tolerance:
            self.set_knots(self._knot_vector.knots + shift)
            first = self.first_parameter

        if abs(u - first) < tolerance:
            return

        knots = self._knot_vector.knots
        index = int(np.argmin(np.abs(knots - u)))
        delta = u - knots[index]
        if abs(delta) > tolerance:
            self.insert_knot(u, 1, 0.0, add=True)
            if delta > 0.0:
                index += 1
        self.set_origin(index)

    # ------------------------------------------------------------------
    # Local editing
    # ------------------------------------------------------------------

    def set_pole(self, index: int, point: npt.ArrayLike, weight: float | None = None) -> None:
        """Replace one pole, and optionally its weight.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the point has the wrong dimension or the
                weight is not greater than the resolution.
        """
        self._check_pole_index(index)
        if weight is not None and weight <= get_resolution(np.float64):
            raise ConstructionError(f"Weight {weight} must be greater than the resolution")
        self._polygon.set_point(index, point)
        if weight is not None:
            self._polygon.set_weight(index, weight)
        self._cache.invalidate()

    def set_weight(self, index: int, weight: float) -> None:
        """Replace one weight.

        The curve becomes rational when a weight other than 1 is set on a
        non-rational curve, and non-rational when all weights become equal.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the weight is not greater than the resolution.
        """
        self._polygon.set_weight(index, weight)
        self._cache.invalidate()

    def move_point(
        self, u: float, point: npt.ArrayLike, first: int, last: int
    ) -> tuple[int, int] | None:
        """Move poles ``first`` to ``last`` so that the curve passes through ``point`` at ``u``.

        The displacement is spread over the poles whose basis functions are
        non-zero at ``u``, decreasing as ``1 / (d + 1)`` with the index
        distance ``d`` to the dominant basis function.

        Args:
            u (float): Parameter of the point to move.
            point (npt.ArrayLike): Target point.
            first (int): First pole allowed to move.
            last (int): Last pole allowed to move.

        Returns:
            tuple[int, int] | None: First and last modified pole indices, or
            None if no pole in the range influences ``u``.

        Raises:
            RangeError: If the pole range is invalid.
            ConstructionError: If the point has the wrong dimension.
        """
        num_poles = self.num_poles
        if not 0 <= first <= last < num_poles:
            raise RangeError(f"Pole index range [{first}, {last}] invalid for {num_poles} poles")
        target = self._check_point(point)
        displacement = target - self.value(u)

        u = self._normalize_parameter(u)
        degree = self._degree
        span = int(_locate_span_impl(self._flat_knots, degree, u))
        basis = _basis_funs_impl(self._flat_knots, degree, span, u)
        pole_indices = (np.arange(span - degree, span + 1)) % num_poles
        inside = (pole_indices >= first) & (pole_indices <= last)
        if not np.any(inside):
            return None

        weights = self._polygon.weights
        h_basis = basis * weights[pole_indices] if self.is_rational else basis
        positions = np.flatnonzero(inside)
        kk1 = int(positions[np.argmax(basis[positions])])
        kk2 = kk1
        if kk1 < degree and inside[kk1 + 1] and abs(basis[kk1 + 1] - basis[kk1]) < 1e-10:
            kk2 = kk1 + 1

        distances = np.zeros(degree + 1, dtype=np.float64)
        local = np.arange(degree + 1)
        distances[local < kk1] = kk1 - local[local < kk1]
        distances[local > kk2] = local[local > kk2] - kk2

        d1 = float(np.sum(h_basis[inside] / (distances[inside] + 1.0)))
        if d1 <= 0.0:
            return None
        coef = float(np.sum(h_basis)) / d1 if self.is_rational else 1.0 / d1

        points = np.array(self._polygon.points)
        for position in positions:
            pole = int(pole_indices[position])
            points[pole] += coef / (distances[position] + 1.0) * displacement
        for position in positions:
            pole = int(pole_indices[position])
            self._polygon.set_point(pole, points[pole])
        self._cache.invalidate()

        modified = pole_indices[positions]
        return int(modified.min()), int(modified.max())

    def move_point_and_tangent(
        self,
        u: float,
        point: npt.ArrayLike,
        tangent: npt.ArrayLike,
        tolerance: float,
        start_condition: int,
        end_condition: int,
    ) -> MoveStatus:
        """Move poles so that the curve has a given point and tangent at ``u``.

        A periodic curve becomes non-periodic when the move succeeds. The
        correction is a combination of two cubic bump functions centred on
        Greville abscissae near ``u``; the first ``start_condition + 1`` and
        last ``end_condition + 1`` poles are left untouched (-1 frees an end).

        Args:
            u (float): Parameter of the constrained point.
            point (npt.ArrayLike): Target point.
            tangent (npt.ArrayLike): Target first derivative.
            tolerance (float): Minimal distance of ``u`` to a constrained end,
                and threshold on the determinant of the correction system.
            start_condition (int): Derivative order kept at the start, in
                ``[-1, degree]``.
            end_condition (int): Derivative order kept at the end, in
                ``[-1, degree]``.

        Returns:
            MoveStatus: ``SUCCESS`` if the curve was modified, otherwise the
            reason why it was left as it is.

        Raises:
            ConstructionError: If the point or tangent has the wrong dimension.
        """
        target_point = self._check_point(point)
        target_tangent = self._check_point(tangent)

        degree = self._degree
        # pole count after unrolling a periodic curve
        num_poles = self._flat_knots.size - degree - 1
        if (
            not -1 <= start_condition <= degree
            or not -1 <= end_condition <= degree
            or start_condition + end_condition + 4 > num_poles
        ):
            return MoveStatus.INVALID_CONDITIONS

        u = float(u)
        first = self.first_parameter
        last = self.last_parameter
        start_ok = first <= u if start_condition == -1 else first + tolerance < u
        end_ok = u <= last if end_condition == -1 else u < last - tolerance
        if not (start_ok and end_ok):
            return MoveStatus.OUT_OF_RANGE

        work = self
        if self._periodic:
            work = self.copy()
            work.set_not_periodic()

        current = self.evaluate(u, 1)
        delta = np.vstack((target_point - current[0], target_tangent - current[1]))

        greville = schoenberg_points(work._flat_knots, degree)
        start_num = start_condition + 1
        end_num = num_poles - end_condition - 2
        index = int(np.searchsorted(greville, u, side="right")) - 1
        index = min(max(index, start_num), end_num)
        if index == start_num:
            other = index + 1
        elif index == end_num:
            other = index - 1
        elif u - greville[index] < greville[index + 1] - u:
            other = index - 1
        else:
            other = index + 1

        if start_condition == -1:
            start_value = greville[0] - (greville[-1] - greville[0])
        else:
            start_value = greville[start_num - 1]
        if end_condition == -1:
            end_value = greville[-1] + (greville[-1] - greville[0])
        else:
            end_value = greville[end_num + 1]

        def bump(center: int) -> npt.NDArray[np.float64]:
            values = np.zeros(num_poles, dtype=np.float64)
            left = np.arange(start_num, center + 1)
            right = np.arange(center, end_num + 1)
            values[left] = ((greville[left] - start_value) / (greville[center] - start_value)) ** 3
            values[right] = ((end_value - greville[right]) / (end_value - greville[center])) ** 3
            return values

        functions = np.column_stack((bump(index), bump(other)))
        if work.is_rational:
            weights = work._polygon.weights
            columns = np.column_stack((functions * weights[:, np.newaxis], weights))
            system = _rational_derivatives_impl(work._evaluate_columns(columns, u, 1))
        else:
            system = work._evaluate_columns(functions, u, 1)

        determinant = system[0, 0] * system[1, 1] - system[0, 1] * system[1, 0]
        if abs(determinant) <= tolerance:
            return MoveStatus.SINGULAR_SYSTEM

        coefficients = np.linalg.solve(system, delta)
        new_points = work._polygon.points + functions @ coefficients
        polygon = ControlPolygon(
            new_points,
            work._polygon.weights if work.is_rational else None,
            check_rational=False,
        )
        if self._periodic:
            logger.info("Converting periodic curve to non-periodic to move point and tangent")
            self._commit(degree, False, work._knot_vector, polygon)
        else:
            self._polygon = polygon
            self._cache.invalidate()
        return MoveStatus.SUCCESS
