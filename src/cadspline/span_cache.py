"""Span-local evaluation cache of a curve."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from ._bezier_impl import (
    _bezier_derivatives_impl,
    _rational_derivatives_impl,
    _span_to_bezier_impl,
)


class SpanCache:
    """Bezier form of the curve on the most recently evaluated span.

    Holds the validity flag, the span origin and length, the span index into
    the flat knots, and the Bernstein coefficients of the homogeneous
    numerator ``w * C`` and of the weight function ``w``. Evaluations inside
    the cached span only run de Casteljau on ``degree + 1`` coefficients.

    Attributes:
        _valid (bool): Whether the cached data matches the curve.
        _origin (float): Parameter at which the span starts.
        _length (float): Length of the span.
        _span_index (int): Span index into the flat knot sequence.
        _last_span (bool): Whether the span is the last one of the domain.
        _poles (npt.NDArray[np.float64]): Numerator coefficients, shape
            (degree + 1, dim).
        _weights (npt.NDArray[np.float64] | None): Weight coefficients, shape
            (degree + 1,), None for non-rational curves.
    """

    _valid: bool
    _origin: float
    _length: float
    _span_index: int
    _last_span: bool
    _poles: npt.NDArray[np.float64]
    _weights: npt.NDArray[np.float64] | None

    def __init__(self, degree: int, dimension: int, rational: bool) -> None:
        """Initialize an invalid cache with buffers sized for ``degree``.

        Args:
            degree (int): Curve degree.
            dimension (int): Dimension of the ambient space.
            rational (bool): Whether to allocate weight coefficients.
        """
        self._valid = False
        self._origin = 0.0
        self._length = 0.0
        self._span_index = -1
        self._last_span = False
        self._allocate(degree, dimension, rational)

    def _allocate(self, degree: int, dimension: int, rational: bool) -> None:
        self._poles = np.zeros((degree + 1, dimension), dtype=np.float64)
        self._weights = np.ones(degree + 1, dtype=np.float64) if rational else None

    @property
    def is_valid(self) -> bool:
        """Validity flag."""
        return self._valid

    @property
    def origin(self) -> float:
        """Start parameter of the cached span."""
        return self._origin

    @property
    def span_length(self) -> float:
        """Length of the cached span."""
        return self._length

    @property
    def span_index(self) -> int:
        """Index of the cached span into the flat knot sequence."""
        return self._span_index

    @property
    def degree(self) -> int:
        """Degree the buffers are sized for."""
        return int(self._poles.shape[0] - 1)

    def invalidate(self) -> None:
        """Mark the cache as stale."""
        self._valid = False

    def contains(self, u: float) -> bool:
        """Whether ``u`` can be evaluated from the cached span.

        The span is half open except for the last one, which also holds its
        end parameter.
        """
        if not self._valid:
            return False
        delta = u - self._origin
        if delta < 0.0:
            return False
        return delta < self._length or self._last_span

    def rebuild(
        self,
        flat: npt.NDArray[np.float64],
        degree: int,
        span: int,
        local_poles: npt.NDArray[np.float64],
        rational: bool,
        last_span: bool,
    ) -> None:
        """Recompute the cached Bezier coefficients for one span.

        Buffers are reallocated when the degree, dimension or rationality
        changed since the last rebuild.

        Args:
            flat (npt.NDArray[np.float64]): Flattened knot sequence.
            degree (int): Curve degree.
            span (int): Non-degenerate span index.
            local_poles (npt.NDArray[np.float64]): Homogeneous poles
                ``span - degree`` to ``span``, shape (degree + 1, dim + 1).
            rational (bool): Whether the curve is rational.
            last_span (bool): Whether ``span`` is the last span of the domain.
        """
        dimension = local_poles.shape[1] - 1
        if (
            self._poles.shape != (degree + 1, dimension)
            or (self._weights is not None) != rational
        ):
            self._allocate(degree, dimension, rational)

        coeffs = _span_to_bezier_impl(flat, degree, span, local_poles)
        self._poles[:, :] = coeffs[:, :dimension]
        if self._weights is not None:
            self._weights[:] = coeffs[:, dimension]

        self._origin = float(flat[span])
        self._length = float(flat[span + 1] - flat[span])
        self._span_index = span
        self._last_span = last_span
        self._valid = True

    def evaluate(self, u: float, n_derivs: int) -> npt.NDArray[np.float64]:
        """Point and derivatives at ``u`` from the cached span.

        Args:
            u (float): Parameter (normally inside the cached span).
            n_derivs (int): Highest derivative order.

        Returns:
            npt.NDArray[np.float64]: Array of shape (n_derivs + 1, dim), row
            ``k`` being the ``k``-th derivative.
        """
        t = (u - self._origin) / self._length
        scales = (1.0 / self._length) ** np.arange(n_derivs + 1)
        if self._weights is None:
            return _bezier_derivatives_impl(self._poles, t, n_derivs) * scales[:, np.newaxis]

        coeffs = np.column_stack((self._poles, self._weights))
        derivs = _bezier_derivatives_impl(coeffs, t, n_derivs) * scales[:, np.newaxis]
        return _rational_derivatives_impl(derivs)
