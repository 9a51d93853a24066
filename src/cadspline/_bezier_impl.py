"""Numba kernels for span-local evaluation.

A span of a B-spline curve is re-expressed as a Bezier segment (Bernstein
coefficients) by blossoming, then evaluated with de Casteljau's algorithm
and hodograph differences. Coefficients are homogeneous: the last column
holds the weight function for rational curves.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import numba as nb
import numpy as np
import numpy.typing as npt

F = TypeVar("F", bound=Callable[..., Any])

if TYPE_CHECKING:
    # During type-checking, make the decorator a no-op that preserves types.
    def nb_jit(*args: object, **kwargs: object) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            return func

        return decorator
else:
    # At runtime, use the real Numba decorator.
    nb_jit = nb.jit  # type: ignore[attr-defined]


@nb_jit(nopython=True, cache=True, parallel=False)
def _binomial_impl(n: int, k: int) -> float:
    """Binomial coefficient as a float."""
    if k < 0 or k > n:
        return 0.0
    result = 1.0
    for i in range(1, k + 1):
        result = result * (n - k + i) / i
    return result


@nb_jit(nopython=True, cache=True, parallel=False)
def _basis_funs_impl(
    flat: npt.NDArray[np.float64], degree: int, span: int, u: float
) -> npt.NDArray[np.float64]:
    """Values of the ``degree + 1`` basis functions that are non-zero on a span.

    Cox-de Boor triangular scheme (The NURBS Book, A2.2).

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        degree (int): Polynomial degree.
        span (int): Non-degenerate span index with ``flat[span] < flat[span + 1]``.
        u (float): Parameter.

    Returns:
        npt.NDArray[np.float64]: Values of basis functions ``span - degree``
        to ``span``.
    """
    basis = np.zeros(degree + 1, dtype=np.float64)
    left = np.zeros(degree + 1, dtype=np.float64)
    right = np.zeros(degree + 1, dtype=np.float64)
    basis[0] = 1.0
    for j in range(1, degree + 1):
        left[j] = u - flat[span + 1 - j]
        right[j] = flat[span + j] - u
        saved = 0.0
        for r in range(j):
            temp = basis[r] / (right[r + 1] + left[j - r])
            basis[r] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        basis[j] = saved
    return basis


@nb_jit(nopython=True, cache=True, parallel=False)
def _span_to_bezier_impl(
    flat: npt.NDArray[np.float64],
    degree: int,
    span: int,
    local_poles: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Bernstein coefficients of the curve restricted to one span.

    The ``j``-th Bezier coefficient is the blossom of the span polynomial
    evaluated at ``(a, ..., a, b, ..., b)`` with ``degree - j`` copies of the
    span start ``a`` and ``j`` copies of its end ``b``. Each blossom value is a
    de Boor evaluation that uses one argument per level.

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        degree (int): Polynomial degree.
        span (int): Non-degenerate span index.
        local_poles (npt.NDArray[np.float64]): Poles ``span - degree`` to
            ``span``, shape (degree + 1, n_cols).

    Returns:
        npt.NDArray[np.float64]: Bezier coefficients, shape (degree + 1, n_cols).
    """
    n_cols = local_poles.shape[1]
    a = flat[span]
    b = flat[span + 1]
    out = np.empty((degree + 1, n_cols), dtype=np.float64)
    work = np.empty((degree + 1, n_cols), dtype=np.float64)
    for j in range(degree + 1):
        for i in range(degree + 1):
            for c in range(n_cols):
                work[i, c] = local_poles[i, c]
        for r in range(1, degree + 1):
            x = a if r <= degree - j else b
            for i in range(degree, r - 1, -1):
                g = span - degree + i
                left = flat[g]
                alpha = (x - left) / (flat[g + degree + 1 - r] - left)
                for c in range(n_cols):
                    work[i, c] = alpha * work[i, c] + (1.0 - alpha) * work[i - 1, c]
        for c in range(n_cols):
            out[j, c] = work[degree, c]
    return out


@nb_jit(nopython=True, cache=True, parallel=False)
def _bezier_derivatives_impl(
    coeffs: npt.NDArray[np.float64], t: float, n_derivs: int
) -> npt.NDArray[np.float64]:
    """Value and derivatives of a Bezier segment with respect to ``t``.

    Args:
        coeffs (npt.NDArray[np.float64]): Bernstein coefficients, shape
            (degree + 1, n_cols).
        t (float): Local coordinate (0 at the span start, 1 at its end).
            Values outside [0, 1] extrapolate the polynomial.
        n_derivs (int): Highest derivative order.

    Returns:
        npt.NDArray[np.float64]: Array of shape (n_derivs + 1, n_cols); rows
        above the degree are zero.
    """
    degree = coeffs.shape[0] - 1
    n_cols = coeffs.shape[1]
    out = np.zeros((n_derivs + 1, n_cols), dtype=np.float64)
    diffs = coeffs.copy()
    work = np.empty_like(coeffs)
    factor = 1.0
    for k in range(n_derivs + 1):
        order = degree - k
        if order < 0:
            break
        for i in range(order + 1):
            for c in range(n_cols):
                work[i, c] = diffs[i, c]
        for r in range(1, order + 1):
            for i in range(order - r + 1):
                for c in range(n_cols):
                    work[i, c] = (1.0 - t) * work[i, c] + t * work[i + 1, c]
        for c in range(n_cols):
            out[k, c] = factor * work[0, c]
        for i in range(order):
            for c in range(n_cols):
                diffs[i, c] = diffs[i + 1, c] - diffs[i, c]
        factor *= order
    return out


@nb_jit(nopython=True, cache=True, parallel=False)
def _rational_derivatives_impl(
    homogeneous_derivs: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Cartesian derivatives from homogeneous ones (quotient rule, NURBS Book A4.2).

    Args:
        homogeneous_derivs (npt.NDArray[np.float64]): Derivatives of
            ``[w * C, w]``, shape (n_derivs + 1, dim + 1).

    Returns:
        npt.NDArray[np.float64]: Derivatives of ``C``, shape (n_derivs + 1, dim).
    """
    n_rows = homogeneous_derivs.shape[0]
    dim = homogeneous_derivs.shape[1] - 1
    out = np.zeros((n_rows, dim), dtype=np.float64)
    w0 = homogeneous_derivs[0, dim]
    for k in range(n_rows):
        for c in range(dim):
            value = homogeneous_derivs[k, c]
            for i in range(1, k + 1):
                value -= _binomial_impl(k, i) * homogeneous_derivs[i, dim] * out[k - i, c]
            out[k, c] = value / w0
    return out
