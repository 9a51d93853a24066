"""Numba kernels for knot/multiplicity vectors.

All indices are 0-based. Knots are float64 arrays, multiplicities int64 arrays.
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
def _num_poles_impl(degree: int, periodic: bool, mults: npt.NDArray[np.int64]) -> int:
    """Number of poles implied by a multiplicity vector.

    Args:
        degree (int): Polynomial degree.
        periodic (bool): Whether the knot vector describes a periodic curve.
        mults (npt.NDArray[np.int64]): Knot multiplicities.

    Returns:
        int: Pole count, or 0 when the multiplicities are inconsistent with
        the degree (end multiplicities above ``degree + 1``, interior ones
        above ``degree``, unequal periodic ends).
    """
    n = mults.size
    if n < 2:
        return 0
    mf = mults[0]
    ml = mults[n - 1]
    if mf <= 0 or ml <= 0:
        return 0
    if periodic:
        if mf > degree or ml > degree or mf != ml:
            return 0
        sigma = mf
    else:
        if mf > degree + 1 or ml > degree + 1:
            return 0
        sigma = mf + ml - degree - 1
    for i in range(1, n - 1):
        m = mults[i]
        if m <= 0 or m > degree:
            return 0
        sigma += m
    return sigma


@nb_jit(nopython=True, cache=True, parallel=False)
def _flat_length_impl(degree: int, periodic: bool, mults: npt.NDArray[np.int64]) -> int:
    """Length of the flattened knot sequence."""
    total = 0
    for i in range(mults.size):
        total += mults[i]
    if periodic:
        total += 2 * (degree + 1 - mults[0])
    return total


@nb_jit(nopython=True, cache=True, parallel=False)
def _flatten_knots_impl(
    knots: npt.NDArray[np.float64],
    mults: npt.NDArray[np.int64],
    degree: int,
    periodic: bool,
) -> npt.NDArray[np.float64]:
    """Expand (knot, multiplicity) pairs into the flat knot sequence.

    For periodic vectors ``degree + 1 - mults[0]`` extra knots are added on
    each side, taken from the periodic extension ``knot + k * period`` of the
    sequence. The extension wraps over as many periods as needed.

    Args:
        knots (npt.NDArray[np.float64]): Distinct knot values.
        mults (npt.NDArray[np.int64]): Multiplicities.
        degree (int): Polynomial degree.
        periodic (bool): Whether to add the periodic extension.

    Returns:
        npt.NDArray[np.float64]: Flattened knot sequence.
    """
    n = knots.size
    length = _flat_length_impl(degree, periodic, mults)
    flat = np.empty(length, dtype=np.float64)

    offset = 0
    if periodic:
        offset = degree + 1 - mults[0]

    index = offset
    for i in range(n):
        for _ in range(mults[i]):
            flat[index] = knots[i]
            index += 1

    if periodic:
        period = knots[n - 1] - knots[0]
        n_base = index - offset - mults[n - 1]
        for x in range(offset):
            j = x - offset
            q = j // n_base
            r = j - q * n_base
            flat[x] = flat[offset + r] + q * period
        for x in range(index, length):
            j = x - offset
            q = j // n_base
            r = j - q * n_base
            flat[x] = flat[offset + r] + q * period

    return flat


@nb_jit(nopython=True, cache=True, parallel=False)
def _first_knot_index_impl(degree: int, periodic: bool, mults: npt.NDArray[np.int64]) -> int:
    """Index of the knot holding the first parameter of the curve domain."""
    if periodic:
        return 0
    index = 0
    sigma = mults[0]
    while sigma <= degree and index < mults.size - 1:
        index += 1
        sigma += mults[index]
    return index


@nb_jit(nopython=True, cache=True, parallel=False)
def _last_knot_index_impl(degree: int, periodic: bool, mults: npt.NDArray[np.int64]) -> int:
    """Index of the knot holding the last parameter of the curve domain."""
    n = mults.size
    if periodic:
        return n - 1
    index = n - 1
    sigma = mults[n - 1]
    while sigma <= degree and index > 0:
        index -= 1
        sigma += mults[index]
    return index


@nb_jit(nopython=True, cache=True, parallel=False)
def _locate_span_impl(flat: npt.NDArray[np.float64], degree: int, u: float) -> int:
    """Find the non-degenerate span ``k`` with ``flat[k] <= u < flat[k + 1]``.

    Parameters on a knot belong to the span starting at that knot, except the
    last parameter, which belongs to the last span. Parameters outside the
    domain are clamped to the first or last span.

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        degree (int): Polynomial degree.
        u (float): Parameter.

    Returns:
        int: Span index into ``flat``, in ``[degree, flat.size - degree - 2]``.
    """
    lo = degree
    hi = flat.size - degree - 2
    k = np.searchsorted(flat, u, side="right") - 1
    if k < lo:
        k = lo
    if k > hi:
        k = hi
    while k < hi and flat[k + 1] <= flat[k]:
        k += 1
    while k > lo and flat[k + 1] <= flat[k]:
        k -= 1
    return k


@nb_jit(nopython=True, cache=True, parallel=False)
def _locate_knot_impl(knots: npt.NDArray[np.float64], u: float, eps: float) -> int:
    """Index ``i`` of the knot interval ``[knots[i], knots[i + 1])`` holding ``u``.

    A parameter within ``eps`` below a knot snaps onto that knot. The result
    is clamped to ``[0, knots.size - 1]``.
    """
    n = knots.size
    i = np.searchsorted(knots, u, side="right") - 1
    if i < 0:
        i = 0
    if i > n - 1:
        i = n - 1
    if i < n - 1 and knots[i + 1] - u <= eps:
        i += 1
    return i
