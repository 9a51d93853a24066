"""Kernels that change the control structure of a curve.

Poles are passed in homogeneous form ``[w * P, w]`` so the same code serves
rational and non-rational curves. Non-periodic clamped data goes through the
classical algorithms of The NURBS Book (Boehm insertion, A5.8 removal, A5.9
elevation); periodic and unclamped data is re-expressed on the target knot
vector by an exact least-squares refit.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import numba as nb
import numpy as np
import numpy.typing as npt
import scipy.linalg
from scipy.special import comb

from ._bezier_impl import _basis_funs_impl
from ._knots_impl import _locate_span_impl
from .quad import get_span_sample_points

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
def _insert_knot_once_impl(
    flat: npt.NDArray[np.float64],
    poles: npt.NDArray[np.float64],
    degree: int,
    u: float,
    span: int,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Insert ``u`` once into a non-periodic curve (Boehm's algorithm).

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        poles (npt.NDArray[np.float64]): Homogeneous poles, shape (n, n_cols).
        degree (int): Polynomial degree.
        u (float): Knot to insert, with ``flat[span] <= u <= flat[span + 1]``.
        span (int): Non-degenerate span holding ``u``.

    Returns:
        tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]: New flat
        knots and poles, one entry longer each.
    """
    n_poles = poles.shape[0]
    n_cols = poles.shape[1]
    new_flat = np.empty(flat.size + 1, dtype=np.float64)
    new_flat[: span + 1] = flat[: span + 1]
    new_flat[span + 1] = u
    new_flat[span + 2 :] = flat[span + 1 :]

    new_poles = np.empty((n_poles + 1, n_cols), dtype=np.float64)
    new_poles[: span - degree + 1, :] = poles[: span - degree + 1, :]
    for i in range(span - degree + 1, span + 1):
        alpha = (u - flat[i]) / (flat[i + degree] - flat[i])
        for c in range(n_cols):
            new_poles[i, c] = alpha * poles[i, c] + (1.0 - alpha) * poles[i - 1, c]
    new_poles[span + 1 :, :] = poles[span:, :]
    return new_flat, new_poles


@nb_jit(nopython=True, cache=True, parallel=False)
def _distance_impl(a: npt.NDArray[np.float64], b: npt.NDArray[np.float64]) -> float:
    """Euclidean distance between two rows."""
    total = 0.0
    for c in range(a.size):
        diff = a[c] - b[c]
        total += diff * diff
    return np.sqrt(total)


@nb_jit(nopython=True, cache=True, parallel=False)
def _remove_knot_impl(
    flat: npt.NDArray[np.float64],
    poles: npt.NDArray[np.float64],
    degree: int,
    r: int,
    s: int,
    num: int,
    tol: float,
) -> tuple[int, npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Remove a knot up to ``num`` times (The NURBS Book, A5.8).

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        poles (npt.NDArray[np.float64]): Homogeneous poles, shape (n, n_cols).
        degree (int): Polynomial degree.
        r (int): Index in ``flat`` of the last copy of the knot.
        s (int): Current multiplicity of the knot.
        num (int): Number of removals requested.
        tol (float): Maximum homogeneous deviation of the poles.

    Returns:
        tuple[int, npt.NDArray[np.float64], npt.NDArray[np.float64]]: Number
        of removals performed, and the corresponding flat knots and poles.
    """
    p = degree
    n = poles.shape[0] - 1
    m = n + p + 1
    u = flat[r]
    order = p + 1
    fout = (2 * r - s - p) // 2
    last = r - s
    first = r - p
    n_cols = poles.shape[1]
    pw = poles.copy()
    knots = flat.copy()
    temp = np.zeros((2 * p + 1, n_cols), dtype=np.float64)

    t = 0
    while t < num:
        off = first - 1
        temp[0, :] = pw[off, :]
        temp[last + 1 - off, :] = pw[last + 1, :]
        i = first
        j = last
        ii = 1
        jj = last - off
        while j - i > t:
            alfi = (u - knots[i]) / (knots[i + order + t] - knots[i])
            alfj = (u - knots[j - t]) / (knots[j + order] - knots[j - t])
            temp[ii, :] = (pw[i, :] - (1.0 - alfi) * temp[ii - 1, :]) / alfi
            temp[jj, :] = (pw[j, :] - alfj * temp[jj + 1, :]) / (1.0 - alfj)
            i += 1
            ii += 1
            j -= 1
            jj -= 1
        if j - i < t:
            removable = _distance_impl(temp[ii - 1], temp[jj + 1]) <= tol
        else:
            alfi = (u - knots[i]) / (knots[i + order + t] - knots[i])
            blend = alfi * temp[ii + t + 1] + (1.0 - alfi) * temp[ii - 1]
            removable = _distance_impl(pw[i], blend) <= tol
        if not removable:
            break
        i = first
        j = last
        while j - i > t:
            pw[i, :] = temp[i - off, :]
            pw[j, :] = temp[j - off, :]
            i += 1
            j -= 1
        first -= 1
        last += 1
        t += 1

    if t == 0:
        return 0, flat.copy(), poles.copy()

    for k in range(r + 1, m + 1):
        knots[k - t] = knots[k]
    j = fout
    i = j
    for k in range(1, t):
        if k % 2 == 1:
            i += 1
        else:
            j -= 1
    for k in range(i + 1, n + 1):
        pw[j, :] = pw[k, :]
        j += 1
    return t, knots[: m + 1 - t].copy(), pw[: n + 1 - t].copy()


@nb_jit(nopython=True, cache=True, parallel=False)
def _elevate_degree_impl(
    flat: npt.NDArray[np.float64],
    poles: npt.NDArray[np.float64],
    degree: int,
    step: int,
    bezalfs: npt.NDArray[np.float64],
    num_new_poles: int,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Raise the degree of a clamped non-periodic curve (The NURBS Book, A5.9).

    The curve is decomposed into Bezier segments, each segment is elevated
    with the product matrix ``bezalfs`` and the superfluous knots are removed
    again, so interior continuity is unchanged.

    Args:
        flat (npt.NDArray[np.float64]): Clamped flattened knot sequence.
        poles (npt.NDArray[np.float64]): Homogeneous poles, shape (n, n_cols).
        degree (int): Current degree ``p``.
        step (int): Degree increment ``t``.
        bezalfs (npt.NDArray[np.float64]): Bezier elevation coefficients,
            shape (p + t + 1, p + 1).
        num_new_poles (int): Number of poles of the elevated curve.

    Returns:
        tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]: Elevated flat
        knots and poles.
    """
    p = degree
    t = step
    n = poles.shape[0] - 1
    m = n + p + 1
    ph = p + t
    n_cols = poles.shape[1]
    n_new_flat = num_new_poles + ph + 1

    bpts = np.zeros((p + 1, n_cols), dtype=np.float64)
    ebpts = np.zeros((ph + 1, n_cols), dtype=np.float64)
    next_bpts = np.zeros((max(p - 1, 1), n_cols), dtype=np.float64)
    alfs = np.zeros(max(p - 1, 1), dtype=np.float64)
    qw = np.zeros((num_new_poles, n_cols), dtype=np.float64)
    uh = np.zeros(n_new_flat, dtype=np.float64)

    kind = ph + 1
    r = -1
    a = p
    b = p + 1
    cind = 1
    ua = flat[0]
    qw[0, :] = poles[0, :]
    for i in range(ph + 1):
        uh[i] = ua
    for i in range(p + 1):
        bpts[i, :] = poles[i, :]

    while b < m:
        i = b
        while b < m and flat[b] == flat[b + 1]:
            b += 1
        mul = b - i + 1
        ub = flat[b]
        oldr = r
        r = p - mul
        lbz = (oldr + 2) // 2 if oldr > 0 else 1
        rbz = ph - (r + 1) // 2 if r > 0 else ph

        if r > 0:
            numer = ub - ua
            for k in range(p, mul, -1):
                alfs[k - mul - 1] = numer / (flat[a + k] - ua)
            for j in range(1, r + 1):
                save = r - j
                s = mul + j
                for k in range(p, s - 1, -1):
                    bpts[k, :] = alfs[k - s] * bpts[k, :] + (1.0 - alfs[k - s]) * bpts[k - 1, :]
                next_bpts[save, :] = bpts[p, :]

        for i in range(lbz, ph + 1):
            ebpts[i, :] = 0.0
            for j in range(max(0, i - t), min(p, i) + 1):
                ebpts[i, :] = ebpts[i, :] + bezalfs[i, j] * bpts[j, :]

        if oldr > 1:
            first = kind - 2
            last = kind
            den = ub - ua
            bet = (ub - uh[kind - 1]) / den
            for tr in range(1, oldr):
                i = first
                j = last
                kj = j - kind + 1
                while j - i > tr:
                    if i < cind:
                        alf = (ub - uh[i]) / (ua - uh[i])
                        qw[i, :] = alf * qw[i, :] + (1.0 - alf) * qw[i - 1, :]
                    if j >= lbz:
                        if j - tr <= kind - ph + oldr:
                            gam = (ub - uh[j - tr]) / den
                            ebpts[kj, :] = gam * ebpts[kj, :] + (1.0 - gam) * ebpts[kj + 1, :]
                        else:
                            ebpts[kj, :] = bet * ebpts[kj, :] + (1.0 - bet) * ebpts[kj + 1, :]
                    i += 1
                    j -= 1
                    kj -= 1
                first -= 1
                last += 1

        if a != p:
            for i in range(ph - oldr):
                uh[kind] = ua
                kind += 1

        for j in range(lbz, rbz + 1):
            qw[cind, :] = ebpts[j, :]
            cind += 1

        if b < m:
            for j in range(r):
                bpts[j, :] = next_bpts[j, :]
            for j in range(r, p + 1):
                bpts[j, :] = poles[b - p + j, :]
            a = b
            b += 1
            ua = ub
        else:
            for i in range(ph + 1):
                uh[kind + i] = ub

    return uh, qw


def bezier_elevation_matrix(degree: int, step: int) -> npt.NDArray[np.float64]:
    """Coefficients expressing a degree ``degree + step`` Bezier in terms of a degree ``degree`` one.

    Args:
        degree (int): Original degree ``p``.
        step (int): Degree increment ``t``.

    Returns:
        npt.NDArray[np.float64]: Matrix of shape (p + t + 1, p + 1) with
        ``C(p, j) * C(t, i - j) / C(p + t, i)`` entries.
    """
    ph = degree + step
    bezalfs = np.zeros((ph + 1, degree + 1), dtype=np.float64)
    for i in range(ph + 1):
        inv = 1.0 / comb(ph, i, exact=False)
        for j in range(max(0, i - step), min(degree, i) + 1):
            bezalfs[i, j] = inv * comb(degree, j, exact=False) * comb(step, i - j, exact=False)
    return bezalfs


def basis_matrix(
    flat: npt.NDArray[np.float64],
    degree: int,
    num_poles: int,
    params: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Collocation matrix of the basis at the given parameters.

    Periodic spaces are handled by folding basis function ``j`` onto pole
    ``j mod num_poles``; parameters must already lie in the curve domain.

    Args:
        flat (npt.NDArray[np.float64]): Flattened knot sequence.
        degree (int): Polynomial degree.
        num_poles (int): Number of poles (columns).
        params (npt.NDArray[np.float64]): Evaluation parameters.

    Returns:
        npt.NDArray[np.float64]: Matrix of shape (len(params), num_poles).
    """
    matrix = np.zeros((params.size, num_poles), dtype=np.float64)
    for row, u in enumerate(params):
        span = _locate_span_impl(flat, degree, u)
        values = _basis_funs_impl(flat, degree, span, u)
        for i in range(degree + 1):
            matrix[row, (span - degree + i) % num_poles] += values[i]
    return matrix


def normalize_periodic(params: npt.NDArray[np.float64], first: float, last: float) -> npt.NDArray[np.float64]:
    """Bring parameters into ``[first, last)`` by whole periods."""
    return first + np.mod(params - first, last - first)


def refit_poles(
    source: tuple[npt.NDArray[np.float64], int, npt.NDArray[np.float64], bool],
    target: tuple[npt.NDArray[np.float64], int, int, bool],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Express a curve on another knot vector by least squares.

    The curve is sampled with ``max(degree) + 1`` Gauss-Legendre points on
    every interval between the breakpoints of both knot vectors, which makes
    the fit exact whenever the source lies in the target space.

    Args:
        source (tuple): ``(flat, degree, homogeneous_poles, periodic)`` of the
            current curve.
        target (tuple): ``(flat, degree, num_poles, periodic)`` of the new
            space.

    Returns:
        tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        New homogeneous poles, the sampled homogeneous source points and the
        same points evaluated on the fitted curve.
    """
    src_flat, src_degree, src_poles, src_periodic = source
    dst_flat, dst_degree, dst_num_poles, dst_periodic = target

    src_first = src_flat[src_degree]
    src_last = src_flat[src_flat.size - src_degree - 1]
    dst_first = dst_flat[dst_degree]
    dst_last = dst_flat[dst_flat.size - dst_degree - 1]

    breaks = np.concatenate(
        (
            src_flat[src_degree : src_flat.size - src_degree],
            dst_flat[dst_degree : dst_flat.size - dst_degree],
        )
    )
    if dst_periodic:
        breaks = normalize_periodic(breaks, src_first, src_last)
        breaks = np.append(breaks, src_last)
    breaks = np.unique(breaks[(breaks >= src_first) & (breaks <= src_last)])
    params = get_span_sample_points(breaks, max(src_degree, dst_degree) + 1)

    src_params = normalize_periodic(params, src_first, src_last) if src_periodic else params
    dst_params = normalize_periodic(params, dst_first, dst_last) if dst_periodic else params

    samples = basis_matrix(src_flat, src_degree, src_poles.shape[0], src_params) @ src_poles
    dst_matrix = basis_matrix(dst_flat, dst_degree, dst_num_poles, dst_params)
    new_poles, _, _, _ = scipy.linalg.lstsq(dst_matrix, samples)
    return new_poles, samples, dst_matrix @ new_poles


def removal_tolerance(poles: npt.NDArray[np.float64], tolerance: float, rational: bool) -> float:
    """Homogeneous-space tolerance for knot removal.

    For rational curves a Cartesian deviation ``tolerance`` is bounded by
    ``tolerance * w_min / (1 + |P|_max)`` in homogeneous space.

    Args:
        poles (npt.NDArray[np.float64]): Homogeneous poles.
        tolerance (float): Cartesian tolerance.
        rational (bool): Whether the last column holds genuine weights.

    Returns:
        float: Tolerance to apply to homogeneous poles.
    """
    if not rational:
        return tolerance
    weights = poles[:, -1]
    cartesian = poles[:, :-1] / weights[:, np.newaxis]
    max_norm = float(np.max(np.linalg.norm(cartesian, axis=1)))
    return tolerance * float(np.min(weights)) / (1.0 + max_norm)


def group_flat_knots(
    flat: npt.NDArray[np.float64],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.int64]]:
    """Collapse a flat knot sequence into distinct knots and multiplicities."""
    starts = np.concatenate(([True], flat[1:] != flat[:-1]))
    knots = flat[starts]
    indices = np.flatnonzero(starts)
    mults = np.diff(np.append(indices, flat.size)).astype(np.int64)
    return knots.copy(), mults


def schoenberg_points(flat: npt.NDArray[np.float64], degree: int) -> npt.NDArray[np.float64]:
    """Greville abscissae: averages of ``degree`` consecutive interior knots."""
    num_poles = flat.size - degree - 1
    windows = np.lib.stride_tricks.sliding_window_view(flat[1 : flat.size - 1], degree)
    return windows[:num_poles].mean(axis=1)
