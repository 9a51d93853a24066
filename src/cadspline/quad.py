"""Gauss-Legendre points used to sample curves span by span."""

from __future__ import annotations

from collections.abc import Callable
from typing import cast

import numpy as np
import numpy.typing as npt
from numpy.polynomial import legendre


def _validate_n_pts(n_pts: int) -> None:
    """Validate the number of points.

    Args:
        n_pts (int): The number of points. Must be at least 1.

    Raises:
        ValueError: If n_pts is less than 1.
    """
    if n_pts < 1:
        raise ValueError("n_pts must be at least 1")


def get_gauss_legendre_quadrature_1D(
    n_pts: int,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Get Gauss-Legendre quadrature nodes on [0, 1] for the given number of points.

    The rule with ``n_pts`` points integrates polynomials of degree up to
    ``2 * n_pts - 1`` exactly, and its nodes are distinct interior points of
    [0, 1], so ``n_pts`` nodes determine any polynomial of degree
    ``n_pts - 1``.

    Args:
        n_pts (int): The number of points. Must be at least 1.

    Returns:
        tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
            The nodes and weights, scaled from [-1, 1] to [0, 1].

    Raises:
        ValueError: If n_pts is less than 1.
    """
    _validate_n_pts(n_pts)

    leggauss_t = cast(
        Callable[[int], tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]],
        legendre.leggauss,
    )
    nodes, weights = leggauss_t(n_pts)

    return (nodes + 1.0) * 0.5, weights * 0.5


def get_span_sample_points(
    breakpoints: npt.ArrayLike, n_pts_per_span: int
) -> npt.NDArray[np.float64]:
    """Map Gauss-Legendre nodes onto every interval of a breakpoint sequence.

    Args:
        breakpoints (npt.ArrayLike): Strictly increasing interval bounds.
        n_pts_per_span (int): Number of nodes placed in each interval.

    Returns:
        npt.NDArray[np.float64]: Sorted parameters, ``n_pts_per_span`` per
            interval.

    Raises:
        ValueError: If fewer than two breakpoints are given, if they are not
            strictly increasing or if ``n_pts_per_span`` is less than 1.
    """
    bounds = np.asarray(breakpoints, dtype=np.float64)
    if bounds.ndim != 1 or bounds.size < 2:
        raise ValueError("At least two breakpoints are required")
    lengths = np.diff(bounds)
    if np.any(lengths <= 0.0):
        raise ValueError("Breakpoints must be strictly increasing")

    nodes, _ = get_gauss_legendre_quadrature_1D(n_pts_per_span)
    return (bounds[:-1, np.newaxis] + lengths[:, np.newaxis] * nodes[np.newaxis, :]).ravel()
