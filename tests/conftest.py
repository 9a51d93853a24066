"""Pytest configuration to make `src` importable without installing the package.

Also provides the reference curves shared by the test modules and a SciPy
evaluator used as an independent check of curve values.
"""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import numpy.typing as npt
import pytest


def _ensure_src_on_sys_path() -> None:
    """Prepend the repository `src` directory to `sys.path` if missing."""
    repo_root: Path = Path(__file__).resolve().parents[1]
    src_path: Path = repo_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


_ensure_src_on_sys_path()

from scipy.interpolate import BSpline  # noqa: E402

from cadspline import BSplineCurve  # noqa: E402

CLAMPED_POLES: npt.NDArray[np.float64] = np.array(
    [
        [0.0, 0.0],
        [1.0, 2.0],
        [2.0, -1.0],
        [3.0, 3.0],
        [4.0, 0.5],
        [5.0, 2.5],
        [6.0, 0.0],
    ]
)

PERIODIC_POLES: npt.NDArray[np.float64] = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.3, 1.0, 0.5],
        [-0.8, 0.6, -0.2],
        [-0.8, -0.6, 0.3],
        [0.3, -1.0, 0.0],
    ]
)


def reference_values(
    curve: BSplineCurve, params: npt.NDArray[np.float64], n_derivs: int = 0
) -> npt.NDArray[np.float64]:
    """Evaluate ``curve`` with SciPy from its flat knots, poles and weights.

    Returns:
        npt.NDArray[np.float64]: Array of shape (len(params), n_derivs + 1, dim).
    """
    flat = np.array(curve.flat_knots)
    degree = curve.degree
    num_basis = flat.size - degree - 1
    indices = np.arange(num_basis) % curve.num_poles
    weights = curve.weights[indices]
    homogeneous = np.column_stack((curve.poles[indices] * weights[:, np.newaxis], weights))
    spline = BSpline(flat, homogeneous, degree, extrapolate=False)

    dim = curve.dimension
    out = np.zeros((params.size, n_derivs + 1, dim))
    hders = np.stack(
        [spline(params) if k == 0 else spline.derivative(k)(params) for k in range(n_derivs + 1)],
        axis=1,
    )
    for k in range(n_derivs + 1):
        value = hders[:, k, :dim].copy()
        for i in range(1, k + 1):
            binom = float(np.prod(np.arange(k - i + 1, k + 1)) / np.prod(np.arange(1, i + 1)))
            value -= binom * hders[:, i, dim : dim + 1] * out[:, k - i, :]
        out[:, k, :] = value / hders[:, 0, dim : dim + 1]
    return out


def sample_params(curve: BSplineCurve, n_pts: int = 41) -> npt.NDArray[np.float64]:
    """Parameters spread over the domain, ends included."""
    return np.linspace(curve.first_parameter, curve.last_parameter, n_pts)


def curve_values(curve: BSplineCurve, params: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Points of ``curve`` at ``params``, shape (len(params), dim)."""
    return np.array([curve.value(u) for u in params])


@pytest.fixture
def clamped_curve() -> BSplineCurve:
    """Cubic 2D curve with clamped ends on knots 0..4."""
    return BSplineCurve(CLAMPED_POLES, [0.0, 1.0, 2.0, 3.0, 4.0], [4, 1, 1, 1, 4], 3)


@pytest.fixture
def rational_curve() -> BSplineCurve:
    """Rational version of :func:`clamped_curve`."""
    weights = np.array([1.0, 2.0, 0.5, 1.5, 1.0, 3.0, 1.0])
    return BSplineCurve(
        CLAMPED_POLES, [0.0, 1.0, 2.0, 3.0, 4.0], [4, 1, 1, 1, 4], 3, weights=weights
    )


@pytest.fixture
def periodic_curve() -> BSplineCurve:
    """Cubic periodic 3D curve with 5 poles on knots 0..5."""
    return BSplineCurve(PERIODIC_POLES, np.arange(6.0), np.ones(6, dtype=int), 3, periodic=True)
