"""Floating-point thresholds used when comparing knots, weights and poles.

Only ``float32`` and ``float64`` are supported. Curve data is stored in
``float64``; the ``float32`` presets exist for callers comparing data they
produced in single precision.
"""

from functools import cache
from typing import Any, NamedTuple

import numpy as np
from numpy import typing as npt


class _Thresholds(NamedTuple):
    """Comparison thresholds of one floating-point type."""

    default: float
    strict: float
    machine_epsilon: float
    resolution: float


def _thresholds_from_finfo(
    dtype: type[np.floating[Any]], default: float, strict: float
) -> _Thresholds:
    info = np.finfo(dtype)
    return _Thresholds(default, strict, float(info.eps), float(info.resolution))


_THRESHOLDS: dict[str, _Thresholds] = {
    "float32": _thresholds_from_finfo(np.float32, 1e-6, 1e-7),
    "float64": _thresholds_from_finfo(np.float64, 1e-12, 1e-15),
}


@cache
def _thresholds_by_name(name: str) -> _Thresholds:
    """Cached lookup of the thresholds of a dtype given its canonical name.

    Raises:
        ValueError: If the dtype is neither float32 nor float64.
    """
    thresholds = _THRESHOLDS.get(name)
    if thresholds is None:
        raise ValueError(f"Unsupported dtype: {name} (expected float32 or float64)")
    return thresholds


def _thresholds(dtype: npt.DTypeLike) -> _Thresholds:
    return _thresholds_by_name(np.dtype(dtype).name)


def get_default_tolerance(dtype: npt.DTypeLike = np.float64) -> float:
    """Get the default tolerance for floating-point comparisons.

    Used as the floor for geometric tolerances (e.g. knot removal), scaled by
    the size of the control polygon.

    Args:
        dtype (npt.DTypeLike): Floating-point data type. Defaults to float64.

    Returns:
        float: Default tolerance for ``dtype``.

    Raises:
        ValueError: If ``dtype`` is not float32 or float64.

    Example:
        >>> get_default_tolerance(np.float32)
        1e-06
        >>> get_default_tolerance("float64")
        1e-12
    """
    return _thresholds(dtype).default


def get_strict_tolerance(dtype: npt.DTypeLike = np.float64) -> float:
    """Get the tolerance for comparisons of parametric coordinates.

    Raises:
        ValueError: If ``dtype`` is not float32 or float64.
    """
    return _thresholds(dtype).strict


def get_machine_epsilon(dtype: npt.DTypeLike = np.float64) -> float:
    """Gap between 1.0 and the next representable value of ``dtype``.

    Raises:
        ValueError: If ``dtype`` is not float32 or float64.
    """
    return _thresholds(dtype).machine_epsilon


def get_resolution(dtype: npt.DTypeLike = np.float64) -> float:
    """Decimal resolution of ``dtype`` (1e-15 for float64).

    Two weights closer than the resolution are considered equal, and a weight
    must be greater than it.

    Args:
        dtype (npt.DTypeLike): Floating-point data type. Defaults to float64.

    Returns:
        float: ``np.finfo(dtype).resolution``.

    Raises:
        ValueError: If ``dtype`` is not float32 or float64.
    """
    return _thresholds(dtype).resolution


def epsilon(value: float) -> float:
    """Distance from ``|value|`` to the next representable float64."""
    return float(np.spacing(abs(np.float64(value))))
