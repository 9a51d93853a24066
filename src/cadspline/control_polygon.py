"""Control polygon of a (possibly rational) curve."""

from __future__ import annotations

import logging

import numpy as np
import numpy.typing as npt

from .errors import ConstructionError, RangeError
from .tolerance import get_resolution

logger = logging.getLogger(__name__)


def weights_are_rational(weights: npt.NDArray[np.float64]) -> bool:
    """Whether two consecutive weights differ by more than the resolution.

    Args:
        weights (npt.NDArray[np.float64]): Pole weights.

    Returns:
        bool: True if the weights make the curve genuinely rational.
    """
    return bool(np.any(np.abs(np.diff(weights)) > get_resolution(np.float64)))


def check_weights(weights: npt.NDArray[np.float64], num_points: int) -> None:
    """Validate a weight array against the number of poles.

    Raises:
        ConstructionError: If the size does not match or a weight is not
            greater than the resolution.
    """
    if weights.ndim != 1 or weights.size != num_points:
        raise ConstructionError(
            f"Expected {num_points} weights, got array of shape {weights.shape}"
        )
    if np.any(weights <= get_resolution(np.float64)):
        raise ConstructionError("Weights must be greater than the resolution")


class ControlPolygon:
    """Poles of a curve with optional weights.

    A polygon is rational only when it holds weights that are not all equal
    (unless rationality checking is disabled at construction). Non-rational
    polygons store no weights and report unit weights.

    Attributes:
        _points (npt.NDArray[np.float64]): Pole coordinates, shape (n, dim).
        _weights (npt.NDArray[np.float64] | None): Pole weights, or None.
    """

    _points: npt.NDArray[np.float64]
    _weights: npt.NDArray[np.float64] | None

    def __init__(
        self,
        points: npt.ArrayLike,
        weights: npt.ArrayLike | None = None,
        check_rational: bool = True,
    ) -> None:
        """Initialize a control polygon.

        Args:
            points (npt.ArrayLike): Pole coordinates of shape (n, dim), n >= 2.
            weights (npt.ArrayLike | None): Optional weights of shape (n,).
            check_rational (bool): If True, weights that are all equal are
                dropped and the polygon is non-rational.

        Raises:
            ConstructionError: If the points or weights are invalid.
        """
        points_array = np.array(points, dtype=np.float64)
        if points_array.ndim != 2 or points_array.shape[1] < 1:
            raise ConstructionError("Poles must be a 2D array of shape (num_poles, dim)")
        if points_array.shape[0] < 2:
            raise ConstructionError("At least two poles are required")
        self._points = points_array

        self._weights = None
        if weights is not None:
            weights_array = np.array(weights, dtype=np.float64)
            check_weights(weights_array, points_array.shape[0])
            if not check_rational or weights_are_rational(weights_array):
                self._weights = weights_array

    @classmethod
    def from_homogeneous(
        cls, homogeneous: npt.NDArray[np.float64], rational: bool
    ) -> ControlPolygon:
        """Build a polygon from homogeneous coordinates ``[w * P, w]``.

        Args:
            homogeneous (npt.NDArray[np.float64]): Array of shape (n, dim + 1).
            rational (bool): Whether the last column holds genuine weights.
                Otherwise it is ignored.

        Returns:
            ControlPolygon: New polygon. A rational input keeps its weights
            even if they happen to be equal.
        """
        if not rational:
            return cls(homogeneous[:, :-1])
        weights = homogeneous[:, -1]
        return cls(homogeneous[:, :-1] / weights[:, np.newaxis], weights, check_rational=False)

    def copy(self) -> ControlPolygon:
        """Independent copy of the polygon."""
        return ControlPolygon(self._points, self._weights, check_rational=False)

    @property
    def num_points(self) -> int:
        """Number of poles."""
        return int(self._points.shape[0])

    @property
    def dimension(self) -> int:
        """Dimension of the ambient space."""
        return int(self._points.shape[1])

    @property
    def is_rational(self) -> bool:
        """Whether the polygon carries weights."""
        return self._weights is not None

    @property
    def points(self) -> npt.NDArray[np.float64]:
        """Read-only view of the pole coordinates."""
        view = self._points.view()
        view.flags.writeable = False
        return view

    @property
    def weights(self) -> npt.NDArray[np.float64]:
        """Copy of the weights (all ones for a non-rational polygon)."""
        if self._weights is None:
            return np.ones(self.num_points, dtype=np.float64)
        return self._weights.copy()

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_points:
            raise RangeError(f"Pole index {index} out of range [0, {self.num_points - 1}]")

    def point(self, index: int) -> npt.NDArray[np.float64]:
        """Copy of the pole at ``index``.

        Raises:
            RangeError: If the index is out of range.
        """
        self._check_index(index)
        return self._points[index].copy()

    def weight(self, index: int) -> float:
        """Weight of the pole at ``index`` (1.0 for non-rational polygons).

        Raises:
            RangeError: If the index is out of range.
        """
        self._check_index(index)
        return 1.0 if self._weights is None else float(self._weights[index])

    def homogeneous(self) -> npt.NDArray[np.float64]:
        """Homogeneous coordinates ``[w * P, w]`` of shape (n, dim + 1)."""
        weights = self.weights
        return np.column_stack((self._points * weights[:, np.newaxis], weights))

    def take(self, indices: npt.ArrayLike) -> ControlPolygon:
        """New polygon made of the poles (and weights) at ``indices``."""
        index_array = np.asarray(indices, dtype=np.int64)
        weights = None if self._weights is None else self._weights[index_array]
        return ControlPolygon(self._points[index_array], weights, check_rational=False)

    def set_point(self, index: int, point: npt.ArrayLike) -> None:
        """Replace one pole in place.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the point does not have the polygon's dimension.
        """
        self._check_index(index)
        point_array = np.asarray(point, dtype=np.float64)
        if point_array.shape != (self.dimension,):
            raise ConstructionError(
                f"Pole must have shape ({self.dimension},), got {point_array.shape}"
            )
        self._points[index] = point_array

    def set_weight(self, index: int, weight: float) -> None:
        """Replace one weight in place.

        A non-rational polygon becomes rational when a weight different from 1
        is set. A rational polygon whose weights all become equal drops them.

        Raises:
            RangeError: If the index is out of range.
            ConstructionError: If the weight is not greater than the resolution.
        """
        self._check_index(index)
        resolution = get_resolution(np.float64)
        if weight <= resolution:
            raise ConstructionError(f"Weight {weight} must be greater than {resolution}")

        was_rational = self._weights is not None
        if self._weights is None:
            if abs(weight - 1.0) <= resolution:
                return
            self._weights = np.ones(self.num_points, dtype=np.float64)
        self._weights[index] = weight

        if was_rational and not weights_are_rational(self._weights):
            logger.info("All weights are equal; the control polygon is no longer rational")
            self._weights = None
