"""Public API surface for cadspline.

Defines package metadata and exported interfaces.
"""

from typing import Final

# Private API imports (accessible but not in __all__)
# Numba kernels can be reached via: cadspline._bezier_impl._function_name, etc.
from . import (
    _bezier_impl,  # noqa: F401
    _knots_impl,  # noqa: F401
    _modify_impl,  # noqa: F401
)

# Public API imports
from .bspline_curve import MAX_DEGREE, BSplineCurve
from .control_polygon import ControlPolygon
from .errors import BSplineError, ConstructionError, DomainError, MoveStatus, RangeError
from .knots import (
    Continuity,
    KnotDistribution,
    KnotVector,
    MultiplicityDistribution,
    create_uniform_knots,
)
from .quad import get_gauss_legendre_quadrature_1D
from .span_cache import SpanCache
from .tolerance import (
    epsilon,
    get_default_tolerance,
    get_machine_epsilon,
    get_resolution,
    get_strict_tolerance,
)

# Package metadata
__version__: Final[str] = "0.1.0"
__license__: Final[str] = "MIT"
__author__: Final[str] = "Pablo Antolin <pablo.antolin@epfl.ch>"

# Public interface: only functions/classes that don't start with _
__all__ = [
    "MAX_DEGREE",
    "BSplineCurve",
    "BSplineError",
    "ConstructionError",
    "Continuity",
    "ControlPolygon",
    "DomainError",
    "KnotDistribution",
    "KnotVector",
    "MoveStatus",
    "MultiplicityDistribution",
    "RangeError",
    "SpanCache",
    "__author__",
    "__license__",
    "__version__",
    "create_uniform_knots",
    "epsilon",
    "get_default_tolerance",
    "get_gauss_legendre_quadrature_1D",
    "get_machine_epsilon",
    "get_resolution",
    "get_strict_tolerance",
]
