"""Tests for knot vectors and their analysis."""

from __future__ import annotations

import numpy as np
import numpy.testing as nptest
import pytest

from cadspline._knots_impl import _locate_knot_impl, _locate_span_impl
from cadspline.errors import ConstructionError, RangeError
from cadspline.knots import (
    Continuity,
    KnotDistribution,
    KnotVector,
    MultiplicityDistribution,
    check_knots_increasing,
    create_uniform_knots,
)


class TestKnotVectorInit:
    """Construction and validation."""

    def test_valid_initialization(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0], [3, 1, 3])
        assert len(kv) == 3
        nptest.assert_array_equal(kv.knots, [0.0, 1.0, 2.0])
        nptest.assert_array_equal(kv.multiplicities, [3, 1, 3])
        assert kv.knots.dtype == np.float64
        assert kv.multiplicities.dtype == np.int64

    def test_integer_knots_conversion(self) -> None:
        kv = KnotVector([0, 1, 2], [1, 1, 1])
        assert kv.knots.dtype == np.float64

    def test_length_mismatch_error(self) -> None:
        with pytest.raises(ConstructionError, match="same length"):
            KnotVector([0.0, 1.0, 2.0], [1, 1])

    def test_single_knot_error(self) -> None:
        with pytest.raises(ConstructionError, match="two knots"):
            KnotVector([0.0], [2])

    def test_non_increasing_knots_error(self) -> None:
        with pytest.raises(ConstructionError, match="strictly increasing"):
            KnotVector([0.0, 1.0, 1.0], [2, 1, 2])
        with pytest.raises(ConstructionError, match="strictly increasing"):
            KnotVector([0.0, 2.0, 1.0], [2, 1, 2])

    def test_non_positive_multiplicity_error(self) -> None:
        with pytest.raises(ConstructionError, match="positive"):
            KnotVector([0.0, 1.0], [2, 0])

    def test_non_integer_multiplicity_error(self) -> None:
        with pytest.raises(ConstructionError, match="integers"):
            KnotVector([0.0, 1.0], [2.5, 2])

    def test_non_finite_knot_error(self) -> None:
        with pytest.raises(ConstructionError, match="finite"):
            KnotVector([0.0, np.inf], [2, 2])

    def test_views_are_read_only(self) -> None:
        kv = KnotVector([0.0, 1.0], [2, 2])
        with pytest.raises(ValueError):
            kv.knots[0] = 5.0
        with pytest.raises(ValueError):
            kv.multiplicities[0] = 5

    def test_input_is_copied(self) -> None:
        knots = np.array([0.0, 1.0, 2.0])
        kv = KnotVector(knots, [2, 1, 2])
        knots[1] = 1.5
        assert kv.knot(1) == 1.0

    def test_check_knots_increasing(self) -> None:
        check_knots_increasing(np.array([0.0, 0.5, 1.0]))
        with pytest.raises(ConstructionError):
            check_knots_increasing(np.array([1.0, np.nextafter(1.0, 2.0)]))


class TestKnotVectorAccess:
    """Element access and in-place updates."""

    def test_knot_and_multiplicity(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        assert kv.knot(2) == 3.0
        assert kv.multiplicity(1) == 1
        assert kv.period == 3.0

    @pytest.mark.parametrize("index", [-1, 3])
    def test_index_out_of_range(self, index: int) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        with pytest.raises(RangeError):
            kv.knot(index)
        with pytest.raises(RangeError):
            kv.multiplicity(index)

    def test_set_value(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        kv.set_value(1, 2.0)
        assert kv.knot(1) == 2.0

    def test_set_value_breaking_order(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        with pytest.raises(ConstructionError, match="successor"):
            kv.set_value(1, 3.0)
        with pytest.raises(ConstructionError, match="predecessor"):
            kv.set_value(1, -1.0)
        assert kv.knot(1) == 1.0

    def test_set_value_out_of_range(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        with pytest.raises(RangeError):
            kv.set_value(3, 4.0)

    def test_copy_is_independent(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        other = kv.copy()
        other.set_value(1, 2.0)
        assert kv.knot(1) == 1.0


class TestKnotVectorStructure:
    """Pole count, flattening and domain indices."""

    def test_num_poles_clamped(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0, 4.0], [4, 1, 1, 1, 4])
        assert kv.num_poles(3, False) == 7

    def test_num_poles_periodic(self) -> None:
        kv = KnotVector(np.arange(6.0), np.ones(6, dtype=int))
        assert kv.num_poles(3, True) == 5

    def test_num_poles_incompatible(self) -> None:
        # interior multiplicity above the degree
        assert KnotVector([0.0, 1.0, 2.0], [3, 3, 3]).num_poles(2, False) == 0
        # unequal periodic ends
        assert KnotVector([0.0, 1.0, 2.0], [1, 1, 2]).num_poles(2, True) == 0

    def test_flatten_clamped(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0], [3, 1, 3])
        nptest.assert_array_equal(kv.flatten(2, False), [0, 0, 0, 1, 2, 2, 2])

    def test_flatten_periodic_extension(self) -> None:
        kv = KnotVector(np.arange(6.0), np.ones(6, dtype=int))
        flat = kv.flatten(3, True)
        nptest.assert_array_equal(flat, np.arange(-3.0, 9.0))
        assert flat[3] == 0.0
        assert flat[flat.size - 4] == 5.0

    def test_flatten_periodic_with_seam_multiplicity(self) -> None:
        kv = KnotVector([0.0, 1.0, 3.0], [2, 1, 2])
        flat = kv.flatten(2, True)
        # one extension knot on each side
        nptest.assert_array_equal(flat, [-2.0, 0.0, 0.0, 1.0, 3.0, 3.0, 4.0])

    def test_flatten_is_read_only(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0], [1, 1, 1, 1])
        flat = kv.flatten(1, False)
        with pytest.raises(ValueError):
            flat[0] = 1.0

    def test_first_and_last_index(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0, 4.0, 5.0], [1, 1, 1, 1, 1, 1])
        assert kv.first_index(2, False) == 2
        assert kv.last_index(2, False) == 3
        assert kv.first_index(2, True) == 0
        assert kv.last_index(2, True) == 5

    def test_locate_span(self) -> None:
        flat = KnotVector([0.0, 1.0, 2.0], [3, 1, 3]).flatten(2, False)
        assert _locate_span_impl(flat, 2, 0.0) == 2
        assert _locate_span_impl(flat, 2, 0.5) == 2
        assert _locate_span_impl(flat, 2, 1.0) == 3
        # last parameter belongs to the last span
        assert _locate_span_impl(flat, 2, 2.0) == 3
        # clamped outside the domain
        assert _locate_span_impl(flat, 2, -1.0) == 2
        assert _locate_span_impl(flat, 2, 5.0) == 3

    def test_locate_knot(self) -> None:
        knots = np.array([0.0, 1.0, 2.0])
        assert _locate_knot_impl(knots, 0.5, 0.0) == 0
        assert _locate_knot_impl(knots, 1.0, 0.0) == 1
        assert _locate_knot_impl(knots, 1.0 - 1e-12, 1e-10) == 1
        assert _locate_knot_impl(knots, 3.0, 0.0) == 2


class TestKnotVectorClassification:
    """Distribution and continuity analysis."""

    @pytest.mark.parametrize(
        ("knots", "mults", "degree", "expected"),
        [
            ([0.0, 1.0, 2.0, 3.0], [1, 1, 1, 1], 2, KnotDistribution.UNIFORM),
            ([0.0, 1.0, 2.0, 3.0], [3, 1, 1, 3], 2, KnotDistribution.QUASI_UNIFORM),
            ([0.0, 1.0, 2.0, 3.0], [4, 3, 3, 4], 3, KnotDistribution.PIECEWISE_BEZIER),
            ([0.0, 1.0], [4, 4], 3, KnotDistribution.PIECEWISE_BEZIER),
            ([0.0, 1.0, 3.0], [3, 1, 3], 2, KnotDistribution.NON_UNIFORM),
            ([0.0, 1.0, 2.0, 3.0], [3, 1, 2, 3], 2, KnotDistribution.NON_UNIFORM),
        ],
    )
    def test_distribution(
        self, knots: list[float], mults: list[int], degree: int, expected: KnotDistribution
    ) -> None:
        assert KnotVector(knots, mults).distribution(degree) == expected

    @pytest.mark.parametrize(
        ("mults", "expected"),
        [
            ([2, 2, 2, 2], MultiplicityDistribution.CONSTANT),
            ([3, 1, 1, 3], MultiplicityDistribution.QUASI_CONSTANT),
            ([3, 1, 2, 3], MultiplicityDistribution.NON_CONSTANT),
            ([3, 1, 1, 2], MultiplicityDistribution.NON_CONSTANT),
        ],
    )
    def test_multiplicity_distribution(
        self, mults: list[int], expected: MultiplicityDistribution
    ) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0], mults)
        assert kv.multiplicity_distribution() == expected

    def test_uniform_spacing(self) -> None:
        assert KnotVector([0.0, 0.1, 0.2, 0.3], [1, 1, 1, 1]).is_uniform_spacing()
        assert not KnotVector([0.0, 0.1, 0.25], [1, 1, 1]).is_uniform_spacing()

    def test_continuity_and_max_interior_multiplicity(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0], [4, 2, 1, 4])
        assert kv.max_interior_multiplicity(3, False) == 2
        assert kv.continuity(3, False) == Continuity.C1

    def test_continuity_without_interior_knots(self) -> None:
        kv = KnotVector([0.0, 1.0], [4, 4])
        assert kv.max_interior_multiplicity(3, False) == 0
        assert kv.continuity(3, False) == Continuity.CN
        assert Continuity.CN.order is None

    def test_periodic_seam_counts_for_continuity(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0, 3.0], [2, 1, 1, 2])
        assert kv.max_interior_multiplicity(3, True) == 2
        assert kv.continuity(3, True) == Continuity.C1

    def test_high_degree_continuity_is_capped(self) -> None:
        kv = KnotVector([0.0, 1.0, 2.0], [7, 1, 7])
        assert kv.continuity(6, False) == Continuity.C3
        assert Continuity.C3.order == 3


class TestCreateUniformKnots:
    """Tests for create_uniform_knots."""

    def test_docstring_example(self) -> None:
        knots, mults = create_uniform_knots(2, 2)
        nptest.assert_allclose(knots, [0.0, 0.5, 1.0])
        nptest.assert_array_equal(mults, [3, 1, 3])

    def test_custom_domain_and_continuity(self) -> None:
        knots, mults = create_uniform_knots(3, 3, continuity=1, domain=(-1.0, 2.0))
        nptest.assert_allclose(knots, [-1.0, 0.0, 1.0, 2.0])
        nptest.assert_array_equal(mults, [4, 2, 2, 4])

    def test_periodic(self) -> None:
        knots, mults = create_uniform_knots(4, 3, periodic=True)
        assert knots.size == 5
        nptest.assert_array_equal(mults, [1, 1, 1, 1, 1])
        assert KnotVector(knots, mults).num_poles(3, True) == 4

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"num_intervals": 0, "degree": 2}, "num_intervals"),
            ({"num_intervals": 2, "degree": 0}, "degree"),
            ({"num_intervals": 2, "degree": 2, "continuity": 2}, "Continuity"),
            ({"num_intervals": 2, "degree": 2, "domain": (1.0, 0.0)}, "domain"),
        ],
    )
    def test_invalid_arguments(self, kwargs: dict[str, object], match: str) -> None:
        with pytest.raises(ValueError, match=match):
            create_uniform_knots(**kwargs)  # type: ignore[arg-type]
