from __future__ import annotations

import math

import pytest

from dwmctl.core.calibration import (
    evaluate_polynomial,
    fit_calibration_set,
    fit_polynomial,
    r_squared,
    solve_linear_system,
)
from dwmctl.core.errors import (
    DimensionMismatchError,
    InsufficientDataError,
    InvalidDegreeError,
    SingularSystemError,
)
from dwmctl.core.model import CalibrationSet, CoefficientScale


def test_reference_points_fit_through_origin() -> None:
    result = fit_polynomial([0, 1000, 2000, 3000], [0, 25, 60, 100], degree=3)
    assert len(result.coefficients) == 3
    assert evaluate_polynomial(result.coefficients, 0) == 0
    assert 0.0 <= result.r_squared <= 1.0
    # Three coefficients plus the fixed origin interpolate four points exactly.
    for x, y in [(1000, 25), (2000, 60), (3000, 100)]:
        assert evaluate_polynomial(result.coefficients, x) == pytest.approx(y, abs=1e-6)
    assert result.r_squared == pytest.approx(1.0)


def test_known_cubic_is_recovered() -> None:
    c = (0.02, 3e-6, 1e-9)
    xs = [0, 500, 1200, 1800, 2500, 3300]
    ys = [evaluate_polynomial(c, x) for x in xs]
    result = fit_polynomial(xs, ys, degree=3)
    for got, want in zip(result.coefficients, c):
        assert got == pytest.approx(want, rel=1e-6)


def test_scaled_coefficients_use_device_factors() -> None:
    result = fit_polynomial([0, 1000, 2000, 3000], [0, 25, 60, 100], degree=3)
    c1, c2, c3 = result.coefficients
    assert result.scaled_coefficients == pytest.approx((c1 * 10, c2 * 10_000, c3 * 10_000))


def test_custom_scale_table() -> None:
    scale = CoefficientScale(multipliers=(1.0, 2.0, 3.0), divisor=1.0, firmware_revision="test")
    result = fit_polynomial([0, 1, 2, 3], [0, 1, 4, 9], degree=3, scale=scale)
    c1, c2, c3 = result.coefficients
    assert result.scaled_coefficients == pytest.approx((c1, c2 * 2, c3 * 3))


def test_scaled_coefficients_empty_for_other_degrees() -> None:
    result = fit_polynomial([0, 1, 2], [0, 2, 4], degree=1)
    assert result.coefficients == pytest.approx((2.0,))
    assert result.scaled_coefficients == ()


def test_too_few_points_is_underdetermined() -> None:
    with pytest.raises(InsufficientDataError):
        fit_polynomial([0, 1000, 2000], [0, 25, 60], degree=3)


def test_length_mismatch() -> None:
    with pytest.raises(DimensionMismatchError):
        fit_polynomial([0, 1, 2, 3], [0, 1, 2], degree=3)


@pytest.mark.parametrize("degree", [0, 7])
def test_degree_out_of_range(degree: int) -> None:
    with pytest.raises(InvalidDegreeError):
        fit_polynomial([0, 1, 2, 3, 4, 5, 6, 7], [0] * 8, degree=degree)


def test_repeated_voltages_are_ill_conditioned() -> None:
    with pytest.raises(SingularSystemError):
        fit_polynomial([0, 1000, 1000, 1000], [0, 25, 25, 25], degree=3)


def test_all_zero_voltages_are_ill_conditioned() -> None:
    with pytest.raises(SingularSystemError):
        fit_polynomial([0, 0, 0, 0], [0, 1, 2, 3], degree=3)


def test_constant_readings_give_undefined_r_squared() -> None:
    assert math.isnan(r_squared([5.0, 5.0, 5.0], [5.0, 4.0, 6.0]))


def test_low_quality_flag() -> None:
    result = fit_polynomial([0, 1, 2, 3, 4], [0, 10, 0, 10, 0], degree=1)
    assert result.is_low_quality()


def test_solver_uses_partial_pivoting() -> None:
    # A zero leading entry would break elimination without a row swap.
    solution = solve_linear_system([[0.0, 2.0], [3.0, 1.0]], [4.0, 5.0])
    assert solution == pytest.approx([1.0, 2.0])


def test_solver_rejects_singular_matrix() -> None:
    with pytest.raises(SingularSystemError):
        solve_linear_system([[1.0, 2.0], [2.0, 4.0]], [1.0, 2.0])


def test_calibration_set_adds_origin_and_skips_incomplete_points() -> None:
    cal = CalibrationSet.with_point_count(full_scale_power=200.0, count=4)
    cal = cal.with_point(0, power=50.0, voltage_mv=1000.0)
    cal = cal.with_point(1, power=120.0, voltage_mv=2000.0)
    cal = cal.with_point(2, power=200.0, voltage_mv=3000.0)
    cal = cal.with_point(3, power=10.0)

    assert len(cal.usable_points()) == 3
    assert cal.points[0].percent_full_scale == pytest.approx(25.0)

    result = fit_calibration_set(cal)
    assert evaluate_polynomial(result.coefficients, 3000.0) == pytest.approx(100.0, abs=1e-6)


def test_calibration_set_without_enough_points() -> None:
    cal = CalibrationSet.with_point_count(full_scale_power=100.0, count=2)
    cal = cal.with_point(0, power=25.0, voltage_mv=1000.0)
    cal = cal.with_point(1, power=60.0, voltage_mv=2000.0)
    with pytest.raises(InsufficientDataError):
        fit_calibration_set(cal)


def test_negative_power_is_rejected() -> None:
    cal = CalibrationSet.with_point_count(full_scale_power=100.0, count=1)
    with pytest.raises(ValueError):
        cal.with_point(0, power=-1.0)
