"""Zero-offset polynomial calibration fit (voltage in mV to percent of full scale).

The fit has no constant term so the curve passes through the origin. It is
solved from the normal equations ``AᵀA c = Aᵀy`` by Gaussian elimination with
partial pivoting. Voltages are normalised by their largest magnitude before
the design matrix is built and the coefficients are mapped back afterwards.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from dwmctl.core.errors import (
    DimensionMismatchError,
    InsufficientDataError,
    InvalidDegreeError,
    SingularSystemError,
)
from dwmctl.core.model import (
    DEFAULT_SCALE,
    ORIGIN,
    CalibrationSet,
    CoefficientScale,
    PolynomialFitResult,
)

MAX_DEGREE = 6
PIVOT_TOLERANCE = 1e-12
LOGGER = logging.getLogger(__name__)


def solve_linear_system(matrix: Sequence[Sequence[float]], rhs: Sequence[float]) -> list[float]:
    """Solve ``matrix · x = rhs`` with Gaussian elimination and partial pivoting."""
    n = len(matrix)
    if len(rhs) != n or any(len(row) != n for row in matrix):
        raise DimensionMismatchError("Linear system must be square and match the right-hand side")

    a = [list(map(float, row)) + [float(b)] for row, b in zip(matrix, rhs)]
    scale = max((abs(v) for row in matrix for v in row), default=0.0)
    threshold = PIVOT_TOLERANCE * scale

    for col in range(n):
        pivot_row = max(range(col, n), key=lambda r: abs(a[r][col]))
        pivot = a[pivot_row][col]
        if scale == 0.0 or abs(pivot) <= threshold:
            raise SingularSystemError(
                "Calibration points are too close to collinear to fit; spread the voltages further apart"
            )
        if pivot_row != col:
            a[col], a[pivot_row] = a[pivot_row], a[col]

        for r in range(col + 1, n):
            factor = a[r][col] / pivot
            if factor == 0.0:
                continue
            for c in range(col, n + 1):
                a[r][c] -= factor * a[col][c]

    solution = [0.0] * n
    for row in range(n - 1, -1, -1):
        acc = a[row][n] - sum(a[row][c] * solution[c] for c in range(row + 1, n))
        solution[row] = acc / a[row][row]
    return solution


def design_matrix(x: Sequence[float], degree: int) -> list[list[float]]:
    return [[xi**j for j in range(1, degree + 1)] for xi in x]


def evaluate_polynomial(coefficients: Sequence[float], x: float) -> float:
    return sum(c * x ** (j + 1) for j, c in enumerate(coefficients))


def r_squared(y: Sequence[float], fitted: Sequence[float]) -> float:
    mean = sum(y) / len(y)
    ss_tot = sum((yi - mean) ** 2 for yi in y)
    ss_res = sum((yi - fi) ** 2 for yi, fi in zip(y, fitted))
    if ss_tot == 0.0:
        return math.nan
    return 1.0 - ss_res / ss_tot


def fit_polynomial(
    x: Sequence[float],
    y: Sequence[float],
    degree: int = 3,
    *,
    scale: CoefficientScale | None = None,
) -> PolynomialFitResult:
    """Least-squares fit of ``y = c1·x + c2·x² + ... + cN·x^N``.

    The caller supplies every point, including the origin when wanted.
    Scaled coefficients are only produced when ``degree`` matches the
    scale table's length.
    """
    if not 1 <= degree <= MAX_DEGREE:
        raise InvalidDegreeError(f"Degree must be between 1 and {MAX_DEGREE}, got {degree}")
    if len(x) != len(y):
        raise DimensionMismatchError(f"Got {len(x)} voltages but {len(y)} readings")
    if len(x) < degree + 1:
        raise InsufficientDataError(
            f"A degree {degree} fit needs at least {degree + 1} points including the origin; "
            f"got {len(x)}. Add calibration points."
        )

    x_max = max(abs(float(v)) for v in x)
    if x_max == 0.0:
        raise SingularSystemError("All calibration voltages are zero")

    normalised = [float(v) / x_max for v in x]
    a = design_matrix(normalised, degree)
    ata = [[sum(row[i] * row[j] for row in a) for j in range(degree)] for i in range(degree)]
    aty = [sum(row[i] * float(yi) for row, yi in zip(a, y)) for i in range(degree)]

    solved = solve_linear_system(ata, aty)
    coefficients = tuple(c / x_max ** (j + 1) for j, c in enumerate(solved))

    fitted = [evaluate_polynomial(coefficients, float(v)) for v in x]
    r2 = r_squared([float(v) for v in y], fitted)

    table = scale or DEFAULT_SCALE
    scaled = table.apply(coefficients) if len(table.multipliers) == degree else ()
    LOGGER.debug("Fit degree %d: coefficients=%s r2=%s", degree, coefficients, r2)
    return PolynomialFitResult(coefficients=coefficients, r_squared=r2, scaled_coefficients=scaled)


def fit_calibration_set(
    cal_set: CalibrationSet,
    degree: int = 3,
    *,
    scale: CoefficientScale | None = None,
) -> PolynomialFitResult:
    points = (ORIGIN,) + cal_set.usable_points()
    x = [p.voltage_mv for p in points]
    y = [p.percent_full_scale for p in points]
    return fit_polynomial(x, y, degree, scale=scale)
