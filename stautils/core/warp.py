########## Warp Conversion ##########
# Converts between warp factors and multiples of light speed (TNG and TOS).

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from . import config
from .types import WarpFormula

SPEED_OF_LIGHT_KM_S: float = 299792.458
SECONDS_PER_DAY: int = 86400
KM_PER_LIGHT_YEAR: float = 9.461e12

# about 1 ly per 365.25 days
LY_PER_DAY_AT_C: float = (SPEED_OF_LIGHT_KM_S * SECONDS_PER_DAY) / KM_PER_LIGHT_YEAR

TNG_SPEED_TABLE: List[Tuple[float, float]] = [
    (9.0, 1516.38),
    (9.1, 1575.51),
    (9.2, 1640.63),
    (9.3, 1713.31),
    (9.4, 1796.0),
    (9.5, 1894.85),
    (9.6, 2017.93),
    (9.7, 2185.45),
    (9.8, 2450.01),
    (9.9, 3029.26),
    (9.91, 3136.69),
    (9.92, 3264.3),
    (9.93, 3419.44),
    (9.94, 3613.71),
    (9.95, 3866.92),
    (9.96, 4216.18),
    (9.97, 4741.59),
    (9.98, 5660.62),
    (9.99, 7912.0),
]


########## TOS Formula ##########
# Simple cubic model, warp factors may run past 10.


def tos_warp_to_speed(warp: float) -> float:
    """Return speed in multiples of c using v = w^3."""

    if warp < 1:
        return warp  # already a fraction of c
    return warp ** 3


def tos_speed_to_warp(speed: float) -> Optional[float]:
    """Invert the cubic model; None when the speed is not positive."""

    if speed <= 0:
        return None
    if speed < 1:
        return speed
    return _cube_root(speed)


def _cube_root(value: float) -> float:
    """Cube root that lands on exact integers when the input is a perfect cube."""

    root = math.cbrt(value)
    nearest = round(root)
    if nearest ** 3 == value:
        return float(nearest)
    return root


########## TNG Formula ##########
# v = w^(10/3) up to warp 9, table interpolation above, infinite at warp 10.


def _interpolate_table(warp: float) -> float:
    """Linear interpolation over TNG_SPEED_TABLE, extrapolating past 9.99."""

    # 1 Walk adjacent row pairs until one brackets the query.                 # steps
    for index in range(len(TNG_SPEED_TABLE) - 1):
        w1, s1 = TNG_SPEED_TABLE[index]
        w2, s2 = TNG_SPEED_TABLE[index + 1]
        if warp == w1:
            return s1
        if warp == w2:
            return s2
        if w1 <= warp <= w2:
            fraction = (warp - w1) / (w2 - w1)
            return s1 + fraction * (s2 - s1)
    # 2 Above the last row: extend the final segment.                         # steps
    w1, s1 = TNG_SPEED_TABLE[-2]
    w2, s2 = TNG_SPEED_TABLE[-1]
    fraction = (warp - w1) / (w2 - w1)
    return s1 + fraction * (s2 - s1)


def tng_warp_to_speed(warp: float) -> float:
    """Return speed in multiples of c using the TNG model."""

    if warp < 1:
        return warp
    if warp >= config.TNG_INFINITE_WARP:
        return math.inf
    if warp <= 9:
        return warp ** (10.0 / 3.0)
    return _interpolate_table(warp)


def tng_speed_to_warp(speed: float) -> Optional[float]:
    """Invert the TNG model with Newton-Raphson.

    The table segment has no closed-form inverse, so the solver samples the
    forward function with a forward-difference derivative. Each step is
    clamped into [1, WARP_SOLVER_INNER_MAX] so the sample point never reaches warp 10.

    Non-convergence is not reported: when the iteration cap is hit, or the
    derivative flattens out, the last clamped estimate is returned. This
    trades accuracy for always having a number to show. Use solve_tng_warp
    when the caller needs to know whether the solve converged.
    """

    if speed <= 0:
        return None
    if speed < 1:
        return speed
    if not math.isfinite(speed):
        return config.TNG_INFINITE_WARP
    estimate, _ = solve_tng_warp(speed)
    return estimate


def solve_tng_warp(speed: float) -> Tuple[float, bool]:
    """Run the TNG Newton-Raphson solve; return (estimate, converged)."""

    # 1 Seed with the closed-form inverse of w^(10/3).                        # steps
    warp = speed ** (3.0 / 10.0)
    if warp > config.TNG_MAX_WARP:
        warp = config.WARP_SOLVER_RESEED
    step = config.WARP_SOLVER_DERIVATIVE_STEP
    # 2 Iterate on the residual until tolerance or the cap.                   # steps
    for _ in range(config.WARP_SOLVER_MAX_ITERATIONS):
        residual = tng_warp_to_speed(warp) - speed
        if abs(residual) < config.WARP_SOLVER_TOLERANCE:
            return _clamp_result(warp), True
        ahead = tng_warp_to_speed(warp + step) - speed
        derivative = (ahead - residual) / step
        if abs(derivative) < config.WARP_SOLVER_MIN_DERIVATIVE:
            break
        warp = warp - residual / derivative
        if warp < config.TNG_MIN_WARP:
            warp = config.TNG_MIN_WARP
        if warp > config.WARP_SOLVER_INNER_MAX:
            warp = config.WARP_SOLVER_INNER_MAX
    # 3 Best effort: hand back the clamped estimate.                          # steps
    return _clamp_result(warp), False


def _clamp_result(warp: float) -> float:
    return min(max(warp, config.TNG_MIN_WARP), config.TNG_MAX_WARP)


########## Formula Dispatch ##########
# Calculator entry points that take the formula as a selector.


def warp_to_speed(warp: float, formula: WarpFormula = WarpFormula.TNG) -> float:
    """Return speed in multiples of c for the selected formula."""

    if formula == WarpFormula.TOS:
        return tos_warp_to_speed(warp)
    return tng_warp_to_speed(warp)


def speed_to_warp(speed: float, formula: WarpFormula = WarpFormula.TNG) -> Optional[float]:
    """Return the warp factor for a speed, or None when it cannot be derived."""

    if formula == WarpFormula.TOS:
        return tos_speed_to_warp(speed)
    return tng_speed_to_warp(speed)


def max_warp(formula: WarpFormula) -> float:
    """Highest warp factor the calculator accepts as input."""

    if formula == WarpFormula.TOS:
        return config.TOS_MAX_WARP
    return config.TNG_MAX_WARP


########## Travel Calculations ##########
# Distance in light-years, time in days.


def calculate_distance(warp: float, days: float, formula: WarpFormula = WarpFormula.TNG) -> float:
    """Distance covered at a warp factor over a number of days."""

    ly_per_day = warp_to_speed(warp, formula) * LY_PER_DAY_AT_C
    return ly_per_day * days


def calculate_time(warp: float, distance: float, formula: WarpFormula = WarpFormula.TNG) -> float:
    """Days needed to cover a distance; infinite when not moving."""

    ly_per_day = warp_to_speed(warp, formula) * LY_PER_DAY_AT_C
    if ly_per_day <= 0:
        return math.inf
    return distance / ly_per_day


def calculate_warp_factor(
    distance: float,
    days: float,
    formula: WarpFormula = WarpFormula.TNG,
) -> Optional[float]:
    """Warp factor needed to cover a distance in the given days."""

    # 1 Reject non-positive durations and negative distances.                 # steps
    if days <= 0:
        return None
    if distance < 0:
        return None
    # 2 Zero distance means the ship is at rest.                              # steps
    if distance == 0:
        return 0.0
    speed = (distance / days) / LY_PER_DAY_AT_C
    return speed_to_warp(speed, formula)
