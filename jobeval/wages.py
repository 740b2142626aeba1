"""
Wage percentile arithmetic.

Places a salary within an occupation's BLS wage distribution
(p10/p25/median/p75/p90), maps market-positioning strategies onto target
percentile ranges, and derives recommended salaries from them.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .models import WagePercentiles

PERCENTILE_FLOOR = 1.0
PERCENTILE_CAP = 99.0

BUDGET_FRIENDLY = "budget_friendly"
COMPETITIVE = "competitive"
TOP_TALENT = "top_talent"


@dataclass(frozen=True)
class PercentileResult:
    percentile: float
    label: str
    is_above_median: bool


@dataclass(frozen=True)
class TargetRange:
    min: float
    max: float
    label: str


@dataclass(frozen=True)
class Alignment:
    aligned: bool
    status: str  # aligned | below | above
    message: str
    percentile: float
    target_range: TargetRange


@dataclass(frozen=True)
class SalaryGap:
    percentile_points: float
    recommended_salary: int
    salary_increase: int


TARGET_RANGES: Dict[str, TargetRange] = {
    BUDGET_FRIENDLY: TargetRange(25, 40, "25th-40th percentile (Budget-friendly)"),
    COMPETITIVE: TargetRange(40, 60, "40th-60th percentile (Competitive)"),
    TOP_TALENT: TargetRange(60, 80, "60th-80th percentile (Top talent)"),
}

POSITIONING_GOALS = {
    BUDGET_FRIENDLY: "fill the role affordably",
    COMPETITIVE: "match market averages",
    TOP_TALENT: "attract top talent",
}


def _clamp(value: float) -> float:
    return max(PERCENTILE_FLOOR, min(PERCENTILE_CAP, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def interpolate_percentile(salary: float, percentiles: WagePercentiles) -> float:
    """
    Estimate the market percentile of ``salary``.

    Linear between the published anchors. Below p10 the line runs toward
    zero salary; above p90 the p75-p90 slope is extended. The result is
    clamped to [1, 99] since the tails are not published.
    """
    anchors = percentiles.anchors()
    p10 = percentiles.p10

    if salary < p10:
        if p10 <= 0:
            return PERCENTILE_FLOOR
        return _clamp(10 * salary / p10)

    for (lo_pct, lo_salary), (hi_pct, hi_salary) in zip(anchors, anchors[1:]):
        if salary <= hi_salary:
            span = hi_salary - lo_salary
            if span <= 0:
                return _clamp(lo_pct)
            return _clamp(lo_pct + (salary - lo_salary) / span * (hi_pct - lo_pct))

    slope = percentiles.p90 - percentiles.p75
    if slope <= 0:
        return PERCENTILE_CAP
    return _clamp(90 + (salary - percentiles.p90) / slope * 15)


def calculate_percentile_band(salary: float, percentiles: WagePercentiles) -> PercentileResult:
    """Coarse band placement using the midpoint of each published band."""
    if salary < percentiles.p10:
        percentile, label = 5, "Below 10th percentile"
    elif salary < percentiles.p25:
        percentile, label = 17.5, "10th-25th percentile"
    elif salary < percentiles.p50:
        percentile, label = 37.5, "25th-50th percentile"
    elif salary < percentiles.p75:
        percentile, label = 62.5, "50th-75th percentile"
    elif salary < percentiles.p90:
        percentile, label = 82.5, "75th-90th percentile"
    else:
        percentile, label = 95, "Above 90th percentile"

    return PercentileResult(
        percentile=percentile,
        label=label,
        is_above_median=salary >= percentiles.p50,
    )


def salary_at_percentile(percentile: float, percentiles: WagePercentiles) -> float:
    """Inverse of interpolate_percentile within the published range [p10, p90]."""
    anchors = percentiles.anchors()
    if percentile <= anchors[0][0]:
        return percentiles.p10
    for (lo_pct, lo_salary), (hi_pct, hi_salary) in zip(anchors, anchors[1:]):
        if percentile <= hi_pct:
            return lo_salary + (percentile - lo_pct) / (hi_pct - lo_pct) * (hi_salary - lo_salary)
    return percentiles.p90


def get_target_percentile_range(positioning: str) -> TargetRange:
    """Unknown strategies fall back to competitive."""
    return TARGET_RANGES.get(positioning, TARGET_RANGES[COMPETITIVE])


def check_alignment(salary: float, positioning: str, percentiles: WagePercentiles) -> Alignment:
    target = get_target_percentile_range(positioning)
    percentile = interpolate_percentile(salary, percentiles)
    goal = POSITIONING_GOALS.get(positioning, POSITIONING_GOALS[COMPETITIVE])

    if target.min <= percentile <= target.max:
        status = "aligned"
        message = f"Your proposed salary aligns with your goal to {goal}"
    elif percentile < target.min:
        status = "below"
        message = f"Your proposed salary is BELOW your stated goal to {goal}"
    else:
        status = "above"
        message = "Your proposed salary is ABOVE typical rates for your strategy"

    return Alignment(
        aligned=status == "aligned",
        status=status,
        message=message,
        percentile=percentile,
        target_range=target,
    )


def get_recommended_salary_range(positioning: str, percentiles: WagePercentiles) -> Dict[str, int]:
    """Dollar range approximating the strategy's target percentiles; unknown strategies get median to p75."""
    p25, p50, p75, p90 = percentiles.p25, percentiles.p50, percentiles.p75, percentiles.p90

    if positioning == BUDGET_FRIENDLY:
        low, high = p25, (p25 + p50) / 2
    elif positioning == TOP_TALENT:
        low, high = (p50 + p75) / 2, (p75 + p90) / 2
    elif positioning == COMPETITIVE:
        low, high = (p25 + p50) / 2, (p50 + p75) / 2
    else:
        low, high = p50, p75

    return {"min": round_half_up(low), "max": round_half_up(high)}


def calculate_gap(salary: float, positioning: str, percentiles: WagePercentiles) -> Optional[SalaryGap]:
    """How far ``salary`` falls short of the strategy's lower bound, or None if it doesn't."""
    target = get_target_percentile_range(positioning)
    percentile = interpolate_percentile(salary, percentiles)
    if percentile >= target.min:
        return None

    recommended = round_half_up(salary_at_percentile(target.min, percentiles))
    return SalaryGap(
        percentile_points=round(target.min - percentile, 1),
        recommended_salary=recommended,
        salary_increase=max(0, recommended - round_half_up(salary)),
    )
