"""
Affordability checks for a proposed hire.

Two views are offered:

- payroll ratio: how the company's payroll-to-revenue ratio moves when the
  new salaries are added (quick advisory flow);
- budget range: the salary range a company can fund from a share of its
  revenue, floored at the state minimum wage and compared with the
  occupation's market percentiles (full evaluation flow).
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .formatting import format_salary
from .logger import get_logger
from .minimum_wages import HOURS_PER_YEAR, get_annual_minimum_wage, get_minimum_wage
from .models import WagePercentiles

logger = get_logger()

SUSTAINABLE = "sustainable"
WARNING = "warning"
EXCEED = "exceed"

SUSTAINABLE_RATIO_MAX = 35.0
WARNING_RATIO_MAX = 45.0

AFFORDABILITY_MESSAGES = {
    SUSTAINABLE: "Within sustainable range",
    WARNING: "Approaching high end of sustainable range",
    EXCEED: "Exceeds recommended payroll ratio",
}


@dataclass(frozen=True)
class PayrollRatioResult:
    current_ratio: float
    new_ratio: float
    status: str
    message: str


def calculate_payroll_ratio(payroll: float, revenue: float) -> float:
    """Payroll as a percentage of revenue; 0 when revenue is not positive."""
    if revenue <= 0:
        return 0.0
    return payroll / revenue * 100


def assess_affordability(ratio: float) -> str:
    """< 35% sustainable, 35-45% warning, above 45% exceed."""
    if ratio < SUSTAINABLE_RATIO_MAX:
        return SUSTAINABLE
    if ratio <= WARNING_RATIO_MAX:
        return WARNING
    return EXCEED


def project_new_payroll(current_payroll: float, added_salary: float, num_employees: int) -> float:
    return current_payroll + added_salary * num_employees


def get_affordability_message(status: str) -> str:
    return AFFORDABILITY_MESSAGES.get(status, "Unknown status")


def analyze_affordability(
    current_payroll: float,
    revenue: float,
    proposed_salary: float,
    num_employees: int,
) -> PayrollRatioResult:
    current_ratio = calculate_payroll_ratio(current_payroll, revenue)
    new_payroll = project_new_payroll(current_payroll, proposed_salary, num_employees)
    new_ratio = calculate_payroll_ratio(new_payroll, revenue)
    status = assess_affordability(new_ratio)
    return PayrollRatioResult(
        current_ratio=current_ratio,
        new_ratio=new_ratio,
        status=status,
        message=get_affordability_message(status),
    )


# Budget-based range

@dataclass(frozen=True)
class AffordableRange:
    minimum: float
    target: float
    maximum: float


@dataclass
class AffordabilityResult:
    affordable_range: AffordableRange
    market: WagePercentiles
    market_alignment: str  # below | within | above
    gap: float
    is_below_minimum: bool
    minimum_wage_amount: float
    minimum_wage_adjusted: bool
    recommendations: List[str] = field(default_factory=list)


def calculate_affordability(
    annual_revenue: float,
    state: str,
    market: WagePercentiles,
    budget_percentage: float,
    additional_budget: float = 0.0,
) -> AffordabilityResult:
    """
    Affordable salary range for one hire.

    The budget is ``budget_percentage`` of revenue plus ``additional_budget``;
    the range spans 80-120% of it and never drops below the state's annual
    minimum wage. Alignment is "below" when the whole range sits under the
    market p25, "above" when it sits over p75, otherwise "within".
    """
    total_budget = annual_revenue * budget_percentage / 100 + additional_budget

    annual_minimum = get_annual_minimum_wage(state)
    hourly_minimum = get_minimum_wage(state)

    raw_minimum = total_budget * 0.8
    raw_target = total_budget
    raw_maximum = total_budget * 1.2

    is_below_minimum = raw_minimum < annual_minimum

    target_hourly = raw_target / HOURS_PER_YEAR
    if target_hourly < hourly_minimum and not is_below_minimum:
        logger.warning(
            "Hourly rate below minimum wage while annual range meets it",
            target_hourly=round(target_hourly, 2),
            hourly_minimum=hourly_minimum,
            state=state,
        )

    affordable = AffordableRange(
        minimum=max(raw_minimum, annual_minimum),
        target=max(raw_target, annual_minimum),
        maximum=max(raw_maximum, annual_minimum),
    )

    if affordable.maximum < market.p25:
        alignment = "below"
    elif affordable.minimum > market.p75:
        alignment = "above"
    else:
        alignment = "within"

    gap = affordable.target - market.p50

    return AffordabilityResult(
        affordable_range=affordable,
        market=market,
        market_alignment=alignment,
        gap=gap,
        is_below_minimum=is_below_minimum,
        minimum_wage_amount=annual_minimum,
        minimum_wage_adjusted=is_below_minimum,
        recommendations=generate_recommendations(alignment, gap, market, is_below_minimum, state),
    )


def generate_recommendations(
    alignment: str,
    gap: float,
    market: WagePercentiles,
    is_below_minimum: bool,
    state: str,
) -> List[str]:
    if is_below_minimum:
        # legal floor trumps market advice
        return [
            f"Legal Requirement: Your initial budget was below minimum wage in {state}.",
            "The range has been adjusted to meet the legal minimum. Consider:",
            "• Increasing your budget allocation",
            "• Reducing the position scope to match available budget",
            "• Exploring part-time or contract arrangements",
        ]

    gap_percent = abs(gap / market.p50 * 100) if market.p50 else 0.0

    if alignment == "below":
        return [
            f"Your budget is {gap_percent:.0f}% below market median. This may limit candidate quality.",
            "",
            "Consider these strategies:",
            "• Adjust position scope to match budget (junior level, narrower responsibilities)",
            "• Offer equity, profit-sharing, or performance bonuses",
            "• Emphasize non-monetary benefits (flexibility, growth, culture)",
            "• Consider remote work to access lower cost-of-living markets",
            "• Plan for phased salary increases as company grows",
        ]
    if alignment == "above":
        return [
            f"Your budget is {gap_percent:.0f}% above market median. You can compete for top talent.",
            "",
            "Opportunities:",
            "• Attract highly experienced candidates",
            "• Expand job responsibilities to match compensation",
            "• Invest in professional development and training",
            "• Set yourself apart from competitors",
            "• Consider splitting into multiple roles if budget allows",
        ]
    return [
        "Your budget aligns well with market rates.",
        "",
        "Best practices:",
        "• Emphasize your company culture and mission",
        "• Highlight growth opportunities and career path",
        "• Consider performance-based bonuses (10-15% of base)",
        "• Offer competitive benefits package",
        "• Provide clear expectations and role clarity",
    ]


# Budget recommendation shown on the results page

@dataclass(frozen=True)
class Recommendation:
    budget_status: str  # competitive | below-median | below-market
    recommended_min: float
    recommended_max: float
    strategies: List[str]
    warning_message: Optional[str] = None


def calculate_recommendation(budget: float, market: WagePercentiles) -> Recommendation:
    if budget >= market.p50:
        return Recommendation(
            budget_status="competitive",
            recommended_min=market.p50,
            recommended_max=market.p75,
            strategies=[
                "Target candidates with 5+ years of relevant experience",
                "Emphasize your competitive salary in job postings",
                "Focus on cultural fit and long-term growth opportunities",
                "Consider offering performance bonuses after first year",
            ],
        )
    if budget >= market.p25:
        return Recommendation(
            budget_status="below-median",
            recommended_min=market.p25,
            recommended_max=market.p50,
            strategies=[
                "Focus on candidates with 3-5 years experience instead of 5+ years",
                "Highlight growth opportunities and career development",
                "Emphasize company culture, mission, and work-life balance",
                "Consider performance bonuses after 6-12 months",
                "Offer additional benefits: remote flexibility, professional development budget",
                "Look for candidates who value learning and advancement",
            ],
        )
    return Recommendation(
        budget_status="below-market",
        recommended_min=market.p25,
        recommended_max=market.p50,
        strategies=[
            f"Increase the budget to at least {format_salary(market.p25)} (25th percentile)",
            "Restructure as a more junior position with reduced scope",
            "Look for candidates transitioning into this role from related fields",
            "Offer equity or profit-sharing to supplement base salary",
            "Plan for a salary review after 6 months once value is proven",
            "Consider part-time or contract arrangements initially",
        ],
        warning_message="This budget may require adjusting either the budget or position expectations.",
    )


def get_budget_position_percentage(budget: float, low: float, high: float) -> float:
    """Where ``budget`` sits on a low..high bar, 0-100."""
    if budget <= low:
        return 0.0
    if budget >= high:
        return 100.0
    return (budget - low) / (high - low) * 100


def format_recommendation_text(rec: Recommendation, budget: float, market: WagePercentiles) -> str:
    if rec.budget_status == "competitive":
        return (
            f"Your budget of {format_salary(budget)} is competitive for this role in your market. "
            "You should be able to attract qualified candidates at this level.\n\n"
            f"**Recommended salary range:** {format_salary(rec.recommended_min)} - "
            f"{format_salary(rec.recommended_max)}\n"
            "(Targeting the 50th-75th percentile)"
        )
    if rec.budget_status == "below-median":
        return (
            f"Your budget of {format_salary(budget)} is below market median "
            f"({format_salary(market.p50)}) but within the competitive range. "
            "You can still attract talent with the right approach.\n\n"
            f"**Recommended salary range:** {format_salary(rec.recommended_min)} - "
            f"{format_salary(rec.recommended_max)}\n"
            "(Targeting the 25th-50th percentile)"
        )
    return (
        f"Your budget of {format_salary(budget)} is significantly below market rates for this role. "
        f"Market data suggests most candidates expect {format_salary(market.p25)} or higher.\n\n"
        f"{rec.warning_message or ''}\n\n"
        f"**Recommended minimum:** {format_salary(market.p25)} (25th percentile)"
    )
