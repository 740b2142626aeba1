"""
Quick advisory: one-screen salary check for a single hire.

Matches the job title to an occupation, places the proposed salary in
that occupation's wage distribution, compares it with the chosen market
positioning and shows the payroll impact of the hire.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .affordability import PayrollRatioResult, analyze_affordability
from .logger import get_logger
from .matcher import OccupationMatcher
from .models import MatchResult, Occupation
from .schema import validate_quick_advisory_form
from .wages import (
    Alignment,
    PercentileResult,
    calculate_gap,
    calculate_percentile_band,
    check_alignment,
    get_recommended_salary_range,
    interpolate_percentile,
    round_half_up,
)

logger = get_logger()

STATUS_OK = "ok"
STATUS_INVALID = "invalid"
STATUS_NO_MATCH = "no_match"


@dataclass
class QuickAdvisoryForm:
    job_title: str
    location: str
    num_employees: int
    proposed_salary: float
    market_positioning: str
    annual_revenue: float
    annual_payroll: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuickAdvisoryForm":
        return cls(
            job_title=data.get("jobTitle", ""),
            location=data.get("location", ""),
            num_employees=data.get("numEmployees", 1),
            proposed_salary=data.get("proposedSalary", 0),
            market_positioning=data.get("marketPositioning", ""),
            annual_revenue=data.get("annualRevenue", 0),
            annual_payroll=data.get("annualPayroll", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobTitle": self.job_title,
            "location": self.location,
            "numEmployees": self.num_employees,
            "proposedSalary": self.proposed_salary,
            "marketPositioning": self.market_positioning,
            "annualRevenue": self.annual_revenue,
            "annualPayroll": self.annual_payroll,
        }


@dataclass
class QuickAdvisoryResults:
    """Summary persisted with an exported session."""
    proposed_salary: float
    percentile: float
    target_range_label: str
    gap_description: str
    recommended_increase: int
    recommended_salary: float
    current_payroll_ratio: float
    new_payroll_ratio: float
    generated_date: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposedSalary": self.proposed_salary,
            "percentile": self.percentile,
            "targetRangeLabel": self.target_range_label,
            "gapDescription": self.gap_description,
            "recommendedIncrease": self.recommended_increase,
            "recommendedSalary": self.recommended_salary,
            "currentPayrollRatio": self.current_payroll_ratio,
            "newPayrollRatio": self.new_payroll_ratio,
            "generatedDate": self.generated_date,
        }


@dataclass
class AdvisoryOutcome:
    status: str
    message: str = ""
    errors: List[str] = field(default_factory=list)
    match: Optional[MatchResult] = None
    occupation: Optional[Occupation] = None
    band: Optional[PercentileResult] = None
    alignment: Optional[Alignment] = None
    recommended_range: Optional[Dict[str, int]] = None
    affordability: Optional[PayrollRatioResult] = None
    results: Optional[QuickAdvisoryResults] = None


def validate_form(form: QuickAdvisoryForm) -> List[str]:
    return validate_quick_advisory_form(form.to_dict())


def describe_gap(alignment: Alignment) -> str:
    target = alignment.target_range
    if alignment.status == "below":
        points = round_half_up(target.min - alignment.percentile)
        return f"-{points} percentile points below your target range"
    if alignment.status == "above":
        points = round_half_up(alignment.percentile - target.max)
        return f"+{points} percentile points above target range maximum"
    return "Within target range"


def run_quick_advisory(form: QuickAdvisoryForm, matcher: OccupationMatcher) -> AdvisoryOutcome:
    """
    Run the quick advisory for ``form``.

    Invalid forms and titles that match nothing are reported through the
    outcome status rather than raised; the caller asks the user to fix
    the input or try a different title.
    """
    errors = validate_form(form)
    if errors:
        return AdvisoryOutcome(status=STATUS_INVALID, message="Please correct the form", errors=errors)

    match = matcher.best_match(form.job_title)
    if match is None:
        logger.info("No occupation match for job title", job_title=form.job_title)
        return AdvisoryOutcome(
            status=STATUS_NO_MATCH,
            message=f'No occupation matched "{form.job_title}". Try a different or more general job title.',
        )

    occupation = matcher.get_occupation(match.code)
    percentiles = occupation.percentiles
    salary = form.proposed_salary

    percentile = interpolate_percentile(salary, percentiles)
    band = calculate_percentile_band(salary, percentiles)
    alignment = check_alignment(salary, form.market_positioning, percentiles)
    recommended_range = get_recommended_salary_range(form.market_positioning, percentiles)
    gap = calculate_gap(salary, form.market_positioning, percentiles)
    payroll = analyze_affordability(
        form.annual_payroll, form.annual_revenue, salary, form.num_employees
    )

    results = QuickAdvisoryResults(
        proposed_salary=salary,
        percentile=round(percentile, 1),
        target_range_label=alignment.target_range.label,
        gap_description=describe_gap(alignment),
        recommended_increase=gap.salary_increase if gap else 0,
        recommended_salary=gap.recommended_salary if gap else salary,
        current_payroll_ratio=round(payroll.current_ratio, 1),
        new_payroll_ratio=round(payroll.new_ratio, 1),
        generated_date=datetime.now(timezone.utc).isoformat(),
    )

    logger.debug(
        "Quick advisory computed",
        code=occupation.code,
        percentile=results.percentile,
        alignment=alignment.status,
    )

    return AdvisoryOutcome(
        status=STATUS_OK,
        message=alignment.message,
        match=match,
        occupation=occupation,
        band=band,
        alignment=alignment,
        recommended_range=recommended_range,
        affordability=payroll,
        results=results,
    )
