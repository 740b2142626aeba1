"""
State minimum wage table (hourly, USD).

Source: U.S. Department of Labor, rates effective 2025-01-01. States
without a higher rate use the federal minimum. Local ordinances may be
higher; this table is refreshed once a year.
"""

HOURS_PER_YEAR = 2080  # 40 hours/week * 52 weeks

MINIMUM_WAGE_LAST_UPDATED = "2025-01-01"

FEDERAL_MINIMUM_WAGE = 7.25

MINIMUM_WAGES = {
    # above the federal minimum
    "AK": 11.73,
    "AZ": 14.35,
    "AR": 11.0,
    "CA": 16.0,
    "CO": 14.42,
    "CT": 15.69,
    "DE": 13.25,
    "FL": 12.0,
    "HI": 14.0,
    "IL": 14.0,
    "ME": 14.15,
    "MD": 15.0,
    "MA": 15.0,
    "MI": 10.33,
    "MN": 10.85,
    "MO": 12.3,
    "MT": 10.3,
    "NE": 12.0,
    "NV": 12.0,
    "NJ": 15.13,
    "NM": 12.0,
    "NY": 15.0,
    "OH": 10.45,
    "OR": 14.2,
    "RI": 14.0,
    "SD": 11.2,
    "VT": 13.67,
    "VA": 12.0,
    "WA": 16.28,
    "DC": 17.0,
    # federal minimum
    "AL": FEDERAL_MINIMUM_WAGE,
    "GA": FEDERAL_MINIMUM_WAGE,
    "ID": FEDERAL_MINIMUM_WAGE,
    "IN": FEDERAL_MINIMUM_WAGE,
    "IA": FEDERAL_MINIMUM_WAGE,
    "KS": FEDERAL_MINIMUM_WAGE,
    "KY": FEDERAL_MINIMUM_WAGE,
    "LA": FEDERAL_MINIMUM_WAGE,
    "MS": FEDERAL_MINIMUM_WAGE,
    "NH": FEDERAL_MINIMUM_WAGE,
    "NC": FEDERAL_MINIMUM_WAGE,
    "ND": FEDERAL_MINIMUM_WAGE,
    "OK": FEDERAL_MINIMUM_WAGE,
    "PA": FEDERAL_MINIMUM_WAGE,
    "SC": FEDERAL_MINIMUM_WAGE,
    "TN": FEDERAL_MINIMUM_WAGE,
    "TX": FEDERAL_MINIMUM_WAGE,
    "UT": FEDERAL_MINIMUM_WAGE,
    "WV": FEDERAL_MINIMUM_WAGE,
    "WI": FEDERAL_MINIMUM_WAGE,
    "WY": FEDERAL_MINIMUM_WAGE,
    "FEDERAL": FEDERAL_MINIMUM_WAGE,
}


def get_minimum_wage(state: str) -> float:
    """Hourly minimum for a two-letter state code; unknown codes get the federal rate."""
    code = (state or "").strip().upper()
    return MINIMUM_WAGES.get(code, FEDERAL_MINIMUM_WAGE)


def get_annual_minimum_wage(state: str) -> float:
    return get_minimum_wage(state) * HOURS_PER_YEAR


def meets_minimum_wage(annual_salary: float, state: str) -> bool:
    return annual_salary >= get_annual_minimum_wage(state)
