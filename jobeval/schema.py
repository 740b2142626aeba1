"""
Structural validation for the JSON that crosses JobEval's boundaries.

Every validator returns a list of human-readable error messages; an
empty list means valid. Nothing here raises on bad input.
"""

from datetime import datetime
from typing import Any, Dict, List, Tuple

from .normalize import ONET_CODE_RE, SOC_CODE_RE

EXPORT_FORMAT_VERSION = "1.0"
EVALUATION_TYPES = ("quick", "full", "mixed", "none")
MARKET_POSITIONINGS = ("budget_friendly", "competitive", "top_talent")
FEEDBACK_TYPES = ("bug", "feature")
POSITION_SECTIONS = ("basicInfo", "details", "responsibilities", "requirements", "compensation")


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_iso_datetime(v: str) -> bool:
    try:
        datetime.fromisoformat(v.replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def validate_quick_advisory_form(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []

    if not _is_non_empty_str(data.get("jobTitle")):
        errors.append("Job title is required")
    if not _is_non_empty_str(data.get("location")):
        errors.append("Location is required")

    num_employees = data.get("numEmployees")
    if not isinstance(num_employees, int) or isinstance(num_employees, bool) or num_employees < 1:
        errors.append("Number of employees must be a whole number of at least 1")

    for key, label in (
        ("proposedSalary", "Proposed salary"),
        ("annualRevenue", "Annual revenue"),
        ("annualPayroll", "Annual payroll"),
    ):
        value = data.get(key)
        if not _is_number(value):
            errors.append(f"{label} must be a number")
        elif value < 0:
            errors.append(f"{label} cannot be negative")

    if _is_number(data.get("proposedSalary")) and data["proposedSalary"] == 0:
        errors.append("Proposed salary must be greater than zero")

    if data.get("marketPositioning") not in MARKET_POSITIONINGS:
        errors.append(
            "Market positioning must be one of: " + ", ".join(MARKET_POSITIONINGS)
        )

    return errors


def validate_feedback_payload(body: Any) -> Tuple[int, List[str]]:
    """
    Check a feedback submission.

    Returns (status_code, errors): 400 with errors when the payload is
    unusable, otherwise (0, []).
    """
    if not isinstance(body, dict):
        return 400, ["Missing required fields"]

    feedback_type = body.get("type")
    data = body.get("data")
    if not feedback_type or not isinstance(data, dict) or not data.get("title"):
        return 400, ["Missing required fields"]
    if feedback_type not in FEEDBACK_TYPES:
        return 400, ["Invalid feedback type"]
    return 0, []


def validate_wage_data(code: str, wage_data: Any) -> List[str]:
    """Percentiles p10..p90 must all be numbers, ascending, with a positive median."""
    if not isinstance(wage_data, dict):
        return [f"{code}: hasWageData set but wageData missing"]
    percentiles = wage_data.get("percentiles") or {}
    values = [percentiles.get(k) for k in ("p10", "p25", "p50", "p75", "p90")]
    if not all(_is_number(v) for v in values):
        return [f"{code}: incomplete wage percentiles"]
    if any(b < a for a, b in zip(values, values[1:])):
        return [f"{code}: wage percentiles are not ascending"]
    if values[2] <= 0:
        return [f"{code}: median wage must be positive"]
    return []


def validate_occupation_record(code: str, data: Dict[str, Any]) -> List[str]:
    """Checks one entry of the integrated occupation database."""
    errors: List[str] = []

    if not (ONET_CODE_RE.match(code) or SOC_CODE_RE.match(code)):
        errors.append(f"{code}: invalid SOC code format")
    if not _is_non_empty_str(data.get("title")):
        errors.append(f"{code}: missing title")
    if data.get("hasWageData"):
        errors.extend(validate_wage_data(code, data.get("wageData")))
    return errors


def validate_import_data(obj: Any) -> Tuple[bool, List[str]]:
    """Validate an exported JobEval session file (format 1.0)."""
    errors: List[str] = []

    if not isinstance(obj, dict) or not obj:
        return False, ["Invalid file format - not a valid JSON file"]

    if not _is_non_empty_str(obj.get("version")):
        errors.append("Missing required field: version")

    export_date = obj.get("exportDate")
    if not _is_non_empty_str(export_date):
        errors.append("Missing required field: exportDate")
    elif not _is_iso_datetime(export_date):
        errors.append("Invalid exportDate format - must be valid ISO 8601 date")

    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        errors.append("Missing required field: metadata")
    else:
        if not _is_non_empty_str(metadata.get("appVersion")):
            errors.append("Missing required metadata field: appVersion")
        if metadata.get("evaluationType") not in EVALUATION_TYPES:
            errors.append("Invalid or missing metadata field: evaluationType")
        if not _is_non_empty_str(metadata.get("lastModified")):
            errors.append("Missing required metadata field: lastModified")

    data = obj.get("data")
    if not isinstance(data, dict):
        errors.append("Missing required field: data")
    else:
        errors.extend(_validate_export_sections(data))

    return (not errors), errors


def _validate_export_sections(data: Dict[str, Any]) -> List[str]:
    errors: List[str] = []

    if data.get("company") is not None and not isinstance(data["company"], dict):
        errors.append("Company data is corrupted in import file")

    position = data.get("position")
    if position is not None:
        if not isinstance(position, dict):
            errors.append("Position data is corrupted in import file")
        elif not all(section in position for section in POSITION_SECTIONS):
            errors.append("Position data structure is invalid in import file")

    if data.get("quickAdvisory") is not None and not isinstance(data["quickAdvisory"], dict):
        errors.append("Quick advisory data is corrupted in import file")

    wizard = data.get("wizard")
    if wizard is not None:
        if not isinstance(wizard, dict):
            errors.append("Unable to restore wizard state")
        elif not _is_number(wizard.get("currentStep")) or not isinstance(wizard.get("steps"), list):
            errors.append("Wizard state structure is invalid in import file")

    if data.get("matching") is not None and not isinstance(data["matching"], dict):
        errors.append("BLS matching data is corrupted in import file")

    return errors
