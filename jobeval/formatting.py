from decimal import Decimal, ROUND_HALF_UP


def _round_dollars(amount: float) -> int:
    """Round half away from zero, like currency formatters do."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_salary(amount: float, abbreviated: bool = False) -> str:
    """
    Format a dollar amount: ``$95,000``, or ``$95k`` when abbreviated.

    Amounts under $1,000 are never abbreviated.
    """
    if abbreviated and amount >= 1000:
        return f"${_round_dollars(amount / 1000)}k"

    dollars = _round_dollars(amount)
    if dollars < 0:
        return f"-${-dollars:,}"
    return f"${dollars:,}"


def format_salary_range(low: float, high: float, abbreviated: bool = False) -> str:
    return f"{format_salary(low, abbreviated)} - {format_salary(high, abbreviated)}"


def format_percent(value: float, digits: int = 1) -> str:
    return f"{value:.{digits}f}%"


def format_bytes(size: int) -> str:
    """Human-readable file size, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {units[unit]}"
