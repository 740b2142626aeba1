"""
Tests for display formatting and the minimum wage table.
"""

from jobeval.formatting import format_bytes, format_percent, format_salary, format_salary_range
from jobeval.minimum_wages import (
    FEDERAL_MINIMUM_WAGE,
    get_annual_minimum_wage,
    get_minimum_wage,
    meets_minimum_wage,
)


class TestFormatSalary:
    """Test dollar formatting."""

    def test_full(self):
        """Whole dollars with thousands separators."""
        assert format_salary(95000) == "$95,000"
        assert format_salary(1234567.4) == "$1,234,567"

    def test_rounds_half_up(self):
        """Cents round half away from zero."""
        assert format_salary(999.5) == "$1,000"
        assert format_salary(-1234.5) == "-$1,235"

    def test_abbreviated(self):
        """Thousands abbreviate to k; small amounts do not."""
        assert format_salary(95000, abbreviated=True) == "$95k"
        assert format_salary(1500, abbreviated=True) == "$2k"
        assert format_salary(999, abbreviated=True) == "$999"

    def test_range(self):
        """Ranges join two formatted amounts."""
        assert format_salary_range(50000, 60000) == "$50,000 - $60,000"
        assert format_salary_range(50000, 60000, abbreviated=True) == "$50k - $60k"

    def test_percent(self):
        """Percentages keep one decimal by default."""
        assert format_percent(37.5) == "37.5%"
        assert format_percent(12.3456, digits=2) == "12.35%"


class TestFormatBytes:
    """Test file size formatting."""

    def test_sizes(self):
        """Sizes pick the largest whole unit."""
        assert format_bytes(0) == "0 Bytes"
        assert format_bytes(512) == "512 Bytes"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1048576) == "1 MB"


class TestMinimumWages:
    """Test state minimum wage lookups."""

    def test_state_rate(self):
        """States above the federal minimum use their own rate."""
        assert get_minimum_wage("CA") == 16.0
        assert get_minimum_wage(" ca ") == 16.0

    def test_federal_fallback(self):
        """Unknown and missing states get the federal rate."""
        assert get_minimum_wage("TX") == FEDERAL_MINIMUM_WAGE
        assert get_minimum_wage("ZZ") == FEDERAL_MINIMUM_WAGE
        assert get_minimum_wage(None) == FEDERAL_MINIMUM_WAGE

    def test_annual(self):
        """Annual minimum assumes 2080 hours."""
        assert get_annual_minimum_wage("CA") == 16.0 * 2080
        assert meets_minimum_wage(33280, "CA")
        assert not meets_minimum_wage(33279, "CA")
