"""
Tests for the quick advisory flow.
"""

import pytest

from jobeval.advisory import (
    STATUS_INVALID,
    STATUS_NO_MATCH,
    STATUS_OK,
    QuickAdvisoryForm,
    run_quick_advisory,
    validate_form,
)


@pytest.fixture
def form(quick_advisory_state):
    return QuickAdvisoryForm.from_dict(quick_advisory_state["quickAdvisory"])


class TestForm:
    """Test form parsing and validation."""

    def test_round_trip_keys(self, form, quick_advisory_state):
        """camelCase keys survive from_dict/to_dict."""
        assert form.to_dict() == quick_advisory_state["quickAdvisory"]

    def test_valid_form(self, form):
        """A complete form has no errors."""
        assert validate_form(form) == []

    def test_invalid_fields(self):
        """Every bad field is reported."""
        form = QuickAdvisoryForm.from_dict({
            "jobTitle": " ",
            "location": "",
            "numEmployees": 0,
            "proposedSalary": -1,
            "marketPositioning": "cheap",
            "annualRevenue": "lots",
            "annualPayroll": 0,
        })
        errors = validate_form(form)
        assert "Job title is required" in errors
        assert "Location is required" in errors
        assert "Number of employees must be a whole number of at least 1" in errors
        assert "Proposed salary cannot be negative" in errors
        assert "Annual revenue must be a number" in errors
        assert any(e.startswith("Market positioning must be one of") for e in errors)


class TestRunQuickAdvisory:
    """Test the end-to-end advisory computation."""

    def test_below_target(self, form, matcher):
        """57,500 for a civil engineer is below the competitive window."""
        outcome = run_quick_advisory(form, matcher)
        assert outcome.status == STATUS_OK
        assert outcome.match.code == "17-2051.00"
        assert outcome.alignment.status == "below"
        assert outcome.band.label == "25th-50th percentile"
        assert outcome.recommended_range == {"min": 57500, "max": 72500}

        results = outcome.results
        assert results.percentile == 37.5
        assert results.gap_description == "-3 percentile points below your target range"
        assert results.recommended_salary == 59000
        assert results.recommended_increase == 1500
        assert results.current_payroll_ratio == 30.0
        assert results.new_payroll_ratio == 32.9
        assert results.target_range_label == "40th-60th percentile (Competitive)"

    def test_aligned(self, form, matcher):
        """No increase is recommended when the offer fits the strategy."""
        form.market_positioning = "budget_friendly"
        outcome = run_quick_advisory(form, matcher)
        assert outcome.alignment.aligned
        assert outcome.results.gap_description == "Within target range"
        assert outcome.results.recommended_increase == 0
        assert outcome.results.recommended_salary == 57500

    def test_above(self, form, matcher):
        """Offers past the window report how far above they are."""
        form.proposed_salary = 100000
        form.market_positioning = "top_talent"
        outcome = run_quick_advisory(form, matcher)
        assert outcome.alignment.status == "above"
        assert outcome.results.gap_description == "+10 percentile points above target range maximum"

    def test_invalid_form(self, form, matcher):
        """Invalid forms are reported, not raised."""
        form.job_title = ""
        outcome = run_quick_advisory(form, matcher)
        assert outcome.status == STATUS_INVALID
        assert "Job title is required" in outcome.errors
        assert outcome.results is None

    def test_no_match(self, form, matcher):
        """Unmatched titles ask for a different title."""
        form.job_title = "zzzzzz"
        outcome = run_quick_advisory(form, matcher)
        assert outcome.status == STATUS_NO_MATCH
        assert "zzzzzz" in outcome.message

    def test_results_serialize(self, form, matcher):
        """Results use camelCase keys."""
        data = run_quick_advisory(form, matcher).results.to_dict()
        assert data["proposedSalary"] == 57500
        assert data["targetRangeLabel"] == "40th-60th percentile (Competitive)"
        assert "generatedDate" in data
