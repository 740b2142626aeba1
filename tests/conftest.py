"""
Pytest configuration and shared fixtures.
"""

import pytest
import json
from pathlib import Path
from typing import Dict, Any

from jobeval.database import dispose_engines
from jobeval.matcher import OccupationMatcher
from jobeval.models import WagePercentiles
from jobeval.storage import parse_occupations, parse_title_index


def _wages(p10, p25, p50, p75, p90, employment=100000) -> Dict[str, Any]:
    return {
        "employment": employment,
        "hourly": {"mean": round(p50 / 2080, 2), "median": round(p50 / 2080, 2)},
        "annual": {"mean": p50, "median": p50},
        "percentiles": {"p10": p10, "p25": p25, "p50": p50, "p75": p75, "p90": p90},
        "dataDate": "2024-05",
    }


@pytest.fixture(autouse=True)
def _dispose_engines():
    yield
    dispose_engines()


@pytest.fixture
def sample_occupations_data() -> Dict[str, Any]:
    """Integrated occupation database as written by the ETL."""
    return {
        "version": "1.0",
        "dataDate": "2025-01-15",
        "metadata": {"totalOccupations": 6},
        "occupations": {
            "15-1252.00": {
                "title": "Software Developers",
                "description": "Research, design, and develop computer and network software.",
                "group": "Computer and Mathematical",
                "alternateTitles": ["Software Engineer", "Application Developer"],
                "skills": [{"name": "Programming", "importance": 4.1, "level": 4.9}],
                "knowledge": [{"name": "Computers and Electronics", "importance": 4.6, "level": 5.5}],
                "jobZone": 4,
                "educationLevel": "Bachelor's degree",
                "wageData": _wages(80000, 100000, 130000, 165000, 200000),
                "hasWageData": True,
                "dataSource": "integrated",
            },
            "15-1253.00": {
                "title": "Software Quality Assurance Analysts and Testers",
                "description": "Develop and execute software tests to identify problems.",
                "group": "Computer and Mathematical",
                "alternateTitles": ["QA Tester"],
                "jobZone": 4,
                "wageData": _wages(60000, 75000, 100000, 125000, 150000),
                "hasWageData": True,
            },
            "17-2051.00": {
                "title": "Civil Engineers",
                "description": "Perform engineering duties in planning and designing infrastructure.",
                "group": "Architecture and Engineering",
                "alternateTitles": ["Structural Engineer"],
                "wageData": _wages(40000, 50000, 65000, 80000, 100000),
                "hasWageData": True,
            },
            "17-2141.00": {
                "title": "Mechanical Engineers",
                "description": "Perform engineering duties in planning and designing tools and engines.",
                "group": "Architecture and Engineering",
                "wageData": _wages(65000, 78000, 99000, 122000, 150000),
                "hasWageData": True,
            },
            "11-2021.00": {
                "title": "Marketing Managers",
                "description": "Plan, direct, or coordinate marketing policies and programs.",
                "group": "Management",
                "alternateTitles": ["Brand Manager"],
                "wageData": _wages(80000, 110000, 157000, 210000, 239000),
                "hasWageData": True,
            },
            "45-2092.00": {
                "title": "Farmworkers and Laborers",
                "description": "Manually plant, cultivate, and harvest crops.",
                "group": "Farming, Fishing, and Forestry",
                "wageData": None,
                "hasWageData": False,
                "dataSource": "onet-only",
            },
        },
    }


@pytest.fixture
def sample_title_index_data() -> Dict[str, Any]:
    """Normalized-title index with primary, alternate and partial entries."""
    return {
        "software developers": [
            {"code": "15-1252.00", "title": "Software Developers", "matchType": "primary"},
        ],
        "software engineer": [
            {"code": "15-1252.00", "title": "Software Developers", "matchType": "alternate"},
        ],
        "application developer": [
            {"code": "15-1252.00", "title": "Software Developers", "matchType": "alternate"},
        ],
        "software quality assurance analysts and testers": [
            {"code": "15-1253.00", "title": "Software Quality Assurance Analysts and Testers", "matchType": "primary"},
        ],
        "qa tester": [
            {"code": "15-1253.00", "title": "Software Quality Assurance Analysts and Testers", "matchType": "alternate"},
        ],
        "civil engineers": [
            {"code": "17-2051.00", "title": "Civil Engineers", "matchType": "primary"},
        ],
        "mechanical engineers": [
            {"code": "17-2141.00", "title": "Mechanical Engineers", "matchType": "primary"},
        ],
        "engineers": [
            {"code": "17-2051.00", "title": "Civil Engineers", "matchType": "partial"},
            {"code": "17-2141.00", "title": "Mechanical Engineers", "matchType": "partial"},
        ],
        "marketing managers": [
            {"code": "11-2021.00", "title": "Marketing Managers", "matchType": "primary"},
        ],
        "farmworkers and laborers": [
            {"code": "45-2092.00", "title": "Farmworkers and Laborers", "matchType": "primary"},
        ],
        "ghost occupation": [
            {"code": "99-9999.00", "title": "Ghost Occupation", "matchType": "primary"},
        ],
    }


@pytest.fixture
def matcher(sample_occupations_data, sample_title_index_data) -> OccupationMatcher:
    """Matcher over the sample database and index."""
    return OccupationMatcher(
        parse_occupations(sample_occupations_data),
        parse_title_index(sample_title_index_data),
    )


@pytest.fixture
def data_dir(tmp_path, sample_occupations_data, sample_title_index_data) -> Path:
    """Data directory laid out the way Settings expects it."""
    (tmp_path / "processed").mkdir()
    (tmp_path / "occupations.json").write_text(json.dumps(sample_occupations_data))
    (tmp_path / "processed" / "titles-index.json").write_text(json.dumps(sample_title_index_data))
    return tmp_path


@pytest.fixture
def civil_percentiles() -> WagePercentiles:
    """Distribution used in the percentile interpolation examples."""
    return WagePercentiles(p10=40000, p25=50000, p50=65000, p75=80000, p90=100000)


@pytest.fixture
def quick_advisory_state() -> Dict[str, Any]:
    """Session state after a completed quick advisory."""
    return {
        "company": {"name": "Acme Widgets, Inc.", "industry": "Manufacturing"},
        "position": None,
        "quickAdvisory": {
            "jobTitle": "Civil Engineer",
            "location": "CA",
            "numEmployees": 1,
            "proposedSalary": 57500,
            "marketPositioning": "competitive",
            "annualRevenue": 2000000,
            "annualPayroll": 600000,
        },
        "wizard": {"currentStep": 2, "steps": ["company", "position"]},
        "matching": {"code": "17-2051.00", "title": "Civil Engineers"},
    }
