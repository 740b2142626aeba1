"""
Tests for the jobeval command line.
"""

import json

import pytest

from jobeval import __version__
from jobeval.app import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the developer's environment and .env out of the CLI."""
    for key in ("JOBEVAL_DATA_DIR", "JOBEVAL_DB_PATH", "JOBEVAL_ENV", "BLS_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def run(capsys, *argv):
    main(list(argv))
    return capsys.readouterr().out


class TestLookupCommands:
    """Test match, search, percentile and stats."""

    def test_version(self, capsys):
        """--version prints the package version."""
        assert run(capsys, "--version").strip() == __version__

    def test_match(self, capsys, data_dir):
        """Best candidate is printed first."""
        out = run(capsys, "--data-dir", str(data_dir), "match", "--title", "Software Engineer")
        first = out.splitlines()[0]
        assert "15-1252.00  Software Developers" in first

    def test_match_json(self, capsys, data_dir):
        """--json prints serialized results."""
        out = run(capsys, "--data-dir", str(data_dir), "match", "--title", "Software Engineer", "--json")
        results = json.loads(out)
        assert results[0]["code"] == "15-1252.00"
        assert set(results[0]) == {"code", "title", "confidence", "matchedOn", "matchType"}

    def test_match_nothing(self, capsys, data_dir):
        """Unmatched titles get a message."""
        out = run(capsys, "--data-dir", str(data_dir), "match", "--title", "zzzzzz")
        assert out.strip() == 'No occupations matched "zzzzzz".'

    def test_search(self, capsys, data_dir):
        """Keyword search shows group and median."""
        out = run(capsys, "--data-dir", str(data_dir), "search", "--keyword", "software")
        lines = out.splitlines()
        assert lines[0] == "15-1252.00  Software Developers  (Computer and Mathematical, median $130,000)"
        assert lines[1].startswith("15-1253.00")

    def test_percentile(self, capsys, data_dir):
        """Salary placement with positioning feedback."""
        out = run(
            capsys, "--data-dir", str(data_dir),
            "percentile", "--code", "17-2051.00", "--salary", "57500", "--positioning", "competitive",
        )
        assert "Salary: $57,500" in out
        assert "Percentile: 37.5 (25th-50th percentile)" in out
        assert "Your proposed salary is BELOW your stated goal" in out
        assert "Recommended range: $57,500 - $72,500" in out

    def test_percentile_unknown_code(self, data_dir):
        """Unknown codes exit with a message."""
        with pytest.raises(SystemExit, match="Unknown occupation code: 00-0000.00"):
            main(["--data-dir", str(data_dir), "percentile", "--code", "00-0000.00", "--salary", "50000"])

    def test_percentile_without_wages(self, data_dir):
        """Occupations without wages cannot be evaluated."""
        with pytest.raises(SystemExit, match="has no wage data"):
            main(["--data-dir", str(data_dir), "percentile", "--code", "45-2092.00", "--salary", "50000"])

    def test_stats(self, capsys, data_dir):
        """Counts and groups are listed."""
        out = run(capsys, "--data-dir", str(data_dir), "stats")
        assert "Occupations: 6" in out
        assert "with wages:    5" in out
        assert " - Management" in out

    def test_missing_data(self, tmp_path):
        """Commands that need data explain how to build it."""
        with pytest.raises(SystemExit, match="Run onet-process, bls-process and integrate first"):
            main(["--data-dir", str(tmp_path / "empty"), "stats"])


class TestAdvisoryCommands:
    """Test advise and the session commands."""

    ADVISE = [
        "advise", "--title", "Civil Engineer", "--salary", "57500", "--location", "CA",
        "--revenue", "2000000", "--payroll", "600000",
    ]

    def test_advise(self, capsys, data_dir):
        """Text output covers match, percentile and payroll."""
        out = run(capsys, "--data-dir", str(data_dir), *self.ADVISE)
        assert "Matched: 17-2051.00 Civil Engineers" in out
        assert "Market percentile: 37.5" in out
        assert "Suggested salary: $59,000 (+$1,500)" in out
        assert "Payroll/revenue: 30.0% -> 32.9%" in out

    def test_advise_json(self, capsys, data_dir):
        """--json prints the result summary."""
        out = run(capsys, "--data-dir", str(data_dir), *self.ADVISE, "--json")
        results = json.loads(out)
        assert results["percentile"] == 37.5
        assert results["recommendedSalary"] == 59000

    def test_advise_invalid(self, capsys, data_dir):
        """Invalid input exits with status 2."""
        with pytest.raises(SystemExit) as exc:
            main(["--data-dir", str(data_dir), "advise", "--title", "Civil Engineer", "--salary", "-5",
                  "--location", "CA", "--revenue", "2000000", "--payroll", "600000"])
        assert exc.value.code == 2
        assert "Proposed salary cannot be negative" in capsys.readouterr().out

    def test_save_export_import(self, capsys, data_dir, tmp_path):
        """A saved advisory can be exported and imported again."""
        run(capsys, "--data-dir", str(data_dir), *self.ADVISE, "--save-session", "s1")
        assert "s1" in run(capsys, "--data-dir", str(data_dir), "sessions")

        out_dir = tmp_path / "exports"
        out = run(capsys, "--data-dir", str(data_dir), "export", "--session", "s1", "--out", str(out_dir))
        assert out.startswith("Exported:")
        exported = list(out_dir.glob("JobEval_Data_*.json"))
        assert len(exported) == 1

        out = run(capsys, "--data-dir", str(data_dir), "import", "--input", str(exported[0]), "--session", "s2")
        assert out.strip() == "Imported session: s2"

    def test_export_unknown_session(self, data_dir):
        """Exporting a missing session exits."""
        with pytest.raises(SystemExit, match="Session not found: nope"):
            main(["--data-dir", str(data_dir), "export", "--session", "nope"])

    def test_sessions_empty(self, capsys, data_dir):
        """No sessions yet."""
        assert run(capsys, "--data-dir", str(data_dir), "sessions").strip() == "No saved sessions."

    def test_cleanup(self, capsys, data_dir):
        """Recent sessions survive cleanup."""
        run(capsys, "--data-dir", str(data_dir), *self.ADVISE, "--save-session", "s1")
        out = run(capsys, "--data-dir", str(data_dir), "cleanup", "--days", "30")
        assert out.strip() == "Sessions: 1 -> 1"

    def test_fetch_api_needs_key(self, data_dir):
        """The API fetch refuses to run without a key."""
        with pytest.raises(SystemExit, match="BLS_API_KEY not set"):
            main(["--data-dir", str(data_dir), "bls-fetch-api"])
