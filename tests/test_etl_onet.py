"""
Tests for the O*NET text release pipeline.
"""

import json
import zipfile

import pytest

from jobeval.etl import onet
from jobeval.etl.onet import (
    create_title_index,
    parse_tab_delimited,
    process_job_zones,
    process_onet_data,
    process_skills_like_data,
    verify_all_files,
    verify_file,
)


def _write_tsv(path, header, rows):
    lines = ["\t".join(header)] + ["\t".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def raw_dir(tmp_path):
    """A trimmed O*NET text release."""
    raw = tmp_path / "raw"
    raw.mkdir()
    _write_tsv(raw / "Occupation Data.txt", ["O*NET-SOC Code", "Title", "Description"], [
        ["15-1252.00", "Software Developers", "Research, design, and develop computer and network software."],
        ["17-2051.00", "Civil Engineers", "Perform engineering duties in planning and designing infrastructure."],
        ["BAD-CODE", "Broken Row", "Should be skipped."],
    ])
    _write_tsv(raw / "Alternate Titles.txt", ["O*NET-SOC Code", "Title", "Alternate Title", "Short Title"], [
        ["15-1252.00", "Software Developers", "Software Engineer", ""],
        ["15-1252.00", "Software Developers", "Application Developer", ""],
        ["15-1252.00", "Software Developers", "Software Engineer", ""],
        ["99-9999.00", "Ghost", "Ghost Writer", ""],
    ])
    _write_tsv(raw / "Skills.txt", ["O*NET-SOC Code", "Element Name", "Scale ID", "Data Value"], [
        ["15-1252.00", "Critical Thinking", "IM", "3.88"],
        ["15-1252.00", "Critical Thinking", "LV", "4.00"],
        ["15-1252.00", "Programming", "IM", "4.12"],
        ["15-1252.00", "Programming", "LV", "4.88"],
        ["17-2051.00", "Mathematics", "IM", "4.00"],
        ["17-2051.00", "Reading Comprehension", "LV", "3.00"],
    ])
    _write_tsv(raw / "Job Zones.txt", ["O*NET-SOC Code", "Title", "Job Zone"], [
        ["15-1252.00", "Software Developers", "4"],
        ["17-2051.00", "Civil Engineers", "n/a"],
    ])
    return raw


class TestVerification:
    """Test file checks."""

    def test_verify_file(self, tmp_path):
        """Files must exist, be non-empty and contain tabs."""
        missing = verify_file(tmp_path / "nope.txt")
        assert missing == {"valid": False, "reason": "File not found"}

        empty = tmp_path / "empty.txt"
        empty.write_text("")
        assert verify_file(empty)["reason"] == "File is empty"

        plain = tmp_path / "plain.txt"
        plain.write_text("no tabs here")
        assert verify_file(plain)["reason"] == "File does not appear to be tab-delimited"

        good = tmp_path / "good.txt"
        good.write_text("a\tb\n")
        assert verify_file(good) == {"valid": True, "size": 4}

    def test_verify_all_files(self, raw_dir):
        """Missing priority 1 files are critical."""
        results = verify_all_files(raw_dir)
        assert "Occupation Data.txt" in results["verified"][1]
        assert "Skills.txt" in results["verified"][2]
        assert "Knowledge.txt" in results["missing"]
        assert results["critical_missing"] == ["Content Model Reference.txt"]
        assert results["total_size"] > 0


class TestParsing:
    """Test tab-delimited parsing and per-file processing."""

    def test_parse_skips_bad_codes(self, raw_dir):
        """Malformed codes are skipped with a warning."""
        warnings = []
        rows = parse_tab_delimited(raw_dir / "Occupation Data.txt", warnings)
        assert [row["O*NET-SOC Code"] for row in rows] == ["15-1252.00", "17-2051.00"]
        assert warnings == ["Invalid SOC code format: BAD-CODE in Occupation Data.txt:4"]

    def test_parse_missing_file(self, tmp_path):
        """Missing files yield no rows and a warning."""
        warnings = []
        assert parse_tab_delimited(tmp_path / "Knowledge.txt", warnings) == []
        assert warnings == ["File not found: Knowledge.txt"]

    def test_skills_need_importance(self):
        """Ratings are merged per element and sorted by importance."""
        occupations = {"15-1252.00": {"skills": []}}
        rows = [
            {"O*NET-SOC Code": "15-1252.00", "Element Name": "Writing", "Scale ID": "LV", "Data Value": "3.1"},
            {"O*NET-SOC Code": "15-1252.00", "Element Name": "Speaking", "Scale ID": "IM", "Data Value": "3.2"},
            {"O*NET-SOC Code": "15-1252.00", "Element Name": "Programming", "Scale ID": "IM", "Data Value": "4.1"},
            {"O*NET-SOC Code": "15-1252.00", "Element Name": "Programming", "Scale ID": "LV", "Data Value": "4.9"},
        ]
        assert process_skills_like_data(occupations, rows, "skills") == 2
        assert occupations["15-1252.00"]["skills"] == [
            {"name": "Programming", "importance": 4.1, "level": 4.9},
            {"name": "Speaking", "importance": 3.2, "level": None},
        ]

    def test_job_zones(self):
        """Job zones carry education and experience text."""
        occupations = {"15-1252.00": {"jobZone": None, "education": None, "experience": None}}
        process_job_zones(occupations, [{"O*NET-SOC Code": "15-1252.00", "Job Zone": "4"}])
        assert occupations["15-1252.00"]["jobZone"] == 4
        assert occupations["15-1252.00"]["education"] == "Bachelor's degree"


class TestTitleIndex:
    """Test normalized title index construction."""

    def test_primary_alternate_partial(self):
        """Titles and long title words become keys."""
        index = create_title_index({
            "17-2051.00": {"title": "Civil Engineers", "alternateTitles": ["Structural Engineer", "CIVIL ENGINEERS"]},
            "17-2141.00": {"title": "Mechanical Engineers", "alternateTitles": []},
        })
        assert index["civil engineers"] == [
            {"code": "17-2051.00", "title": "Civil Engineers", "matchType": "primary"},
        ]
        assert index["structural engineer"][0]["matchType"] == "alternate"
        assert index["structural engineer"][0]["title"] == "Civil Engineers"
        assert [e["code"] for e in index["engineers"]] == ["17-2051.00", "17-2141.00"]
        assert all(e["matchType"] == "partial" for e in index["engineers"])

    def test_short_words_not_indexed(self):
        """Words under four letters are not partial keys."""
        index = create_title_index({"53-7062.00": {"title": "Hand Laborers and Movers", "alternateTitles": []}})
        assert "and" not in index
        assert "hand" in index


class TestProcessOnetData:
    """Test the end-to-end conversion."""

    def test_process(self, raw_dir, tmp_path):
        """Raw files become occupations, index and stats."""
        out_dir = tmp_path / "processed"
        stats = process_onet_data(raw_dir, out_dir)

        assert stats["summary"]["totalOccupations"] == 2
        assert stats["summary"]["totalAlternateTitles"] == 2
        assert stats["summary"]["totalSkills"] == 3
        assert stats["summary"]["uniqueTitlesInIndex"] == 8
        assert "File not found: Knowledge.txt" in stats["warnings"]

        occupations = json.loads((out_dir / "onet-occupations.json").read_text())
        developers = occupations["15-1252.00"]
        assert developers["alternateTitles"] == ["Software Engineer", "Application Developer"]
        assert [s["name"] for s in developers["skills"]] == ["Programming", "Critical Thinking"]
        assert developers["jobZone"] == 4
        assert occupations["17-2051.00"]["jobZone"] is None

        index = json.loads((out_dir / "titles-index.json").read_text())
        assert index["software engineer"][0]["code"] == "15-1252.00"
        assert (out_dir / "onet-stats.json").exists()

    def test_no_occupations(self, tmp_path):
        """An empty raw directory is an error."""
        with pytest.raises(ValueError):
            process_onet_data(tmp_path, tmp_path / "processed")


class TestDownload:
    """Test download and unpacking."""

    def test_download_flattens_archive(self, monkeypatch, tmp_path):
        """Files are moved out of the archive folder and the ZIP is removed."""
        def fake_download(url, dest, source):
            dest.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(dest, "w") as archive:
                archive.writestr("db_30_0_text/Occupation Data.txt", "O*NET-SOC Code\tTitle\n")
            return dest, dest.stat().st_size

        monkeypatch.setattr(onet, "download_file", fake_download)
        raw = tmp_path / "raw"
        files = onet.download_onet_data(raw)

        assert files == [raw / "Occupation Data.txt"]
        assert not (raw / "db_30_0_text").exists()
        assert not (raw / "db_30_0_text.zip").exists()
