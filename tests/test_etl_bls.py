"""
Tests for the BLS OEWS pipeline.
"""

import json
import zipfile

import pytest
from openpyxl import Workbook

from jobeval.etl import bls
from jobeval.etl.bls import (
    BLS_ZIP_URL,
    TOP_CODED_ANNUAL,
    build_search_index,
    find_latest_zip_url,
    find_zip_file,
    group_for_code,
    parse_value,
    process_bls_data,
    process_occupations,
)
from jobeval.etl.integrate import integrate_occupation
from jobeval.schema import validate_wage_data
from jobeval.storage import parse_occupations
from jobeval.wages import TOP_TALENT, get_recommended_salary_range, interpolate_percentile

HEADER = [
    "OCC_CODE", "occ_title", "O_GROUP", "TOT_EMP", "H_MEAN", "A_MEAN",
    "H_MEDIAN", "A_MEDIAN", "A_PCT10", "A_PCT25", "A_PCT75", "A_PCT90",
]

ROWS = [
    ["00-0000", "All Occupations", "total", 151853870, 31.48, 65470, 23.8, 49500, 29050, 36020, 79080, 118140],
    ["15-0000", "Computer and Mathematical Occupations", "major", 5177240, 53.99, 112290, 50.64, 105330, 55710, 75810, 140740, 177980],
    ["15-1200", "Computer Occupations", "minor", 4975680, 54.53, 113420, 51.09, 106260, 56270, 76660, 141630, 179020],
    ["15-1252", "Software Developers", "detailed", "1,654,440", 66.4, 138110, 63.59, 132270, 79850, 101200, 167540, 208620],
    ["17-2051", "Civil Engineers", "detailed", 333870, 48.81, 101520, 45.37, 95890, 64760, 76560, 118930, "#"],
    ["27-2011", "Actors", "detailed", 49930, 31.68, "*", 25.02, "*", 13.05, 17.5, 41.2, 66.39],
    [None, None, None, None, None, None, None, None, None, None, None, None],
]


@pytest.fixture
def raw_dir(tmp_path):
    """Raw directory with a national OEWS archive holding one workbook."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(HEADER)
    for row in ROWS:
        sheet.append(row)
    xlsx = tmp_path / "national_M2024_dl.xlsx"
    workbook.save(xlsx)

    raw = tmp_path / "raw"
    raw.mkdir()
    with zipfile.ZipFile(raw / "oesm24nat.zip", "w") as archive:
        archive.write(xlsx, "oesm24nat/national_M2024_dl.xlsx")
    return raw


class TestDiscovery:
    """Test finding the newest national archive."""

    def test_picks_newest_national_zip(self):
        """State archives and older years are ignored."""
        html = """
        <ul>
          <li><a href="oesm23nat.zip">May 2023 national</a></li>
          <li><a href="/oes/special.requests/oesm24nat.zip">May 2024 national</a></li>
          <li><a href="oesm25st.zip">May 2025 state</a></li>
        </ul>
        """
        assert find_latest_zip_url(html) == "https://www.bls.gov/oes/special.requests/oesm24nat.zip"

    def test_no_links(self):
        """Pages without national archives yield None."""
        assert find_latest_zip_url("<p>maintenance</p>") is None

    def test_discover_falls_back(self, monkeypatch):
        """An unreachable index page falls back to the known release."""
        def unreachable(url, source, **kwargs):
            raise ValueError("BLS request failed (403)")

        monkeypatch.setattr(bls, "fetch_with_error_handling", unreachable)
        assert bls.discover_zip_url() == BLS_ZIP_URL

    def test_download_uses_archive_name(self, monkeypatch, tmp_path):
        """The archive keeps its published file name."""
        calls = []

        def fake_download(url, dest, source):
            calls.append((url, dest, source))
            return dest, 10

        monkeypatch.setattr(bls, "download_file", fake_download)
        path = bls.download_bls_data(tmp_path)
        assert path == tmp_path / "oesm24nat.zip"
        assert calls == [(BLS_ZIP_URL, tmp_path / "oesm24nat.zip", "bls")]


class TestParsing:
    """Test value and row parsing."""

    def test_parse_value(self):
        """Suppression markers and blanks become zero unless top-coded."""
        assert parse_value(49500) == 49500.0
        assert parse_value("1,654,440") == 1654440.0
        assert parse_value("*") == 0.0
        assert parse_value("#") == 0.0
        assert parse_value("#", top_code=TOP_CODED_ANNUAL) == 239200.0
        assert parse_value("**", top_code=TOP_CODED_ANNUAL) == 0.0
        assert parse_value(None) == 0.0
        assert parse_value("n/a") == 0.0

    def test_group_for_code(self):
        """Groups come from the major group prefix."""
        assert group_for_code("15-1252") == "Computer and Mathematical"
        assert group_for_code("99-1111") == "Other"

    def test_process_occupations(self):
        """Summary rows and rows without a median are dropped."""
        rows = [dict(zip(["OCC_CODE", "OCC_TITLE"] + HEADER[2:], row)) for row in ROWS[:-1]]
        occupations = process_occupations(rows, data_date="2024-05")

        assert [occ["code"] for occ in occupations] == ["15-1252", "17-2051"]
        developers = occupations[0]
        assert developers["employment"] == 1654440
        assert developers["group"] == "Computer and Mathematical"
        assert developers["wages"]["annualMedian"] == 132270
        assert developers["wages"]["percentile90"] == 208620
        assert developers["dataDate"] == "2024-05"
        assert occupations[1]["wages"]["percentile90"] == TOP_CODED_ANNUAL

    def test_top_coded_wages_stay_ascending(self):
        """A top-coded p90 keeps the integrated percentiles usable."""
        row = dict(zip(["OCC_CODE", "OCC_TITLE"] + HEADER[2:], [
            "29-1215", "Family Medicine Physicians", "detailed", 109370,
            "#", "#", 108.14, 224920, 75550, 153180, 235000, "#",
        ]))
        [record] = process_occupations([row])
        assert record["wages"]["hourlyMean"] == 115.0

        integrated = integrate_occupation({"code": "29-1215.00", "title": "Family Medicine Physicians"}, record)
        assert validate_wage_data("29-1215.00", integrated["wageData"]) == []

        percentiles = parse_occupations({"29-1215.00": integrated})["29-1215.00"].percentiles
        assert percentiles.p90 == 239200.0
        assert interpolate_percentile(236000, percentiles) < 90
        top = get_recommended_salary_range(TOP_TALENT, percentiles)
        assert top["min"] <= top["max"]

    def test_search_index(self):
        """Words longer than two characters point at codes."""
        index = build_search_index([
            {"code": "15-1252", "title": "Software Developers"},
            {"code": "15-1253", "title": "Software QA Analysts & Testers"},
        ])
        assert index["software"] == ["15-1252", "15-1253"]
        assert index["testers"] == ["15-1253"]
        assert "qa" not in index


class TestProcessBlsData:
    """Test the archive-to-JSON step."""

    def test_process_archive(self, raw_dir, tmp_path):
        """The national workbook becomes bls-data.json."""
        out_path = tmp_path / "processed" / "bls-data.json"
        output = process_bls_data(raw_dir, out_path)

        assert output["metadata"]["totalOccupations"] == 2
        assert output["version"] == "2.0"
        assert output["dataDate"] == "2024-05"

        saved = json.loads(out_path.read_text())
        assert [occ["code"] for occ in saved["occupations"]] == ["15-1252", "17-2051"]
        assert saved["occupations"][0]["title"] == "Software Developers"
        assert saved["index"]["civil"] == ["17-2051"]

    def test_find_zip_file_missing(self, tmp_path):
        """A raw directory without an archive is an error."""
        with pytest.raises(FileNotFoundError):
            find_zip_file(tmp_path)

    def test_archive_without_workbook(self, tmp_path):
        """An archive with no national workbook is an error."""
        zip_path = tmp_path / "oesm24nat.zip"
        with zipfile.ZipFile(zip_path, "w") as archive:
            archive.writestr("readme.txt", "nothing here")
        with pytest.raises(FileNotFoundError):
            process_bls_data(zip_path, tmp_path / "out.json")
