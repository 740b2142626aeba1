"""
BLS Occupational Employment and Wage Statistics (OEWS) pipeline.

Downloads the national special-requests archive (oesmYYnat.zip), reads
the XLSX inside it and writes one record per detailed occupation with
annual/hourly wages and the published percentiles.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from openpyxl import load_workbook

from ..logger import get_logger
from ..normalize import is_summary_code, major_group
from .common import download_file, extract_zip, fetch_with_error_handling, write_json

logger = get_logger()

SOURCE = "bls"
SPECIAL_REQUESTS_URL = "https://www.bls.gov/oes/special.requests/"
BLS_ZIP_URL = SPECIAL_REQUESTS_URL + "oesm24nat.zip"
DEFAULT_DATA_DATE = "2024-05"
OUTPUT_VERSION = "2.0"
# OEWS publishes "#" for wages at or above these values (May 2024 release)
TOP_CODED_ANNUAL = 239200.0
TOP_CODED_HOURLY = 115.0

NATIONAL_ZIP_RE = re.compile(r"oesm(\d{2})nat\.zip$", re.IGNORECASE)

# Occupational group names by SOC major group code
GROUP_NAMES = {
    "11": "Management",
    "13": "Business and Financial Operations",
    "15": "Computer and Mathematical",
    "17": "Architecture and Engineering",
    "19": "Life, Physical, and Social Science",
    "21": "Community and Social Service",
    "23": "Legal",
    "25": "Educational Instruction and Library",
    "27": "Arts, Design, Entertainment, Sports, and Media",
    "29": "Healthcare Practitioners and Technical",
    "31": "Healthcare Support",
    "33": "Protective Service",
    "35": "Food Preparation and Serving",
    "37": "Building and Grounds Cleaning and Maintenance",
    "39": "Personal Care and Service",
    "41": "Sales and Related",
    "43": "Office and Administrative Support",
    "45": "Farming, Fishing, and Forestry",
    "47": "Construction and Extraction",
    "49": "Installation, Maintenance, and Repair",
    "51": "Production",
    "53": "Transportation and Material Moving",
}


def group_for_code(code: str) -> str:
    return GROUP_NAMES.get(major_group(code), "Other")


def find_latest_zip_url(html: str, base_url: str = SPECIAL_REQUESTS_URL) -> Optional[str]:
    """Pick the newest national OEWS archive linked from the special-requests page."""
    soup = BeautifulSoup(html, "html.parser")
    best_year = -1
    best_url = None
    for link in soup.find_all("a", href=True):
        href = link["href"].strip()
        m = NATIONAL_ZIP_RE.search(href)
        if not m:
            continue
        year = int(m.group(1))
        if year > best_year:
            best_year = year
            best_url = urljoin(base_url, href)
    return best_url


def discover_zip_url() -> str:
    """Ask the special-requests page for the newest archive; fall back to the known release."""
    try:
        resp = fetch_with_error_handling(SPECIAL_REQUESTS_URL, SOURCE)
    except ValueError as e:
        logger.warning("Could not load BLS index page, using default archive", error=str(e))
        return BLS_ZIP_URL
    url = find_latest_zip_url(resp.text)
    return url or BLS_ZIP_URL


def download_bls_data(raw_dir: Path, url: Optional[str] = None) -> Path:
    url = url or BLS_ZIP_URL
    dest = raw_dir / url.rsplit("/", 1)[-1]
    logger.info("Downloading BLS OEWS archive", url=url)
    path, _ = download_file(url, dest, SOURCE)
    return path


def parse_value(value: Any, top_code: float = 0.0) -> float:
    """
    Numbers pass through. ``#`` marks a top-coded wage and becomes
    ``top_code``; other suppression markers (``*``, ``**``) and blanks become 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip().replace(",", "")
    if text == "#":
        return top_code
    if text in ("", "*", "**"):
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_annual(value: Any) -> float:
    return parse_value(value, top_code=TOP_CODED_ANNUAL)


def parse_hourly(value: Any) -> float:
    return parse_value(value, top_code=TOP_CODED_HOURLY)


def _header_key(value: Any) -> str:
    return re.sub(r"\s+", "_", str(value or "").strip()).upper()


def find_excel_file(extracted_dir: Path) -> Path:
    candidates = sorted(
        p for p in extracted_dir.rglob("*.xlsx")
        if "nat" in p.name.lower() and not p.name.startswith("~$")
    )
    if not candidates:
        raise FileNotFoundError(f"No national Excel file found in {extracted_dir}")
    return candidates[0]


def read_xlsx_rows(path: Path) -> Iterator[Dict[str, Any]]:
    """Yield rows of the first worksheet as dicts keyed by the header row."""
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        keys = [_header_key(h) for h in header]
        for values in rows:
            if values is None or all(v is None for v in values):
                continue
            yield dict(zip(keys, values))
    finally:
        workbook.close()


def process_occupations(rows: Iterable[Dict[str, Any]], data_date: str = DEFAULT_DATA_DATE) -> List[Dict[str, Any]]:
    """
    Turn raw OEWS rows into occupation records.

    Aggregate rows (total, major, minor and broad groups) and rows
    without an annual median are dropped.
    """
    occupations = []
    skipped = 0

    for row in rows:
        code = str(row.get("OCC_CODE") or "").strip()
        title = str(row.get("OCC_TITLE") or "").strip()
        if not code or not title:
            skipped += 1
            continue
        # newer workbooks label aggregate rows in O_GROUP; older ones only have the code
        level = str(row.get("O_GROUP") or "").strip().lower()
        if is_summary_code(code) or (level and level != "detailed"):
            skipped += 1
            continue

        annual_median = parse_annual(row.get("A_MEDIAN"))
        if annual_median <= 0:
            skipped += 1
            continue

        occupations.append({
            "code": code,
            "title": title,
            "group": group_for_code(code),
            "employment": int(parse_value(row.get("TOT_EMP"))),
            "wages": {
                "hourlyMean": parse_hourly(row.get("H_MEAN")),
                "hourlyMedian": parse_hourly(row.get("H_MEDIAN")),
                "annualMean": parse_annual(row.get("A_MEAN")),
                "annualMedian": annual_median,
                "percentile10": parse_annual(row.get("A_PCT10")),
                "percentile25": parse_annual(row.get("A_PCT25")),
                "percentile75": parse_annual(row.get("A_PCT75")),
                "percentile90": parse_annual(row.get("A_PCT90")),
            },
            "dataDate": data_date,
        })

    logger.info("Processed BLS occupations", kept=len(occupations), skipped=skipped)
    return occupations


def build_search_index(occupations: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Word (longer than two characters) -> occupation codes whose title contains it."""
    index: Dict[str, List[str]] = {}
    for occ in occupations:
        words = re.sub(r"[^a-z0-9\s]", " ", occ["title"].lower()).split()
        for word in words:
            if len(word) <= 2:
                continue
            codes = index.setdefault(word, [])
            if occ["code"] not in codes:
                codes.append(occ["code"])
    return index


def find_zip_file(raw_dir: Path) -> Path:
    """Newest ``oesmYYnat.zip`` in ``raw_dir``."""
    candidates = sorted(p for p in raw_dir.glob("*.zip") if NATIONAL_ZIP_RE.search(p.name))
    if not candidates:
        raise FileNotFoundError(f"No BLS national ZIP found in {raw_dir}; run bls-download first")
    return candidates[-1]


def process_bls_data(source: Path, out_path: Path, data_date: str = DEFAULT_DATA_DATE) -> Dict[str, Any]:
    """
    Process a downloaded OEWS archive into ``out_path``.

    ``source`` is either the ZIP itself or the raw directory holding it.
    """
    zip_path = find_zip_file(source) if source.is_dir() else source
    extracted_dir = zip_path.parent / "extracted"
    extract_zip(zip_path, extracted_dir)
    excel_file = find_excel_file(extracted_dir)
    logger.info("Reading BLS workbook", file=excel_file.name)

    occupations = process_occupations(read_xlsx_rows(excel_file), data_date=data_date)
    if not occupations:
        raise ValueError("No occupations with wage data found; check the workbook columns")

    index = build_search_index(occupations)
    output = {
        "version": OUTPUT_VERSION,
        "source": "U.S. Bureau of Labor Statistics - OES Special Requests",
        "sourceUrl": SPECIAL_REQUESTS_URL,
        "dataDate": data_date,
        "metadata": {
            "totalOccupations": len(occupations),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "dataFormat": "xlsx",
        },
        "occupations": occupations,
        "index": index,
    }
    write_json(out_path, output)
    logger.info("Saved BLS data", path=str(out_path), occupations=len(occupations), terms=len(index))
    return output
