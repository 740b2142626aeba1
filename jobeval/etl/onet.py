"""
O*NET 30.0 database pipeline.

Downloads the tab-delimited text release, checks the files we depend on
and converts them into a per-occupation JSON document plus the title
index used by the matcher.
"""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..formatting import format_bytes
from ..logger import get_logger
from ..normalize import is_onet_code, normalize_title
from .common import download_file, extract_zip, write_json

logger = get_logger()

SOURCE = "onet"
ONET_VERSION = "30.0"
ONET_ZIP_URL = "https://www.onetcenter.org/dl_files/database/db_30_0_text.zip"
ZIP_FILE_NAME = "db_30_0_text.zip"
ARCHIVE_DIR = "db_30_0_text"
CODE_COLUMN = "O*NET-SOC Code"

# Files the pipeline reads, by priority. Only priority 1 is fatal when missing.
REQUIRED_FILES = {
    1: [
        "Occupation Data.txt",
        "Alternate Titles.txt",
        "Content Model Reference.txt",
    ],
    2: [
        "Skills.txt",
        "Knowledge.txt",
        "Abilities.txt",
        "Work Activities.txt",
        "Work Context.txt",
        "Job Zones.txt",
        "Education, Training, and Experience.txt",
        "Education, Training, and Experience Categories.txt",
    ],
    3: ["Work Values.txt", "Interests.txt", "Work Styles.txt", "Tasks.txt"],
}

JOB_ZONE_INFO = {
    1: {
        "education": "High school diploma or less",
        "experience": "Little or no previous work-related skill, knowledge, or experience",
    },
    2: {
        "education": "High school diploma",
        "experience": "Some previous work-related skill, knowledge, or experience",
    },
    3: {
        "education": "Vocational training or associate degree",
        "experience": "Previous work-related skill, knowledge, or experience",
    },
    4: {
        "education": "Bachelor's degree",
        "experience": "Considerable preparation - several years of work-related skill, knowledge, or experience",
    },
    5: {
        "education": "Bachelor's degree plus work experience, or graduate degree",
        "experience": "Extensive preparation - extensive skill, knowledge, and experience",
    },
}

# Title words shorter than this never become partial index keys
PARTIAL_MIN_WORD_LENGTH = 4


def download_onet_data(raw_dir: Path, force: bool = False) -> List[Path]:
    """Download and unpack the O*NET text release into ``raw_dir``."""
    zip_path = raw_dir / ZIP_FILE_NAME
    if zip_path.exists() and not force:
        logger.info("O*NET archive already present, skipping download", path=str(zip_path))
    else:
        zip_path.unlink(missing_ok=True)
        download_file(ONET_ZIP_URL, zip_path, SOURCE)

    files = extract_zip(zip_path, raw_dir, flatten_dir=ARCHIVE_DIR)
    zip_path.unlink(missing_ok=True)
    return [f for f in files if f != zip_path]


def verify_file(path: Path) -> Dict[str, Any]:
    """Check that ``path`` exists, is non-empty and looks tab-delimited."""
    if not path.exists():
        return {"valid": False, "reason": "File not found"}
    size = path.stat().st_size
    if size == 0:
        return {"valid": False, "reason": "File is empty"}
    try:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            head = f.read(100)
    except OSError as e:
        return {"valid": False, "reason": f"File is not readable: {e}"}
    if "\t" not in head:
        return {"valid": False, "reason": "File does not appear to be tab-delimited"}
    return {"valid": True, "size": size}


def verify_all_files(raw_dir: Path) -> Dict[str, Any]:
    """
    Verify every required file.

    Returns {"verified": {priority: [names]}, "missing": [...],
    "invalid": [...], "total_size": int, "critical_missing": [...]}.
    """
    results: Dict[str, Any] = {
        "verified": {priority: [] for priority in REQUIRED_FILES},
        "missing": [],
        "invalid": [],
        "total_size": 0,
    }
    for priority, names in REQUIRED_FILES.items():
        for name in names:
            check = verify_file(raw_dir / name)
            if check["valid"]:
                results["verified"][priority].append(name)
                results["total_size"] += check["size"]
            elif check["reason"] == "File not found":
                results["missing"].append(name)
            else:
                results["invalid"].append(name)
                logger.warning("Invalid O*NET file", file=name, reason=check["reason"])

    results["critical_missing"] = [n for n in results["missing"] if n in REQUIRED_FILES[1]]
    verified = sum(len(v) for v in results["verified"].values())
    total = sum(len(v) for v in REQUIRED_FILES.values())
    logger.info(
        f"Verified {verified}/{total} O*NET files",
        total_size=format_bytes(results["total_size"]),
        missing=len(results["missing"]),
        invalid=len(results["invalid"]),
    )
    return results


def parse_tab_delimited(path: Path, warnings: Optional[List[str]] = None) -> List[Dict[str, str]]:
    """
    Parse a tab-delimited O*NET file into row dicts keyed by header.

    Rows whose O*NET-SOC code is malformed are skipped with a warning;
    a missing or empty file yields [].
    """
    warnings = warnings if warnings is not None else []
    if not path.exists():
        warnings.append(f"File not found: {path.name}")
        logger.warning("O*NET file not found", file=path.name)
        return []

    with path.open("r", encoding="utf-8", errors="replace") as f:
        lines = [line.rstrip("\r\n") for line in f if line.strip()]
    if not lines:
        warnings.append(f"File is empty: {path.name}")
        logger.warning("O*NET file is empty", file=path.name)
        return []

    headers = [h.strip() for h in lines[0].split("\t")]
    rows = []
    for line_no, line in enumerate(lines[1:], start=2):
        values = line.split("\t")
        row = {h: (values[i].strip() if i < len(values) else "") for i, h in enumerate(headers)}
        code = row.get(CODE_COLUMN)
        if code and not is_onet_code(code):
            warnings.append(f"Invalid SOC code format: {code} in {path.name}:{line_no}")
            continue
        rows.append(row)

    logger.debug("Parsed O*NET file", file=path.name, rows=len(rows))
    return rows


def process_occupation_data(rows: List[Dict[str, str]]) -> Dict[str, Dict[str, Any]]:
    occupations = {}
    for row in rows:
        code = row.get(CODE_COLUMN)
        if not code:
            continue
        occupations[code] = {
            "code": code,
            "title": row.get("Title", ""),
            "description": row.get("Description", ""),
            "alternateTitles": [],
            "skills": [],
            "knowledge": [],
            "abilities": [],
            "workActivities": [],
            "workContext": [],
            "jobZone": None,
            "education": None,
            "experience": None,
        }
    return occupations


def process_alternate_titles(occupations: Dict[str, Dict[str, Any]], rows: List[Dict[str, str]]) -> int:
    added = 0
    for row in rows:
        code = row.get(CODE_COLUMN)
        title = row.get("Alternate Title")
        if not code or not title or code not in occupations:
            continue
        titles = occupations[code]["alternateTitles"]
        if title not in titles:
            titles.append(title)
            added += 1
    return added


def _parse_float(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def process_skills_like_data(
    occupations: Dict[str, Dict[str, Any]],
    rows: List[Dict[str, str]],
    field_name: str,
    importance_threshold: float = 0,
) -> int:
    """
    Attach skills/knowledge/abilities style ratings to ``field_name``.

    Rows are grouped per (code, element); the IM scale gives importance
    and LV gives level. Elements without an importance rating are
    dropped; each list ends up sorted by importance, highest first.
    """
    grouped: Dict[tuple, Dict[str, Any]] = {}
    for row in rows:
        code = row.get(CODE_COLUMN)
        name = row.get("Element Name")
        value = _parse_float(row.get("Data Value"))
        if not code or not name or code not in occupations:
            continue
        if value is None or value <= importance_threshold:
            continue

        item = grouped.setdefault((code, name), {"name": name, "importance": None, "level": None})
        scale = row.get("Scale ID")
        if scale == "IM":
            item["importance"] = value
        elif scale == "LV":
            item["level"] = value

    count = 0
    for (code, _), item in grouped.items():
        if item["importance"] is None:
            continue
        occupations[code][field_name].append(item)
        count += 1

    for occupation in occupations.values():
        occupation[field_name].sort(key=lambda a: a["importance"] or 0, reverse=True)
    return count


def process_work_context(occupations: Dict[str, Dict[str, Any]], rows: List[Dict[str, str]]) -> int:
    count = 0
    for row in rows:
        code = row.get(CODE_COLUMN)
        name = row.get("Element Name")
        value = _parse_float(row.get("Data Value"))
        if not code or not name or code not in occupations:
            continue
        if value is None or value <= 0:
            continue
        occupations[code]["workContext"].append({"context": name, "value": value})
        count += 1

    for occupation in occupations.values():
        occupation["workContext"].sort(key=lambda c: c["value"], reverse=True)
    return count


def process_job_zones(occupations: Dict[str, Dict[str, Any]], rows: List[Dict[str, str]]) -> None:
    for row in rows:
        code = row.get(CODE_COLUMN)
        if not code or code not in occupations:
            continue
        try:
            zone = int(row.get("Job Zone", ""))
        except ValueError:
            continue
        occupations[code]["jobZone"] = zone
        info = JOB_ZONE_INFO.get(zone)
        if info:
            occupations[code]["education"] = info["education"]
            occupations[code]["experience"] = info["experience"]


def _add_entry(index: Dict[str, List[Dict[str, str]]], key: str, code: str, title: str, match_type: str) -> None:
    if not key:
        return
    entries = index.setdefault(key, [])
    if any(e["code"] == code for e in entries):
        return
    entries.append({"code": code, "title": title, "matchType": match_type})


def create_title_index(occupations: Dict[str, Dict[str, Any]]) -> Dict[str, List[Dict[str, str]]]:
    """
    Build the normalized-title index.

    Every primary and alternate title becomes a key. Each word of four or
    more letters in a primary title also becomes a ``partial`` key. A code
    appears at most once under any key; primary entries are added first
    so they win over alternate and partial entries for the same key.
    """
    index: Dict[str, List[Dict[str, str]]] = {}

    for code, occ in occupations.items():
        _add_entry(index, normalize_title(occ["title"]), code, occ["title"], "primary")

    for code, occ in occupations.items():
        for alt in occ.get("alternateTitles", []):
            _add_entry(index, normalize_title(alt), code, occ["title"], "alternate")

    for code, occ in occupations.items():
        for word in normalize_title(occ["title"]).split():
            if len(word) >= PARTIAL_MIN_WORD_LENGTH:
                _add_entry(index, word, code, occ["title"], "partial")

    return index


def process_onet_data(raw_dir: Path, out_dir: Path) -> Dict[str, Any]:
    """
    Convert the raw O*NET text files in ``raw_dir`` into JSON in ``out_dir``.

    Writes onet-occupations.json, titles-index.json and onet-stats.json and
    returns the statistics document. Raises ValueError when no occupations
    are found.
    """
    started = time.time()
    warnings: List[str] = []

    occupations = process_occupation_data(parse_tab_delimited(raw_dir / "Occupation Data.txt", warnings))
    if not occupations:
        raise ValueError(f"No occupations found in {raw_dir}; check that the O*NET files exist")

    totals = {
        "totalOccupations": len(occupations),
        "totalAlternateTitles": process_alternate_titles(
            occupations, parse_tab_delimited(raw_dir / "Alternate Titles.txt", warnings)
        ),
    }
    for field_name, file_name, total_key in (
        ("skills", "Skills.txt", "totalSkills"),
        ("knowledge", "Knowledge.txt", "totalKnowledge"),
        ("abilities", "Abilities.txt", "totalAbilities"),
        ("workActivities", "Work Activities.txt", "totalWorkActivities"),
    ):
        rows = parse_tab_delimited(raw_dir / file_name, warnings)
        totals[total_key] = process_skills_like_data(occupations, rows, field_name)

    totals["totalWorkContext"] = process_work_context(
        occupations, parse_tab_delimited(raw_dir / "Work Context.txt", warnings)
    )
    process_job_zones(occupations, parse_tab_delimited(raw_dir / "Job Zones.txt", warnings))

    title_index = create_title_index(occupations)
    totals["uniqueTitlesInIndex"] = len(title_index)

    occupations_size = write_json(out_dir / "onet-occupations.json", occupations)
    index_size = write_json(out_dir / "titles-index.json", title_index)

    count = len(occupations)
    stats = {
        "version": "1.0",
        "dataSource": f"O*NET {ONET_VERSION}",
        "processedDate": datetime.now(timezone.utc).isoformat(),
        "processingTimeSeconds": round(time.time() - started, 2),
        "summary": totals,
        "averages": {
            "skillsPerOccupation": round(totals["totalSkills"] / count, 1),
            "knowledgePerOccupation": round(totals["totalKnowledge"] / count, 1),
            "abilitiesPerOccupation": round(totals["totalAbilities"] / count, 1),
        },
        "fileSizes": {
            "occupationsJson": format_bytes(occupations_size),
            "titlesIndexJson": format_bytes(index_size),
            "totalSize": format_bytes(occupations_size + index_size),
        },
        "warnings": warnings[:10],
    }
    write_json(out_dir / "onet-stats.json", stats)

    if warnings:
        logger.warning(f"O*NET processing produced {len(warnings)} warnings", first=warnings[0])
    logger.info(
        "Processed O*NET data",
        occupations=count,
        index_keys=len(title_index),
        total_size=stats["fileSizes"]["totalSize"],
    )
    return stats
