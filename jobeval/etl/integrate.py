"""
Merge O*NET occupations with BLS wages into the occupation database.

Wage data with incomplete or out-of-order percentiles is dropped before
publishing. The title index is then checked against the merged database:
every code it references must exist and carry wage data. Entries that
fail are pruned so the matcher never sees them.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..logger import get_logger
from ..normalize import strip_onet_suffix, to_onet_code
from ..schema import validate_wage_data
from ..storage import load_json
from .bls import group_for_code
from .common import write_json

logger = get_logger()

DEFAULT_JOB_ZONE = 3
DEFAULT_EDUCATION_LEVEL = "Some college, no degree"
TOP_ATTRIBUTES = 20


def build_bls_lookup(bls_occupations: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Index BLS records under both ``11-2021`` and ``11-2021.00``."""
    lookup = {}
    for occ in bls_occupations:
        lookup[occ["code"]] = occ
        lookup.setdefault(to_onet_code(occ["code"]), occ)
    return lookup


def find_bls_record(code: str, lookup: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return lookup.get(code) or lookup.get(strip_onet_suffix(code)) or lookup.get(to_onet_code(code))


def integrate_occupation(onet: Dict[str, Any], bls: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    record = {
        "code": onet["code"],
        "title": onet.get("title", ""),
        "description": onet.get("description", ""),
        "group": onet.get("group") or group_for_code(onet["code"]),
        "alternateTitles": onet.get("alternateTitles") or [],
        "skills": onet.get("skills") or [],
        "knowledge": onet.get("knowledge") or [],
        "jobZone": onet.get("jobZone") or DEFAULT_JOB_ZONE,
        "educationLevel": onet.get("educationLevel") or onet.get("education") or DEFAULT_EDUCATION_LEVEL,
        "wageData": None,
        "hasWageData": False,
        "dataSource": "onet-only",
    }

    if bls and bls.get("wages"):
        wages = bls["wages"]
        record["wageData"] = {
            "employment": bls.get("employment", 0),
            "hourly": {"mean": wages.get("hourlyMean"), "median": wages.get("hourlyMedian")},
            "annual": {"mean": wages.get("annualMean"), "median": wages.get("annualMedian")},
            "percentiles": {
                "p10": wages.get("percentile10"),
                "p25": wages.get("percentile25"),
                "p50": wages.get("annualMedian"),
                "p75": wages.get("percentile75"),
                "p90": wages.get("percentile90"),
            },
            "dataDate": bls.get("dataDate"),
        }
        record["hasWageData"] = True
        record["dataSource"] = "integrated"

    return record


def drop_invalid_wages(occupations: Dict[str, Dict[str, Any]]) -> List[str]:
    """
    Strip wage data that fails validation so the record is published as
    onet-only. Returns the validation errors, one per demoted occupation.
    """
    errors = []
    for code, occ in occupations.items():
        if not occ.get("hasWageData"):
            continue
        problems = validate_wage_data(code, occ.get("wageData"))
        if problems:
            errors.extend(problems)
            occ.update(wageData=None, hasWageData=False, dataSource="onet-only")
    return errors


def _top_attributes(counts: Dict[str, Dict[str, float]]) -> Dict[str, Dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda kv: kv[1]["count"], reverse=True)[:TOP_ATTRIBUTES]
    return {
        name: {"count": data["count"], "avgImportance": round(data["total"] / data["count"])}
        for name, data in ranked
    }


def calculate_statistics(occupations: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Wage coverage per group and the most common skills and knowledge areas."""
    by_group: Dict[str, Dict[str, int]] = {}
    skills: Dict[str, Dict[str, float]] = {}
    knowledge: Dict[str, Dict[str, float]] = {}
    with_wages = 0

    for occ in occupations.values():
        has_wages = bool(occ.get("hasWageData"))
        with_wages += has_wages
        group = by_group.setdefault(occ["group"], {"total": 0, "withWages": 0, "withoutWages": 0})
        group["total"] += 1
        group["withWages" if has_wages else "withoutWages"] += 1

        for target, items in ((skills, occ.get("skills") or []), (knowledge, occ.get("knowledge") or [])):
            for item in items:
                entry = target.setdefault(item["name"], {"count": 0, "total": 0.0})
                entry["count"] += 1
                entry["total"] += item.get("importance") or 0

    coverage = {
        name: {
            "total": g["total"],
            "wageCoverage": f"{g['withWages'] / g['total'] * 100:.1f}%" if g["total"] else "0%",
        }
        for name, g in by_group.items()
    }

    return {
        "totalOccupations": len(occupations),
        "occupationsWithWages": with_wages,
        "occupationsWithoutWages": len(occupations) - with_wages,
        "byGroup": by_group,
        "coverageByGroup": coverage,
        "topSkills": _top_attributes(skills),
        "topKnowledge": _top_attributes(knowledge),
    }


def validate_title_index(index: Dict[str, List[Dict[str, Any]]], occupations: Dict[str, Dict[str, Any]]) -> List[str]:
    """
    Check every index entry against the occupation database.

    Returns a list of errors (empty when valid): unknown codes, codes
    without wage data and duplicate codes under one key.
    """
    errors = []
    for key, entries in index.items():
        seen = set()
        for entry in entries:
            code = entry.get("code")
            if code in seen:
                errors.append(f"Duplicate code {code} under '{key}'")
                continue
            seen.add(code)
            occ = occupations.get(code)
            if occ is None:
                errors.append(f"Unknown occupation {code} under '{key}'")
            elif not occ.get("hasWageData"):
                errors.append(f"Occupation {code} under '{key}' has no wage data")
    return errors


def prune_title_index(
    index: Dict[str, List[Dict[str, Any]]],
    occupations: Dict[str, Dict[str, Any]],
) -> Tuple[Dict[str, List[Dict[str, Any]]], int]:
    """Drop entries that fail validation; keys left empty are removed. Returns (index, removed)."""
    pruned = {}
    removed = 0
    for key, entries in index.items():
        kept = []
        seen = set()
        for entry in entries:
            code = entry.get("code")
            occ = occupations.get(code)
            if code in seen or occ is None or not occ.get("hasWageData"):
                removed += 1
                continue
            seen.add(code)
            kept.append(entry)
        if kept:
            pruned[key] = kept
    return pruned, removed


def integrate_data(onet_path: Path, bls_path: Path, out_dir: Path, index_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Build ``out_dir/occupations.json`` and ``out_dir/occupation-stats.json``.

    When ``index_path`` is given, the title index there is pruned against
    the merged database and written back in place.
    """
    onet = load_json(onet_path, default=None)
    if not onet:
        raise ValueError(f"O*NET data not found at {onet_path}; run onet-process first")
    bls = load_json(bls_path, default=None)
    if not bls or not bls.get("occupations"):
        raise ValueError(f"BLS data not found at {bls_path}; run bls-process first")

    lookup = build_bls_lookup(bls["occupations"])
    logger.info("Loaded integration inputs", onet=len(onet), bls=len(bls["occupations"]))

    integrated = {}
    unmatched = []
    for code, onet_occ in onet.items():
        bls_occ = find_bls_record(code, lookup)
        integrated[code] = integrate_occupation({"code": code, **onet_occ}, bls_occ)
        if bls_occ is None:
            unmatched.append(code)

    rejected = drop_invalid_wages(integrated)
    if rejected:
        logger.warning("Dropped invalid BLS wage data", count=len(rejected), examples=rejected[:5])

    stats = calculate_statistics(integrated)
    total = stats["totalOccupations"]
    coverage = f"{stats['occupationsWithWages'] / total * 100:.1f}%" if total else "0%"

    database = {
        "version": "1.0",
        "dataDate": date.today().isoformat(),
        "metadata": {
            "totalOccupations": total,
            "occupationsWithWages": stats["occupationsWithWages"],
            "onetVersion": "30.0",
            "blsVersion": bls.get("version", "1.0"),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "coveragePercentage": coverage,
        },
        "occupations": integrated,
    }
    write_json(out_dir / "occupations.json", database)
    write_json(out_dir / "occupation-stats.json", {"generated": datetime.now(timezone.utc).isoformat(), **stats})

    if unmatched:
        logger.info("Occupations without BLS wages", count=len(unmatched), examples=unmatched[:5])

    if index_path is not None:
        index = load_json(index_path, default={})
        pruned, removed = prune_title_index(index, integrated)
        write_json(index_path, pruned)
        if removed:
            logger.warning("Pruned title index entries without wage data", removed=removed, keys=len(pruned))

    logger.info("Integrated occupation database", total=total, with_wages=stats["occupationsWithWages"], coverage=coverage)
    return database
