import json
from pathlib import Path
from typing import Any, Dict, List

from .logger import get_logger
from .models import Occupation, TitleIndexEntry

logger = get_logger()


def load_json(path: Path, default: Any = None) -> Any:
    """Read a JSON artifact. Missing, empty or corrupt files yield ``default``."""
    if not path.exists():
        return default
    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
            if not content:
                return default
            return json.loads(content)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Could not read JSON artifact", path=str(path), error=str(e))
        return default


def save_json(path: Path, data: Any, indent: int = 2) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)


def parse_occupations(raw: Dict[str, Any]) -> Dict[str, Occupation]:
    """Accepts either the integrated database (with an ``occupations`` key) or a bare code map."""
    if isinstance(raw, dict) and isinstance(raw.get("occupations"), dict):
        raw = raw["occupations"]
    occupations = {}
    for code, data in (raw or {}).items():
        if not isinstance(data, dict):
            continue
        try:
            occupation = Occupation.from_dict({"code": code, **data})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed occupation", code=code, error=str(e))
            continue
        occupations[occupation.code] = occupation
    return occupations


def parse_title_index(raw: Dict[str, Any]) -> Dict[str, List[TitleIndexEntry]]:
    index: Dict[str, List[TitleIndexEntry]] = {}
    for key, entries in (raw or {}).items():
        if not isinstance(entries, list):
            continue
        parsed = []
        for entry in entries:
            if isinstance(entry, dict) and entry.get("code"):
                parsed.append(TitleIndexEntry.from_dict(entry))
        if parsed:
            index[key] = parsed
    return index


def load_occupation_database(path: Path) -> Dict[str, Occupation]:
    occupations = parse_occupations(load_json(path, default={}))
    if not occupations:
        logger.warning("Occupation database is empty or missing", path=str(path))
    return occupations


def load_title_index(path: Path) -> Dict[str, List[TitleIndexEntry]]:
    index = parse_title_index(load_json(path, default={}))
    if not index:
        logger.warning("Title index is empty or missing", path=str(path))
    return index


def title_index_to_dict(index: Dict[str, List[TitleIndexEntry]]) -> Dict[str, List[dict]]:
    return {key: [entry.to_dict() for entry in entries] for key, entries in index.items()}
