"""
Session persistence: save status tracking, the SQLite session store and
the portable JSON export/import format (version 1.0).

Session state is a plain dict with the same sections as the export's
``data`` block: ``company``, ``position``, ``quickAdvisory``, ``wizard``,
``matching`` and, optionally, ``results``.
"""

import json
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .database import WizardSession, get_session, init_database
from .logger import get_logger
from .schema import EXPORT_FORMAT_VERSION, POSITION_SECTIONS, validate_import_data

logger = get_logger()

IDLE = "idle"
SAVING = "saving"
SAVED = "saved"
ERROR = "error"


@dataclass(frozen=True)
class SaveEvent:
    status: str
    timestamp: float
    error: Optional[str] = None


class SaveStatusTracker:
    """
    Tracks the status of the most recent save and notifies listeners.

    Create one per application (or per test) and hand it to whatever
    performs saves; there is no module-level instance.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._listeners: List[Callable[[SaveEvent], None]] = []
        self._status = IDLE
        self._last_save_time: Optional[float] = None
        self._last_error: Optional[str] = None
        self._retry_callback: Optional[Callable[[], None]] = None

    def subscribe(self, listener: Callable[[SaveEvent], None]) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it.

        A new listener immediately receives the current status unless idle.
        """
        self._listeners.append(listener)
        if self._status != IDLE:
            listener(SaveEvent(
                status=self._status,
                timestamp=self._last_save_time or self._clock(),
                error=self._last_error,
            ))

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: SaveEvent) -> None:
        self._status = event.status
        if event.status == SAVED:
            self._last_save_time = event.timestamp
            self._last_error = None
        elif event.status == ERROR:
            self._last_error = event.error or "Save failed"

        for listener in list(self._listeners):
            listener(event)

    def set_saving(self) -> None:
        self._emit(SaveEvent(status=SAVING, timestamp=self._clock()))

    def set_saved(self) -> None:
        self._emit(SaveEvent(status=SAVED, timestamp=self._clock()))

    def set_error(self, error: str, retry_callback: Optional[Callable[[], None]] = None) -> None:
        self._retry_callback = retry_callback
        self._emit(SaveEvent(status=ERROR, timestamp=self._clock(), error=error))

    def retry(self) -> bool:
        """Re-run the last failed save. Returns True if it succeeded."""
        if self._retry_callback is None:
            return False
        callback = self._retry_callback
        self.set_saving()
        try:
            callback()
        except Exception as e:
            self.set_error(str(e) or "Save failed", callback)
            return False
        self.set_saved()
        return True

    def reset(self) -> None:
        self._last_save_time = None
        self._last_error = None
        self._retry_callback = None
        self._emit(SaveEvent(status=IDLE, timestamp=self._clock()))

    def get_status(self) -> Dict[str, Any]:
        return {
            "status": self._status,
            "last_save_time": self._last_save_time,
            "error": self._last_error,
        }


# SQLite session store

SESSION_SECTIONS = {
    "company": "company_profile",
    "position": "position",
    "quickAdvisory": "quick_advisory",
    "matching": "selected_occupation",
    "wizard": "wizard_state",
    "results": "results",
}


class SessionRepository:
    """CRUD for saved sessions, reporting save progress to a tracker."""

    def __init__(self, db_path: Path, tracker: Optional[SaveStatusTracker] = None):
        self.db_path = Path(db_path)
        self.tracker = tracker or SaveStatusTracker()
        init_database(self.db_path)

    def save(self, session_id: str, state: Dict[str, Any]) -> bool:
        """Upsert ``state`` under ``session_id``. Failures are reported to the tracker."""
        self.tracker.set_saving()
        try:
            self._write(session_id, state)
        except SQLAlchemyError as e:
            logger.error("Session save failed", session_id=session_id, error=str(e))
            self.tracker.set_error(f"Save failed: {e}", lambda: self._write(session_id, state))
            return False
        self.tracker.set_saved()
        return True

    def _write(self, session_id: str, state: Dict[str, Any]) -> None:
        session = get_session(self.db_path)
        try:
            row = session.get(WizardSession, session_id)
            if row is None:
                row = WizardSession(id=session_id)
                session.add(row)
            company = state.get("company") or {}
            row.company_name = company.get("name")
            for key, column in SESSION_SECTIONS.items():
                setattr(row, column, state.get(key))
            row.updated_at = datetime.now()
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = get_session(self.db_path)
        try:
            row = session.get(WizardSession, session_id)
            if row is None:
                return None
            return {key: getattr(row, column) for key, column in SESSION_SECTIONS.items()}
        finally:
            session.close()

    def list_sessions(self) -> List[Dict[str, Any]]:
        session = get_session(self.db_path)
        try:
            rows = session.query(WizardSession).order_by(WizardSession.updated_at.desc()).all()
            return [
                {
                    "id": row.id,
                    "company_name": row.company_name,
                    "created_at": row.created_at.isoformat(),
                    "updated_at": row.updated_at.isoformat(),
                }
                for row in rows
            ]
        finally:
            session.close()

    def delete(self, session_id: str) -> bool:
        session = get_session(self.db_path)
        try:
            deleted = session.query(WizardSession).filter_by(id=session_id).delete()
            session.commit()
            return deleted > 0
        finally:
            session.close()


# Export

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def has_position_data(position: Optional[Dict[str, Any]]) -> bool:
    if not position:
        return False
    return any(position.get(section) for section in POSITION_SECTIONS)


def determine_evaluation_type(has_quick_advisory: bool, has_full_position: bool) -> str:
    if has_quick_advisory and has_full_position:
        return "mixed"
    if has_quick_advisory:
        return "quick"
    if has_full_position:
        return "full"
    return "none"


def gather_export_data(state: Dict[str, Any], app_version: str = __version__) -> Dict[str, Any]:
    """Build the version 1.0 export document from session ``state``."""
    now = _utc_now_iso()
    company = state.get("company")
    position = state.get("position") or {}
    position = {section: position.get(section) for section in POSITION_SECTIONS}
    quick_advisory = state.get("quickAdvisory")
    wizard = state.get("wizard")

    evaluation_type = determine_evaluation_type(
        bool(quick_advisory and quick_advisory.get("jobTitle")),
        has_position_data(position),
    )

    export = {
        "version": EXPORT_FORMAT_VERSION,
        "exportDate": now,
        "metadata": {
            "appVersion": app_version,
            "companyName": (company or {}).get("name"),
            "evaluationType": evaluation_type,
            "lastModified": now,
        },
        "data": {
            "company": company,
            "position": position,
            "quickAdvisory": quick_advisory,
            "wizard": {
                "currentStep": wizard.get("currentStep", 0),
                "steps": wizard.get("steps", []),
            } if wizard else None,
            "matching": state.get("matching"),
        },
    }
    if state.get("results"):
        export["results"] = state["results"]
    return export


def generate_filename(company_name: Optional[str] = None, today: Optional[date] = None) -> str:
    """``JobEval_Data_<Company>_YYYY-MM-DD.json``; company part omitted when unknown."""
    date_str = (today or date.today()).isoformat()
    if company_name:
        sanitized = re.sub(r"[^a-zA-Z0-9\-_]", "_", company_name)[:50]
        return f"JobEval_Data_{sanitized}_{date_str}.json"
    return f"JobEval_Data_{date_str}.json"


def export_to_file(state: Dict[str, Any], directory: Path) -> Path:
    export = gather_export_data(state)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / generate_filename(export["metadata"]["companyName"])
    with path.open("w", encoding="utf-8") as f:
        json.dump(export, f, indent=2, ensure_ascii=False)
    logger.info("Exported session", path=str(path), evaluation_type=export["metadata"]["evaluationType"])
    return path


# Import

@dataclass(frozen=True)
class VersionCheck:
    compatible: bool
    needs_migration: bool
    message: Optional[str] = None


@dataclass
class ImportResult:
    success: bool
    errors: List[str] = field(default_factory=list)
    state: Optional[Dict[str, Any]] = None


def check_version(imported_version: str) -> VersionCheck:
    if imported_version == EXPORT_FORMAT_VERSION:
        return VersionCheck(compatible=True, needs_migration=False)
    return VersionCheck(
        compatible=False,
        needs_migration=False,
        message=f"Incompatible data version - this file is from version {imported_version}",
    )


def state_from_export(export: Dict[str, Any]) -> Dict[str, Any]:
    data = export["data"]
    state = {
        "company": data.get("company"),
        "position": data.get("position"),
        "quickAdvisory": data.get("quickAdvisory"),
        "wizard": data.get("wizard"),
        "matching": data.get("matching"),
    }
    if export.get("results"):
        state["results"] = export["results"]
    return state


def import_data(obj: Any) -> ImportResult:
    valid, errors = validate_import_data(obj)
    if not valid:
        return ImportResult(success=False, errors=errors)

    version = check_version(obj["version"])
    if not version.compatible:
        return ImportResult(success=False, errors=[version.message])

    return ImportResult(success=True, state=state_from_export(obj))


def import_from_file(path: Path) -> ImportResult:
    if not path.exists():
        return ImportResult(success=False, errors=[f"File not found: {path}"])
    try:
        with path.open("r", encoding="utf-8") as f:
            obj = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return ImportResult(success=False, errors=["Invalid file format - not a valid JSON file"])

    result = import_data(obj)
    if result.success:
        logger.info("Imported session", path=str(path))
    else:
        logger.warning("Import rejected", path=str(path), errors=result.errors)
    return result
