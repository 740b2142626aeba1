"""
Cleanup of abandoned evaluation sessions.

Sessions not updated within the retention window (default: 30 days) are
removed so the local session store does not grow without bound.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Tuple

from sqlalchemy.exc import SQLAlchemyError

from .database import WizardSession, get_session, init_database
from .logger import get_logger

logger = get_logger()


def cleanup_stale_sessions(db_path: Path, days: int = 30) -> Tuple[int, int]:
    """
    Remove sessions last updated more than ``days`` days ago.

    Args:
        db_path: Path to the SQLite session store
        days: Retention window in days

    Returns:
        Tuple of (sessions_before, sessions_after)
    """
    init_database(db_path)
    cutoff = datetime.now() - timedelta(days=days)
    session = get_session(db_path)

    try:
        before = session.query(WizardSession).count()
        removed = (
            session.query(WizardSession)
            .filter(WizardSession.updated_at < cutoff)
            .delete(synchronize_session=False)
        )
        session.commit()
        after = before - removed

        logger.info(
            f"Cleanup complete: {removed} removed, {after} remaining",
            sessions_before=before,
            sessions_removed=removed,
            days_threshold=days,
            cutoff=cutoff.isoformat(),
        )
        return (before, after)

    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Cleanup failed: {e}", days=days)
        return (0, 0)
    finally:
        session.close()
