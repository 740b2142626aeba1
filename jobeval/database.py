"""
Database schema and connection management.

Saved evaluation sessions live in SQLite via SQLAlchemy. Each section of
the wizard state is stored as a JSON column so the session can be
restored or exported as-is.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict

from sqlalchemy import create_engine, Column, String, DateTime, JSON
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class WizardSession(Base):
    """One saved evaluation session."""

    __tablename__ = "wizard_sessions"

    id = Column(String, primary_key=True)
    company_name = Column(String, nullable=True)
    company_profile = Column(JSON, nullable=True)
    position = Column(JSON, nullable=True)
    quick_advisory = Column(JSON, nullable=True)
    selected_occupation = Column(JSON, nullable=True)
    wizard_state = Column(JSON, nullable=True)
    results = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


_engines: Dict[str, Engine] = {}


def get_engine(db_path: Path) -> Engine:
    """One engine (and connection pool) per database file."""
    key = str(Path(db_path).resolve())
    engine = _engines.get(key)
    if engine is None:
        engine = _engines[key] = create_engine(f"sqlite:///{db_path}")
    return engine


def dispose_engines() -> None:
    """Close pooled connections of every cached engine."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path))
    return Session()
