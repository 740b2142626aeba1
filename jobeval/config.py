"""
Runtime configuration for JobEval.

Settings come from the process environment (optionally seeded from a
.env file via python-dotenv). CLI flags override these values.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


@dataclass
class Settings:
    """Application settings with environment-backed defaults."""

    data_dir: Path = Path("data")
    db_path: Optional[Path] = None
    log_level: str = "INFO"
    environment: str = "production"

    bls_api_key: str = ""

    github_token: str = ""
    github_repo_owner: str = ""
    github_repo_name: str = ""

    feedback_rate_limit: int = 5
    feedback_rate_window_seconds: int = 3600

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.db_path is None:
            self.db_path = self.data_dir / "jobeval.db"
        else:
            self.db_path = Path(self.db_path)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ if env is None else env
        db_path = env.get("JOBEVAL_DB_PATH") or None
        return cls(
            data_dir=Path(env.get("JOBEVAL_DATA_DIR") or "data"),
            db_path=Path(db_path) if db_path else None,
            log_level=(env.get("JOBEVAL_LOG_LEVEL") or "INFO").upper(),
            environment=env.get("JOBEVAL_ENV") or "production",
            bls_api_key=env.get("BLS_API_KEY", ""),
            github_token=env.get("GITHUB_TOKEN", ""),
            github_repo_owner=env.get("GITHUB_REPO_OWNER", ""),
            github_repo_name=env.get("GITHUB_REPO_NAME", ""),
            feedback_rate_limit=_env_int(env, "FEEDBACK_RATE_LIMIT", 5),
            feedback_rate_window_seconds=_env_int(env, "FEEDBACK_RATE_WINDOW_SECONDS", 3600),
        )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    # Derived artifact locations

    @property
    def raw_dir(self) -> Path:
        return self.data_dir / "raw"

    @property
    def processed_dir(self) -> Path:
        return self.data_dir / "processed"

    @property
    def occupations_path(self) -> Path:
        """Integrated occupation database consumed by the matcher."""
        return self.data_dir / "occupations.json"

    @property
    def title_index_path(self) -> Path:
        return self.processed_dir / "titles-index.json"

    @property
    def onet_occupations_path(self) -> Path:
        return self.processed_dir / "onet-occupations.json"

    @property
    def bls_data_path(self) -> Path:
        return self.processed_dir / "bls-data.json"
