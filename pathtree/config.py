"""Centralised settings for pathtree.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("PATHTREE_WORKSPACE", Path.home() / ".pathtree_data")
        )
    )
    db_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PATHTREE_DB_TIMEOUT", "5.0"))
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "tree.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------
    path_delimiter: str = field(
        default_factory=lambda: os.environ.get("PATHTREE_DELIMITER", "#")
    )
    on_delete: str = field(
        default_factory=lambda: os.environ.get("PATHTREE_ON_DELETE", "DELETE").upper()
    )
    cascade_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("PATHTREE_CASCADE_CONCURRENCY", "5"))
    )
    reject_cycles: bool = field(
        default_factory=lambda: _env_bool("PATHTREE_REJECT_CYCLES", "true")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from pathtree.config import settings
settings = Settings()
