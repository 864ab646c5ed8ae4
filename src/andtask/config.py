"""Configuration module for the andtask record store."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from andtask import __version__

# Project root .env, anchored to __file__ so the process CWD does not matter.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level overrides
_USER_ENV = Path.home() / ".andtask" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Hard ceiling on search results
MAX_SEARCH_LIMIT = 50


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class AndtaskConfig(BaseModel):
    """Configuration for the record store."""

    # Base directory that relative paths resolve against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("ANDTASK_BASE_DIR", "."))
    )
    # Database file (the one local file this store owns)
    database_path: Path = Field(
        default_factory=lambda: Path(os.getenv("ANDTASK_DATABASE_PATH", "andtask.db"))
    )
    # Write-ahead logging for the SQLite connection
    wal_mode: bool = Field(default_factory=lambda: _env_flag("ANDTASK_WAL_MODE", "true"))
    # Maximum number of search results
    search_limit: int = Field(
        default_factory=lambda: int(
            os.getenv("ANDTASK_SEARCH_LIMIT", str(MAX_SEARCH_LIMIT))
        )
    )
    # Rotating log directory; None means ~/.andtask/logs
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("ANDTASK_LOG_DIR"))
            if os.getenv("ANDTASK_LOG_DIR")
            else None
        )
    )
    version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_search_limit(self) -> "AndtaskConfig":
        """Keep the search cap inside 1..MAX_SEARCH_LIMIT."""
        if self.search_limit < 1:
            raise ValueError("search_limit must be >= 1")
        if self.search_limit > MAX_SEARCH_LIMIT:
            logger.warning(
                "search_limit=%d exceeds the maximum of %d; clamping",
                self.search_limit,
                MAX_SEARCH_LIMIT,
            )
            self.search_limit = MAX_SEARCH_LIMIT
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = AndtaskConfig()
