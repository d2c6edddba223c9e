"""Environment configuration and logging setup."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

load_dotenv(override=True)

DEFAULT_DB_PATH = Path(__file__).parent / "care_records" / "kinetic.db"


def get_db_path() -> Path:
    """Database file location, overridable with KINETIC_DB_PATH."""
    return Path(os.getenv("KINETIC_DB_PATH", str(DEFAULT_DB_PATH)))


def get_log_level() -> str:
    return os.getenv("KINETIC_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    """Route log records through a rich console handler."""
    logging.basicConfig(
        level=level or get_log_level(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
