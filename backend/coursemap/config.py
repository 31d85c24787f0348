from __future__ import annotations

import logging
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("COURSEMAP_DATABASE_URL", "sqlite:///./coursemap.db")
SESSION_SECRET = os.getenv("COURSEMAP_SESSION_SECRET", "change-me")
MAX_SEMESTER_CREDITS = int(os.getenv("COURSEMAP_MAX_SEMESTER_CREDITS", "21"))
PLAN_YEARS = int(os.getenv("COURSEMAP_PLAN_YEARS", "5"))
# Removal leaves dependents' last prerequisite order untouched unless enabled.
RECOMPUTE_PREREQ_ORDER = _env_flag("COURSEMAP_RECOMPUTE_PREREQ_ORDER")
LOG_LEVEL = os.getenv("COURSEMAP_LOG_LEVEL", "INFO")

SEASONS = ("F", "S", "SU")
SEASON_NAMES = {"F": "Fall", "S": "Spring", "SU": "Summer"}


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
