from __future__ import annotations

import re
from typing import Any, Iterable

from .config import SEASONS
from .errors import ValidationError

COURSE_CODE_RE = re.compile(r"^[A-Z]{2,4}N[0-9]{3}$")
PROGRAM_CODE_RE = re.compile(r"^[A-Z]{2,4}$")
YEAR_RE = re.compile(r"^[0-9]{4}$")


def normalize_course_code(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("Course code must be a string")
    code = re.sub(r"\s+", "", raw).upper()
    if not COURSE_CODE_RE.match(code):
        raise ValidationError(
            "Invalid course code, must be in the format of CMPN123 or PEN123",
            details={"course_code": raw},
        )
    return code


def normalize_course_codes(raw_codes: Iterable[Any]) -> list[str]:
    """Normalize codes, dropping repeats but keeping request order."""
    seen: set[str] = set()
    codes: list[str] = []
    for raw in raw_codes:
        code = normalize_course_code(raw)
        if code in seen:
            continue
        seen.add(code)
        codes.append(code)
    return codes


def normalize_program_code(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("Program code must be a string")
    code = raw.strip().upper()
    if not PROGRAM_CODE_RE.match(code):
        raise ValidationError("Invalid program code, must be in the format of CCEC, EEE or UND", details={"program_code": raw})
    return code


def normalize_season(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("Semester season must be a string")
    season = raw.strip().upper()
    if season not in SEASONS:
        raise ValidationError("Invalid semester season, must be either F or S or SU", details={"season": raw})
    return season


def normalize_year(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValidationError("Year must be a four digit number")
    text = str(raw).strip()
    if not YEAR_RE.match(text):
        raise ValidationError("Invalid year, must be in the format of 2020", details={"year": raw})
    return int(text)


def normalize_name(raw: Any, field: str = "name", max_length: int = 120) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"{field} is required")
    name = raw.strip()
    if len(name) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", details={field: name[:max_length]})
    return name
