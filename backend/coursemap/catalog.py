"""Read-only view of the program/course catalog used by the resolver.

The catalog itself is maintained elsewhere; ``load_catalog`` exists so an
operator can populate a database from a JSON export.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import NotFoundError, ValidationError
from .models import Course, CoursePrerequisite, Program, ProgramRequirement
from .validation import normalize_course_code, normalize_name, normalize_program_code

logger = logging.getLogger(__name__)


def list_programs(db: Session) -> list[Program]:
    return list(db.scalars(select(Program).order_by(Program.code.asc())).all())


def get_program(db: Session, program_code: str) -> Program:
    program = db.get(Program, program_code)
    if not program:
        raise NotFoundError("Program not found", details={"program_code": program_code})
    return program


def get_course(db: Session, course_code: str) -> Course:
    course = db.get(Course, course_code)
    if not course:
        raise NotFoundError("Course not found", details={"course_code": course_code})
    return course


def get_program_requirements(db: Session, program_code: str) -> list[tuple[Course, Optional[str]]]:
    rows = db.execute(
        select(Course, ProgramRequirement.group)
        .join(ProgramRequirement, ProgramRequirement.course_code == Course.code)
        .where(ProgramRequirement.program_code == program_code)
        .order_by(Course.code.asc())
    ).all()
    return [(course, group) for course, group in rows]


def get_direct_prerequisites(db: Session, course_code: str) -> list[str]:
    return list(
        db.scalars(
            select(CoursePrerequisite.prerequisite_code)
            .where(CoursePrerequisite.course_code == course_code)
            .order_by(CoursePrerequisite.prerequisite_code.asc())
        ).all()
    )


def prerequisite_edges(db: Session, course_codes: Iterable[str]) -> dict[str, list[str]]:
    """Direct prerequisites of each course, restricted to ``course_codes``."""
    codes = set(course_codes)
    edges: dict[str, list[str]] = {code: [] for code in codes}
    if not codes:
        return edges
    rows = db.execute(
        select(CoursePrerequisite.course_code, CoursePrerequisite.prerequisite_code).where(
            CoursePrerequisite.course_code.in_(codes)
        )
    ).all()
    for course_code, prerequisite_code in rows:
        if prerequisite_code in codes:
            edges[course_code].append(prerequisite_code)
    return edges


def _non_negative_int(raw, field: str, code: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={"course_code": code}) from exc
    if value < 0:
        raise ValidationError(f"{field} cannot be negative", details={"course_code": code})
    return value


def load_catalog(db: Session, payload: dict) -> dict:
    """Upsert courses, prerequisite edges and programs from a JSON payload.

    Expected shape::

        {"courses": [{"code", "name", "credits", "prerequisite_hours", "prerequisites": [...]}],
         "programs": [{"code", "name", "courses": [{"code", "group"}]}]}

    The caller owns the transaction.
    """
    created = {"courses": 0, "prerequisites": 0, "programs": 0, "requirements": 0}
    course_rows = payload.get("courses") or []
    program_rows = payload.get("programs") or []

    prerequisites_by_course: dict[str, list[str]] = defaultdict(list)
    for raw in course_rows:
        code = normalize_course_code(raw.get("code"))
        course = db.get(Course, code)
        if not course:
            course = Course(code=code)
            db.add(course)
            created["courses"] += 1
        course.name = normalize_name(raw.get("name") or code)
        course.credits = _non_negative_int(raw.get("credits", 3), "credits", code)
        course.prerequisite_hours = _non_negative_int(raw.get("prerequisite_hours", 0), "prerequisite_hours", code)
        for prereq in raw.get("prerequisites") or []:
            prereq_code = normalize_course_code(prereq)
            if prereq_code == code:
                raise ValidationError("Course cannot require itself", details={"course_code": code})
            prerequisites_by_course[code].append(prereq_code)
    db.flush()

    for code, prereq_codes in prerequisites_by_course.items():
        existing = set(get_direct_prerequisites(db, code))
        for prereq_code in prereq_codes:
            if prereq_code in existing:
                continue
            if not db.get(Course, prereq_code):
                raise NotFoundError("Prerequisite course not found", details={"course_code": code, "prerequisite": prereq_code})
            db.add(CoursePrerequisite(course_code=code, prerequisite_code=prereq_code))
            existing.add(prereq_code)
            created["prerequisites"] += 1
    db.flush()

    for raw in program_rows:
        code = normalize_program_code(raw.get("code"))
        program = db.get(Program, code)
        if not program:
            program = Program(code=code)
            db.add(program)
            created["programs"] += 1
        program.name = normalize_name(raw.get("name") or code)
        db.flush()
        required = {
            r.course_code: r
            for r in db.scalars(select(ProgramRequirement).where(ProgramRequirement.program_code == code)).all()
        }
        for item in raw.get("courses") or []:
            if isinstance(item, str):
                item = {"code": item}
            course_code = normalize_course_code(item.get("code"))
            if not db.get(Course, course_code):
                raise NotFoundError("Course not found", details={"program_code": code, "course_code": course_code})
            group = (item.get("group") or "").strip() or None
            if course_code in required:
                required[course_code].group = group
                continue
            requirement = ProgramRequirement(program_code=code, course_code=course_code, group=group)
            db.add(requirement)
            required[course_code] = requirement
            created["requirements"] += 1
    db.flush()
    logger.info("Catalog loaded: %s", created)
    return created
