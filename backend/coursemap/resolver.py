"""Prerequisite resolver behind a student's course map.

Each course map keeps one ``Containment`` row per required course. The row
caches two facts about the course's direct prerequisites so availability is a
constant-time check instead of a graph walk:

* ``outdegree``: how many direct prerequisites are not yet taken.
* ``last_prereq_semester_order``: the latest semester order at which one of
  them was taken. A course may only go into a strictly later semester.

Placement and removal update those fields on the dependents of the course
being moved, inside one transaction per course map.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import catalog
from .config import MAX_SEMESTER_CREDITS, PLAN_YEARS, RECOMPUTE_PREREQ_ORDER
from .db import course_map_transaction, transaction
from .errors import NotFoundError, ValidationError
from .models import Containment, Course, CourseMap, MapPrerequisite, Semester, SemesterCourse, User
from .validation import (
    normalize_course_code,
    normalize_course_codes,
    normalize_name,
    normalize_program_code,
    normalize_season,
    normalize_year,
)

logger = logging.getLogger(__name__)


@dataclass
class PlacementResult:
    semester: Semester
    courses: list[Course]


@dataclass
class RemovalResult:
    course_map: CourseMap
    semester: Semester


def plan_terms(starting_year: int, years: int = PLAN_YEARS) -> list[tuple[str, int]]:
    """Fall, Spring and Summer for each academic year starting in the fall of ``starting_year``."""
    terms: list[tuple[str, int]] = []
    for offset in range(years):
        fall_year = starting_year + offset
        terms.extend([("F", fall_year), ("S", fall_year + 1), ("SU", fall_year + 1)])
    return terms


# Spring and summer of a year come before its fall.
CALENDAR_RANK = {"S": 0, "SU": 1, "F": 2}


def calendar_key(season: str, year: int) -> tuple[int, int]:
    return (year, CALENDAR_RANK[season])


def is_available(record: Containment, semester: Semester) -> bool:
    return (not record.taken) and record.outdegree == 0 and record.last_prereq_semester_order < semester.order


# Lookups


def _get_course_map(db: Session, user: User, course_map_id: str, for_update: bool = False) -> CourseMap:
    stmt = select(CourseMap).where(CourseMap.id == course_map_id, CourseMap.user_id == user.id)
    if for_update:
        stmt = stmt.with_for_update(of=CourseMap)
    course_map = db.scalar(stmt)
    if not course_map:
        raise NotFoundError("Course map not found", details={"course_map_id": course_map_id})
    return course_map


def _get_semester(db: Session, course_map: CourseMap, semester_id: str) -> Semester:
    semester = db.scalar(select(Semester).where(Semester.id == semester_id, Semester.course_map_id == course_map.id))
    if not semester:
        raise NotFoundError("Semester not found", details={"semester_id": semester_id})
    return semester


def _containments(db: Session, course_map_id: str) -> dict[str, Containment]:
    rows = db.scalars(select(Containment).where(Containment.course_map_id == course_map_id)).all()
    return {row.course_code: row for row in rows}


def _dependents(db: Session, course_map_id: str, prerequisite_codes: Iterable[str]) -> dict[str, list[str]]:
    codes = list(prerequisite_codes)
    out: dict[str, list[str]] = {code: [] for code in codes}
    if not codes:
        return out
    rows = db.execute(
        select(MapPrerequisite.prerequisite_code, MapPrerequisite.course_code).where(
            MapPrerequisite.course_map_id == course_map_id, MapPrerequisite.prerequisite_code.in_(codes)
        )
    ).all()
    for prerequisite_code, course_code in rows:
        out[prerequisite_code].append(course_code)
    return out


def _courses(db: Session, codes: Iterable[str]) -> dict[str, Course]:
    codes = list(codes)
    if not codes:
        return {}
    return {c.code: c for c in db.scalars(select(Course).where(Course.code.in_(codes))).all()}


def _credits_before(db: Session, course_map_id: str, order: int) -> int:
    total = db.scalar(
        select(func.coalesce(func.sum(Course.credits), 0))
        .select_from(SemesterCourse)
        .join(Course, Course.code == SemesterCourse.course_code)
        .join(Semester, Semester.id == SemesterCourse.semester_id)
        .where(SemesterCourse.course_map_id == course_map_id, Semester.order < order)
    )
    return int(total or 0)


def _credits_in(db: Session, semester_id: str) -> int:
    total = db.scalar(
        select(func.coalesce(func.sum(Course.credits), 0))
        .select_from(SemesterCourse)
        .join(Course, Course.code == SemesterCourse.course_code)
        .where(SemesterCourse.semester_id == semester_id)
    )
    return int(total or 0)


# Course maps and semesters


def _course_map_name_taken(db: Session, user: User, name: str) -> bool:
    return db.scalar(select(CourseMap.id).where(CourseMap.user_id == user.id, CourseMap.name == name)) is not None


def create_course_map(
    db: Session,
    user: User,
    name: str,
    program_code: str,
    starting_year: Optional[int | str] = None,
    years: int = PLAN_YEARS,
) -> CourseMap:
    name = normalize_name(name)
    program_code = normalize_program_code(program_code)
    first_year = normalize_year(starting_year) if starting_year is not None else None

    with transaction(db):
        program = catalog.get_program(db, program_code)
        if _course_map_name_taken(db, user, name):
            raise ValidationError("Course map already exists", details={"name": name})

        course_map = CourseMap(user_id=user.id, program_code=program.code, name=name)
        db.add(course_map)
        try:
            db.flush()
        except IntegrityError as exc:
            # another request created the same name after the check above
            raise ValidationError("Course map already exists", details={"name": name}) from exc

        requirements = catalog.get_program_requirements(db, program.code)
        edges = catalog.prerequisite_edges(db, [course.code for course, _ in requirements])
        for course, group in requirements:
            prerequisites = edges[course.code]
            db.add(
                Containment(
                    course_map_id=course_map.id,
                    course_code=course.code,
                    taken=False,
                    outdegree=len(prerequisites),
                    last_prereq_semester_order=-1,
                    group=group,
                )
            )
            for prerequisite_code in prerequisites:
                db.add(MapPrerequisite(course_map_id=course_map.id, course_code=course.code, prerequisite_code=prerequisite_code))

        if first_year is not None:
            for order, (season, year) in enumerate(plan_terms(first_year, years), start=1):
                db.add(Semester(course_map_id=course_map.id, season=season, year=year, order=order))
        db.flush()

    logger.info(
        "Created course map %s for user %s (program=%s, courses=%d)",
        course_map.id,
        user.id,
        program_code,
        len(requirements),
    )
    return course_map


def list_course_maps(db: Session, user: User) -> list[CourseMap]:
    return list(db.scalars(select(CourseMap).where(CourseMap.user_id == user.id).order_by(CourseMap.created_at.asc())).all())


def get_course_map(db: Session, user: User, course_map_id: str) -> CourseMap:
    return _get_course_map(db, user, course_map_id)


def containment_records(db: Session, user: User, course_map_id: str) -> list[Containment]:
    course_map = _get_course_map(db, user, course_map_id)
    return sorted(_containments(db, course_map.id).values(), key=lambda r: r.course_code)


def add_semester(db: Session, user: User, course_map_id: str, season: str, year: int | str) -> Semester:
    season = normalize_season(season)
    year = normalize_year(year)
    with course_map_transaction(db, course_map_id):
        course_map = _get_course_map(db, user, course_map_id, for_update=True)
        clash = db.scalar(
            select(Semester.id).where(Semester.course_map_id == course_map.id, Semester.season == season, Semester.year == year)
        )
        if clash:
            raise ValidationError("Semester already exists", details={"season": season, "year": year})
        last = db.scalar(select(Semester).where(Semester.course_map_id == course_map.id).order_by(Semester.order.desc()).limit(1))
        if last and calendar_key(season, year) <= calendar_key(last.season, last.year):
            raise ValidationError(
                "Semester must come after the last semester of the course map",
                details={"season": season, "year": year, "last_season": last.season, "last_year": last.year},
            )
        semester = Semester(course_map_id=course_map.id, season=season, year=year, order=(last.order if last else 0) + 1)
        db.add(semester)
        db.flush()
    return semester


def list_semesters(db: Session, user: User, course_map_id: str) -> list[Semester]:
    course_map = _get_course_map(db, user, course_map_id)
    return list(db.scalars(select(Semester).where(Semester.course_map_id == course_map.id).order_by(Semester.order.asc())).all())


def semester_courses(db: Session, user: User, course_map_id: str, semester_id: str) -> list[Course]:
    course_map = _get_course_map(db, user, course_map_id)
    semester = _get_semester(db, course_map, semester_id)
    return list(
        db.scalars(
            select(Course)
            .join(SemesterCourse, SemesterCourse.course_code == Course.code)
            .where(SemesterCourse.semester_id == semester.id)
            .order_by(Course.code.asc())
        ).all()
    )


# Availability


def _eligible(db: Session, course_map: CourseMap, semester: Semester) -> list[Course]:
    codes = [code for code, record in _containments(db, course_map.id).items() if is_available(record, semester)]
    courses = _courses(db, codes)
    return [courses[code] for code in sorted(courses)]


def eligible_courses(db: Session, user: User, course_map_id: str, semester_id: str) -> list[Course]:
    """Courses whose direct prerequisites were all taken before ``semester_id``."""
    course_map = _get_course_map(db, user, course_map_id)
    semester = _get_semester(db, course_map, semester_id)
    return _eligible(db, course_map, semester)


def available_courses(
    db: Session,
    user: User,
    course_map_id: str,
    semester_id: str,
    max_credits: int = MAX_SEMESTER_CREDITS,
) -> list[Course]:
    """Eligible courses that also meet prerequisite hours and fit under the credit cap."""
    course_map = _get_course_map(db, user, course_map_id)
    semester = _get_semester(db, course_map, semester_id)
    earned = _credits_before(db, course_map.id, semester.order)
    room = max_credits - _credits_in(db, semester.id)
    out = []
    for course in _eligible(db, course_map, semester):
        if course.prerequisite_hours > earned:
            continue
        if course.credits > room:
            continue
        out.append(course)
    return out


# Placement


def place_course(
    db: Session,
    user: User,
    course_map_id: str,
    semester_id: str,
    course_code: str,
    max_credits: int = MAX_SEMESTER_CREDITS,
) -> PlacementResult:
    return place_courses(db, user, course_map_id, semester_id, [course_code], max_credits=max_credits)


def place_courses(
    db: Session,
    user: User,
    course_map_id: str,
    semester_id: str,
    course_codes: Iterable[str],
    max_credits: int = MAX_SEMESTER_CREDITS,
) -> PlacementResult:
    codes = normalize_course_codes(course_codes)
    if not codes:
        raise ValidationError("At least one course code is required")

    with course_map_transaction(db, course_map_id):
        course_map = _get_course_map(db, user, course_map_id, for_update=True)
        semester = _get_semester(db, course_map, semester_id)
        records = _containments(db, course_map.id)

        unknown = [code for code in codes if code not in records]
        if unknown:
            raise ValidationError("Course is not part of this course map's program", details={"courses": unknown})

        blocked = [code for code in codes if not is_available(records[code], semester)]
        if blocked:
            raise ValidationError(
                "Course prerequisites are not satisfied before this semester or the course is already taken",
                details={"courses": blocked},
            )

        courses = _courses(db, codes)
        earned = _credits_before(db, course_map.id, semester.order)
        short = [code for code in codes if courses[code].prerequisite_hours > earned]
        if short:
            raise ValidationError(
                "Not enough credit hours earned before this semester",
                details={
                    "courses": short,
                    "earned_credits": earned,
                    "required_credits": {code: courses[code].prerequisite_hours for code in short},
                },
            )

        current = _credits_in(db, semester.id)
        requested = sum(courses[code].credits for code in codes)
        if current + requested > max_credits:
            raise ValidationError(
                f"Semester credit limit of {max_credits} exceeded",
                details={"courses": codes, "semester_credits": current, "requested_credits": requested, "max_credits": max_credits},
            )

        dependents = _dependents(db, course_map.id, codes)
        for code in codes:
            for dependent_code in dependents[code]:
                dependent = records[dependent_code]
                if dependent.taken:
                    continue
                dependent.outdegree -= 1
                dependent.last_prereq_semester_order = max(dependent.last_prereq_semester_order, semester.order)
            records[code].taken = True
            db.add(SemesterCourse(semester_id=semester.id, course_map_id=course_map.id, course_code=code))
        db.flush()

    logger.info("Placed %s in semester %s of course map %s", ", ".join(codes), semester.id, course_map.id)
    return PlacementResult(semester=semester, courses=[courses[code] for code in codes])


# Removal


def _latest_prerequisite_order(db: Session, course_map_id: str, course_code: str) -> int:
    latest = db.scalar(
        select(func.max(Semester.order))
        .select_from(MapPrerequisite)
        .join(
            SemesterCourse,
            (SemesterCourse.course_map_id == MapPrerequisite.course_map_id)
            & (SemesterCourse.course_code == MapPrerequisite.prerequisite_code),
        )
        .join(Semester, Semester.id == SemesterCourse.semester_id)
        .where(MapPrerequisite.course_map_id == course_map_id, MapPrerequisite.course_code == course_code)
    )
    return -1 if latest is None else int(latest)


def remove_course(
    db: Session,
    user: User,
    course_map_id: str,
    semester_id: str,
    course_code: str,
    recompute_prereq_order: bool = RECOMPUTE_PREREQ_ORDER,
) -> RemovalResult:
    """Take a course out of a semester and re-lock its untaken dependents.

    Unless ``recompute_prereq_order`` is set, dependents keep the
    ``last_prereq_semester_order`` they were given when the course was placed.
    """
    code = normalize_course_code(course_code)

    with course_map_transaction(db, course_map_id):
        course_map = _get_course_map(db, user, course_map_id, for_update=True)
        semester = _get_semester(db, course_map, semester_id)
        take = db.scalar(
            select(SemesterCourse).where(
                SemesterCourse.course_map_id == course_map.id,
                SemesterCourse.semester_id == semester.id,
                SemesterCourse.course_code == code,
            )
        )
        if not take:
            raise NotFoundError("Course not found in semester", details={"course_code": code})

        records = _containments(db, course_map.id)
        dependent_codes = _dependents(db, course_map.id, [code])[code]
        blocking = sorted(c for c in dependent_codes if records[c].taken)
        if blocking:
            raise ValidationError(
                "Cannot remove course because it is a prerequisite for other taken courses, "
                "remove those courses first and try again: " + ", ".join(blocking),
                details={"courses": blocking},
            )

        db.delete(take)
        records[code].taken = False
        db.flush()
        for dependent_code in dependent_codes:
            dependent = records[dependent_code]
            dependent.outdegree += 1
            if recompute_prereq_order:
                dependent.last_prereq_semester_order = _latest_prerequisite_order(db, course_map.id, dependent_code)
        db.flush()

    logger.info("Removed %s from semester %s of course map %s", code, semester.id, course_map.id)
    return RemovalResult(course_map=course_map, semester=semester)
