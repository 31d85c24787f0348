from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String)
    password_hash: Mapped[str] = mapped_column(String)


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_course_credits"),
        CheckConstraint("prerequisite_hours >= 0", name="ck_course_prerequisite_hours"),
    )
    code: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    credits: Mapped[int] = mapped_column(Integer, default=3)
    prerequisite_hours: Mapped[int] = mapped_column(Integer, default=0)


class CoursePrerequisite(Base):
    __tablename__ = "course_prerequisites"
    __table_args__ = (UniqueConstraint("course_code", "prerequisite_code", name="uq_course_prerequisite"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_code: Mapped[str] = mapped_column(String, ForeignKey("courses.code"), index=True)
    prerequisite_code: Mapped[str] = mapped_column(String, ForeignKey("courses.code"), index=True)


class Program(Base):
    __tablename__ = "programs"
    code: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)


class ProgramRequirement(Base):
    __tablename__ = "program_requirements"
    __table_args__ = (UniqueConstraint("program_code", "course_code", name="uq_program_requirement"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    program_code: Mapped[str] = mapped_column(String, ForeignKey("programs.code"), index=True)
    course_code: Mapped[str] = mapped_column(String, ForeignKey("courses.code"), index=True)
    group: Mapped[Optional[str]] = mapped_column("group_tag", String, nullable=True)


class CourseMap(Base):
    __tablename__ = "course_maps"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_course_map_user_name"),)
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True)
    program_code: Mapped[str] = mapped_column(String, ForeignKey("programs.code"))
    name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    program: Mapped[Program] = relationship(lazy="joined")


class Semester(Base):
    __tablename__ = "semesters"
    __table_args__ = (
        UniqueConstraint("course_map_id", "semester_order", name="uq_semester_order"),
        UniqueConstraint("course_map_id", "season", "year", name="uq_semester_term"),
    )
    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    course_map_id: Mapped[str] = mapped_column(String, ForeignKey("course_maps.id"), index=True)
    season: Mapped[str] = mapped_column(String)
    year: Mapped[int] = mapped_column(Integer)
    order: Mapped[int] = mapped_column("semester_order", Integer)


class Containment(Base):
    __tablename__ = "containments"
    __table_args__ = (
        UniqueConstraint("course_map_id", "course_code", name="uq_containment"),
        CheckConstraint("outdegree >= 0", name="ck_containment_outdegree"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_map_id: Mapped[str] = mapped_column(String, ForeignKey("course_maps.id"), index=True)
    course_code: Mapped[str] = mapped_column(String, ForeignKey("courses.code"))
    taken: Mapped[bool] = mapped_column(Boolean, default=False)
    outdegree: Mapped[int] = mapped_column(Integer, default=0)
    last_prereq_semester_order: Mapped[int] = mapped_column(Integer, default=-1)
    group: Mapped[Optional[str]] = mapped_column("group_tag", String, nullable=True)


class MapPrerequisite(Base):
    """Prerequisite edge copied into a course map when it is created."""

    __tablename__ = "map_prerequisites"
    __table_args__ = (UniqueConstraint("course_map_id", "course_code", "prerequisite_code", name="uq_map_prerequisite"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_map_id: Mapped[str] = mapped_column(String, ForeignKey("course_maps.id"), index=True)
    course_code: Mapped[str] = mapped_column(String)
    prerequisite_code: Mapped[str] = mapped_column(String, index=True)


class SemesterCourse(Base):
    __tablename__ = "semester_courses"
    __table_args__ = (UniqueConstraint("course_map_id", "course_code", name="uq_semester_course_taken_once"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    semester_id: Mapped[str] = mapped_column(String, ForeignKey("semesters.id"), index=True)
    course_map_id: Mapped[str] = mapped_column(String, ForeignKey("course_maps.id"), index=True)
    course_code: Mapped[str] = mapped_column(String, ForeignKey("courses.code"))
