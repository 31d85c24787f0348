"""Pydantic request and response models for the HTTP layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RegisterIn(BaseModel):
    email: str
    password: str
    name: str


class LoginIn(BaseModel):
    email: str
    password: str


class SessionOut(BaseModel):
    session_token: str
    user_id: str
    name: str


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    code: str
    name: str
    credits: int
    prerequisite_hours: int


class ProgramOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    code: str
    name: str


class RequirementOut(CourseOut):
    group: Optional[str] = None


class CourseMapIn(BaseModel):
    name: str
    program_code: str
    starting_year: Optional[Union[int, str]] = Field(
        default=None,
        description="When set, semesters are generated for each academic year starting in this fall.",
    )


class CourseMapOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    program_code: str
    created_at: datetime
    program: Optional[ProgramOut] = None


class SemesterIn(BaseModel):
    season: str
    year: Union[int, str]


class SemesterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    course_map_id: str
    season: str
    year: int
    order: int


class ContainmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    course_code: str
    taken: bool
    outdegree: int
    last_prereq_semester_order: int
    group: Optional[str] = None


class CourseMapDetailOut(CourseMapOut):
    semesters: List[SemesterOut] = Field(default_factory=list)
    courses: List[ContainmentOut] = Field(default_factory=list)


class PlaceCoursesIn(BaseModel):
    course_codes: List[str] = Field(min_length=1)


class PlacementOut(BaseModel):
    semester: SemesterOut
    courses: List[CourseOut]


class RemovalOut(BaseModel):
    course_map: CourseMapOut
    semester: SemesterOut


class ErrorOut(BaseModel):
    status: str = "error"
    code: int
    message: str
    details: Any = None
