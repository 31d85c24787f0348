from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import catalog, resolver
from .auth import authenticate, current_user, issue_token, register_user
from .config import configure_logging
from .db import Base, engine, get_db
from .errors import CourseMapError
from .models import User
from .schemas import (
    ErrorOut,
    ContainmentOut,
    CourseMapDetailOut,
    CourseMapIn,
    CourseMapOut,
    CourseOut,
    LoginIn,
    PlaceCoursesIn,
    PlacementOut,
    ProgramOut,
    RegisterIn,
    RemovalOut,
    RequirementOut,
    SemesterIn,
    SemesterOut,
    SessionOut,
)
from .validation import normalize_program_code

logger = logging.getLogger(__name__)

app = FastAPI(title="Course Map Planner", version="0.1.0")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


@app.on_event("startup")
def startup():
    configure_logging()
    Base.metadata.create_all(engine)


@app.exception_handler(CourseMapError)
async def course_map_error_handler(request: Request, exc: CourseMapError):
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorOut(code=exc.status_code, message=exc.message, details=exc.details).model_dump(),
    )


def placement_out(result: resolver.PlacementResult) -> PlacementOut:
    return PlacementOut(
        semester=SemesterOut.model_validate(result.semester),
        courses=[CourseOut.model_validate(c) for c in result.courses],
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/auth/register", response_model=SessionOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = register_user(db, payload.email, payload.password, payload.name)
    return SessionOut(session_token=issue_token(user), user_id=user.id, name=user.name)


@app.post("/auth/login", response_model=SessionOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    return SessionOut(session_token=issue_token(user), user_id=user.id, name=user.name)


@app.get("/programs", response_model=list[ProgramOut])
def list_programs(db: Session = Depends(get_db), _: User = Depends(current_user)):
    return [ProgramOut.model_validate(p) for p in catalog.list_programs(db)]


@app.get("/programs/{program_code}/courses", response_model=list[RequirementOut])
def list_program_courses(program_code: str, db: Session = Depends(get_db), _: User = Depends(current_user)):
    program = catalog.get_program(db, normalize_program_code(program_code))
    return [
        RequirementOut(**CourseOut.model_validate(course).model_dump(), group=group)
        for course, group in catalog.get_program_requirements(db, program.code)
    ]


@app.post("/course-maps", response_model=CourseMapOut, status_code=201)
def create_course_map(payload: CourseMapIn, db: Session = Depends(get_db), user: User = Depends(current_user)):
    course_map = resolver.create_course_map(db, user, payload.name, payload.program_code, payload.starting_year)
    return CourseMapOut.model_validate(course_map)


@app.get("/course-maps", response_model=list[CourseMapOut])
def list_course_maps(db: Session = Depends(get_db), user: User = Depends(current_user)):
    return [CourseMapOut.model_validate(cm) for cm in resolver.list_course_maps(db, user)]


@app.get("/course-maps/{course_map_id}", response_model=CourseMapDetailOut)
def get_course_map(course_map_id: str, db: Session = Depends(get_db), user: User = Depends(current_user)):
    course_map = resolver.get_course_map(db, user, course_map_id)
    return CourseMapDetailOut(
        **CourseMapOut.model_validate(course_map).model_dump(),
        semesters=[SemesterOut.model_validate(s) for s in resolver.list_semesters(db, user, course_map_id)],
        courses=[ContainmentOut.model_validate(r) for r in resolver.containment_records(db, user, course_map_id)],
    )


@app.post("/course-maps/{course_map_id}/semesters", response_model=SemesterOut, status_code=201)
def add_semester(course_map_id: str, payload: SemesterIn, db: Session = Depends(get_db), user: User = Depends(current_user)):
    return SemesterOut.model_validate(resolver.add_semester(db, user, course_map_id, payload.season, payload.year))


@app.get("/course-maps/{course_map_id}/semesters", response_model=list[SemesterOut])
def list_semesters(course_map_id: str, db: Session = Depends(get_db), user: User = Depends(current_user)):
    return [SemesterOut.model_validate(s) for s in resolver.list_semesters(db, user, course_map_id)]


@app.get("/course-maps/{course_map_id}/semesters/{semester_id}/courses", response_model=list[CourseOut])
def list_semester_courses(course_map_id: str, semester_id: str, db: Session = Depends(get_db), user: User = Depends(current_user)):
    return [CourseOut.model_validate(c) for c in resolver.semester_courses(db, user, course_map_id, semester_id)]


@app.get("/course-maps/{course_map_id}/semesters/{semester_id}/available-courses", response_model=list[CourseOut])
def list_available_courses(
    course_map_id: str,
    semester_id: str,
    raw: bool = Query(False, description="Only apply the prerequisite ordering test."),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if raw:
        courses = resolver.eligible_courses(db, user, course_map_id, semester_id)
    else:
        courses = resolver.available_courses(db, user, course_map_id, semester_id)
    return [CourseOut.model_validate(c) for c in courses]


@app.post("/course-maps/{course_map_id}/semesters/{semester_id}/courses/{course_code}", response_model=PlacementOut)
def place_course(course_map_id: str, semester_id: str, course_code: str, db: Session = Depends(get_db), user: User = Depends(current_user)):
    return placement_out(resolver.place_course(db, user, course_map_id, semester_id, course_code))


@app.post("/course-maps/{course_map_id}/semesters/{semester_id}/courses", response_model=PlacementOut)
def place_courses(
    course_map_id: str,
    semester_id: str,
    payload: PlaceCoursesIn,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return placement_out(resolver.place_courses(db, user, course_map_id, semester_id, payload.course_codes))


@app.delete("/course-maps/{course_map_id}/semesters/{semester_id}/courses/{course_code}", response_model=RemovalOut)
def remove_course(course_map_id: str, semester_id: str, course_code: str, db: Session = Depends(get_db), user: User = Depends(current_user)):
    result = resolver.remove_course(db, user, course_map_id, semester_id, course_code)
    return RemovalOut(
        course_map=CourseMapOut.model_validate(result.course_map),
        semester=SemesterOut.model_validate(result.semester),
    )
