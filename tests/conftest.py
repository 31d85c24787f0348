import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursemap.catalog import load_catalog
from coursemap.db import Base, get_db
from coursemap.main import app
from coursemap.models import User

CATALOG = {
    "courses": [
        {"code": "CMPN201", "name": "Programming Techniques", "credits": 3},
        {"code": "CMPN211", "name": "Data Structures", "credits": 3, "prerequisites": ["CMPN201"]},
        {"code": "PHYN101", "name": "Physics 1", "credits": 3},
        {"code": "CMPN221", "name": "Logic Design", "credits": 3, "prerequisites": ["CMPN201", "PHYN101"]},
        {"code": "MTHN101", "name": "Calculus 1", "credits": 3},
        {"code": "MTHN102", "name": "Calculus 2", "credits": 3, "prerequisites": ["MTHN101"]},
        {"code": "CMPN301", "name": "Algorithms", "credits": 3, "prerequisites": ["CMPN211", "MTHN102"]},
        {"code": "CMPN401", "name": "Graduation Project", "credits": 3, "prerequisite_hours": 6},
        {"code": "GENN001", "name": "Technical Writing", "credits": 4},
        {"code": "GENN002", "name": "Engineering Economy", "credits": 4},
        {"code": "GENN003", "name": "Ethics", "credits": 4},
        {"code": "GENN004", "name": "History of Engineering", "credits": 4},
        {"code": "GENN005", "name": "Management", "credits": 4},
    ],
    "programs": [
        {
            "code": "CCE",
            "name": "Communication and Computer Engineering",
            "courses": [
                {"code": "CMPN201", "group": "core"},
                {"code": "CMPN211", "group": "core"},
                {"code": "CMPN221", "group": "core"},
                {"code": "MTHN101", "group": "math"},
                {"code": "MTHN102", "group": "math"},
                {"code": "CMPN301", "group": "core"},
                {"code": "CMPN401", "group": "project"},
                {"code": "GENN001", "group": "elective-group-3"},
                {"code": "GENN002", "group": "elective-group-3"},
                {"code": "GENN003", "group": "elective-group-3"},
                {"code": "GENN004", "group": "elective-group-3"},
                "GENN005",
            ],
        },
        {"code": "EEC", "name": "Electronics and Electrical Communications", "courses": ["PHYN101", "MTHN101"]},
    ],
}


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()
    load_catalog(session, CATALOG)
    session.commit()
    session.close()
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, email):
    user = User(email=email, name=email.split("@")[0], password_hash="unused")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user(db):
    return make_user(db, "student@example.com")


@pytest.fixture
def other_user(db):
    return make_user(db, "other@example.com")


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def catalog_payload():
    return CATALOG
