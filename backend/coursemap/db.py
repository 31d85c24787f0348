from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, future=True, **kwargs)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# course map id -> [lock, number of holders and waiters]
_map_locks: dict[str, list] = {}
_map_locks_guard = threading.Lock()


@contextmanager
def course_map_lock(course_map_id: str) -> Iterator[None]:
    """Serialize plan edits on one course map within this process.

    An entry lives only while some thread holds or waits on it.
    """
    with _map_locks_guard:
        entry = _map_locks.get(course_map_id)
        if entry is None:
            entry = _map_locks[course_map_id] = [threading.Lock(), 0]
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _map_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _map_locks[course_map_id]


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


@contextmanager
def course_map_transaction(db: Session, course_map_id: str) -> Iterator[Session]:
    # Anything read before the lock was taken may be stale.
    if db.in_transaction():
        db.rollback()
    with course_map_lock(course_map_id):
        with transaction(db):
            yield db
