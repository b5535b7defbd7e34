"""
Shared fixtures: an in-memory database, a seeding helper and an API client.
"""
import os
import tempfile

os.environ.setdefault("EXAM_SEATING_DATABASE_URL", "sqlite://")
os.environ.setdefault("EXAM_SEATING_EXPORT_DIR", tempfile.mkdtemp(prefix="exam_seating_exports_"))

from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exam_seating.database import Base
from exam_seating.db_models import (
    ClassroomDB,
    DepartmentDB,
    ExamSeriesDB,
    ScheduledExamDB,
    StudentDB,
    SubjectDB,
)
from exam_seating.models import SessionKey

SESSION = SessionKey(1, date(2025, 3, 10), time(9, 30))


class Seeder:
    """Writes reference rows and commits after each call."""

    def __init__(self, db):
        self.db = db

    def _save(self, *objs):
        self.db.add_all(objs)
        self.db.commit()
        return objs

    def department(self, dept_id, code, name=None):
        self._save(DepartmentDB(dept_id=dept_id, dept_code=code, dept_name=name or code))

    def subject(self, subject_id, code, dept_id, semester=3):
        self._save(SubjectDB(subject_id=subject_id, subject_code=code, subject_name=code,
                             semester=semester, dept_id=dept_id))

    def students(self, dept_id, ids, semester=3, batch=2022, status="Active"):
        self._save(*[
            StudentDB(student_id=sid, name=f"Student {sid}", batch=batch,
                      semester=semester, dept_id=dept_id, status=status)
            for sid in ids
        ])

    def room(self, room_id, capacity):
        self._save(ClassroomDB(room_id=room_id, capacity=capacity))

    def series(self, series_id=1, name="Spring Finals"):
        self._save(ExamSeriesDB(series_id=series_id, series_name=name))

    def exams(self, subject_ids, session=SESSION):
        exams = [
            ScheduledExamDB(series_id=session.series_id, subject_id=subject_id,
                            exam_date=session.exam_date, start_time=session.start_time)
            for subject_id in subject_ids
        ]
        self.db.add_all(exams)
        self.db.flush()
        exam_ids = [e.exam_id for e in exams]
        self.db.commit()
        return exam_ids

    def standard(self, with_room=True):
        """CSE and ECE, five third-semester students each, both subjects in SESSION."""
        self.department(1, "CSE", "Computer Science")
        self.department(2, "ECE", "Electronics")
        self.subject(10, "CS301", 1)
        self.subject(20, "EC301", 2)
        self.students(1, [f"C{i:02d}" for i in range(1, 6)])
        self.students(2, [f"E{i:02d}" for i in range(1, 6)])
        if with_room:
            self.room("R101", 21)
        self.series()
        return self.exams([10, 20])


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from exam_seating.main_api import app, get_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def session_key():
    return SESSION
