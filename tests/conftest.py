"""Shared fixtures: a fresh SQLite database per test plus small factories."""

import os
import tempfile

# Point the module-level engine at a scratch file before anything imports config.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'academy_admission_test.db')}",
)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app import app
from core.database import build_engine, get_db, init_db
from schemas.enums import ClassVisibility, UserRole
from utils.admission_controller import AdmissionController
from utils.batch_manager import BatchManager
from utils.class_manager import ClassManager
from utils.join_request_manager import JoinRequestManager
from utils.user_manager import UserManager


@pytest.fixture(scope="function")
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """TestClient whose requests each get their own session on the test database."""

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
def make_user(db):
    counter = {"n": 0}

    def _make(first_name=None, last_name=None, role=UserRole.STUDENT):
        counter["n"] += 1
        first_name = first_name or f"Student{counter['n']}"
        return UserManager(db).create_user(
            email=f"{first_name.lower()}{counter['n']}@example.com",
            role=role,
            first_name=first_name,
            last_name=last_name or "Test",
        )

    return _make


@pytest.fixture
def make_batch(db):
    def _make(batch_name="Spring Intake", max_students=None):
        return BatchManager(db).create_batch(
            batch_name=batch_name,
            academic_year="2026-2027",
            has_student_limit=max_students is not None,
            max_students=max_students,
            created_by="admin-1",
        )

    return _make


@pytest.fixture
def make_class(db):
    def _make(max_students=None, visibility=ClassVisibility.REQUEST_TO_JOIN, name="Chess 101"):
        return ClassManager(db).create_class(
            class_name=name,
            teacher_id="teacher-1",
            visibility=visibility,
            max_students=max_students,
        )

    return _make


@pytest.fixture
def join_requests(db):
    # Cooldown off so one student can file several requests in a test.
    return JoinRequestManager(db, cooldown_minutes=0)


@pytest.fixture
def admission(db):
    return AdmissionController(db)


@pytest.fixture
def make_request(join_requests, make_user):
    """File a pending request for a new (or given) student."""

    def _make(class_model, student=None, message=None):
        student = student or make_user()
        return join_requests.create_request(student.user_id, class_model.class_id, message)

    return _make
