"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so the test environment goes in first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["LLM_PROVIDER"] = "mock"
os.environ["LLM_MAX_RETRIES"] = "1"

from collections.abc import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import kidquiz.models  # noqa: E402, F401
from kidquiz.db.base import Base  # noqa: E402
from kidquiz.db.engine import engine  # noqa: E402
from kidquiz.db.session import SessionLocal, get_db  # noqa: E402
from kidquiz.main import app  # noqa: E402
from kidquiz.models.user import User  # noqa: E402
from kidquiz.services.assistant import Assistant, get_assistant  # noqa: E402
from tests.helpers.llm import ScriptedLLMClient  # noqa: E402
from tests.helpers.seed import (  # noqa: E402
    auth_headers,
    create_test_admin,
    create_test_student,
    create_test_teacher,
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; application code is free to commit."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def llm() -> ScriptedLLMClient:
    """Scripted LLM client; queue replies per delegate task."""
    return ScriptedLLMClient()


@pytest.fixture
def assistant(llm) -> Assistant:
    return Assistant(llm, timeout=2.0, max_retries=1)


@pytest.fixture
def client(db, assistant) -> Generator[TestClient, None, None]:
    """FastAPI test client sharing the test session and scripted assistant."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_assistant] = lambda: assistant
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db) -> User:
    return create_test_admin(db, full_name="Ada Admin")


@pytest.fixture
def teacher_user(db) -> User:
    return create_test_teacher(db, full_name="Tess Teacher")


@pytest.fixture
def student_user(db) -> User:
    return create_test_student(db, full_name="Sam Student")


@pytest.fixture
def auth_headers_admin(admin_user) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def auth_headers_teacher(teacher_user) -> dict[str, str]:
    return auth_headers(teacher_user)


@pytest.fixture
def auth_headers_student(student_user) -> dict[str, str]:
    return auth_headers(student_user)
