import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

CURRENT_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.dirname(CURRENT_DIR)
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

# keep the real engine away from ./attendance.db during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/99")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from school_attendance.application.use_cases.registry import build_profile
from school_attendance.domain.entities import Role
from school_attendance.infrastructure.db import get_db
from school_attendance.infrastructure.models import Base
from school_attendance.infrastructure.repositories import (
    ClassRepository,
    EnrollmentRepository,
    UserRepository,
)
from school_attendance.infrastructure.security import PasswordHasher, create_access_token
from school_attendance.interfaces.http.deps import get_clock
from school_attendance.interfaces.http.limits import limiter
from school_attendance.interfaces.http.routers import classes as classes_router
from school_attendance.interfaces.http.routers import schedule as schedule_router
from school_attendance.main import app

# one shared in-memory database for the app and the fixtures
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PASSWORD = "secret123"
# hashed once; bcrypt is slow
PASSWORD_HASH = PasswordHasher().hash(PASSWORD)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
limiter.enabled = False


class FakeClock:
    """Settable clock; ``advance`` moves it forward by minutes."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, **kwargs)
        return self.now


class MemoryCache:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=None):
        self.store[key] = value
        return True

    def delete(self, key):
        self.store.pop(key, None)
        return True


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    fake = FakeClock()
    app.dependency_overrides[get_clock] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_clock, None)


@pytest.fixture(autouse=True)
def cache(monkeypatch):
    """Schedule and class routes talk to this dict instead of redis."""
    mem = MemoryCache()
    monkeypatch.setattr(schedule_router, "get_cache", mem.get)
    monkeypatch.setattr(schedule_router, "set_cache", mem.set)
    monkeypatch.setattr(schedule_router, "delete_cache", mem.delete)
    monkeypatch.setattr(classes_router, "delete_cache", mem.delete)
    return mem


@pytest.fixture
def rate_limits():
    """Switches the limiter on with empty counters for one test."""
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: Role = Role.STUDENT, name: str | None = None, email: str | None = None, **fields):
        counter["n"] += 1
        n = counter["n"]
        name = name or f"{role.value.title()} {n}"
        email = email or f"{role.value.lower()}{n}@school.com"
        return UserRepository(db_session).create(name, email, PASSWORD_HASH, build_profile(role, fields))

    return _make


@pytest.fixture
def make_class(db_session):
    def _make(teacher, name: str = "Mathematics 10A", schedule: str = '{"monday": "9:00 AM - 10:00 AM"}'):
        return ClassRepository(db_session).create({
            "name": name,
            "subject": name.split()[0],
            "grade": "10",
            "section": "A",
            "teacher_id": teacher.teacher.id,
            "schedule": schedule,
        })

    return _make


@pytest.fixture
def enroll(db_session):
    def _enroll(student, klass):
        return EnrollmentRepository(db_session).add(student.student.id, klass.id)

    return _enroll


def auth_header(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}
