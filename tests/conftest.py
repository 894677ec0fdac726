import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["ORACLE_API_KEY"] = ""
os.environ["ORACLE_API_SECRET"] = ""
os.environ["ORACLE_CALL_DELAY_SECONDS"] = "0"
os.environ["MATCH_THRESHOLD"] = "70"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from checkpoint_server.api.deps import oracle_dependency
from checkpoint_server.core.security import create_access_token
from checkpoint_server.db.base import Base
from checkpoint_server.db.models import Student
from checkpoint_server.db.session import get_db
from checkpoint_server.main import app
from checkpoint_server.services.oracle import OracleResult


class FakeOracle:
    """Scripted comparison oracle keyed by the target photo bytes."""

    def __init__(self, results=None, default=None):
        self.results = dict(results or {})
        self.default = default or OracleResult(confidence=0.0)
        self.calls = []

    def compare(self, probe, target):
        self.calls.append((probe, target))
        return self.results.get(target, self.default)

    @property
    def targets(self):
        return [target for _, target in self.calls]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def client(session_factory, oracle):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[oracle_dependency] = lambda: oracle
    # Used without a context manager so the lifespan oracle check does not run.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_student(db):
    def _add(student_id, fullname=None, photo=None, **flags):
        student = Student(
            student_id=student_id,
            fullname=fullname or f"Student {student_id}",
            photo_data=photo,
            **flags,
        )
        db.add(student)
        db.commit()
        db.refresh(student)
        return student

    return _add


@pytest.fixture
def auth_headers():
    def _headers(section="mess", subject="operator-1"):
        token = create_access_token(subject=subject, role="staff", section=section)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def probe_file():
    return {"image": ("probe.jpg", b"probe-bytes", "image/jpeg")}
