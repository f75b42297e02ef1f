"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown
- Document storage in a temporary directory
- FastAPI test client
- Sample candidate data
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nexus_ats.core.database import Base, get_db
from nexus_ats.core.deps import get_storage_backend
from nexus_ats.core.storage import LocalStorage
from nexus_ats.models import candidate  # noqa: F401  registers the tables
from nexus_ats.services.candidate_service import CandidateService
from main import app


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    """Local document storage rooted in a per-test directory"""
    return LocalStorage(str(tmp_path / "documents"))


@pytest.fixture
def client(db_session, storage):
    """
    FastAPI test client with overridden database and storage dependencies.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_backend] = lambda: storage

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def sample_candidate_data():
    """Sample candidate payload (nested form)"""
    return {
        "personal_info": {
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "  Ada.Lovelace@Example.COM ",
            "phone": "(555) 123-4567",
            "location": "London, UK",
        },
        "professional_info": {
            "current_role": "Python Developer",
            "experience": "5 years",
            "skills": ["Python", " FastAPI ", "PostgreSQL"],
            "applied_for_role": "Senior Backend Engineer",
            "source": "referral",
        },
    }


@pytest.fixture
def make_candidate(db_session):
    """
    Factory creating candidates through the service.

    Usage: make_candidate("Grace", "Hopper", skills=["COBOL"], location="Arlington")
    """
    service = CandidateService(db_session)

    def _make(first_name="Test", last_name="Candidate", email=None, user_id=None, **fields):
        data = {
            "first_name": first_name,
            "last_name": last_name,
            "email": email or f"{first_name}.{last_name}@example.com".lower(),
            **fields,
        }
        return service.create_candidate(data, user_id)

    return _make
