"""
Configuration partagée pour tous les tests.

- client / anon_client : API avec la BDD mockée (aucune connexion à PostgreSQL)
- db_session : base SQLite en mémoire avec le schéma complet, pour les tests
  qui exercent réellement les contraintes (UNIQUE, compare-and-swap)
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

import woti_attendance.models  # noqa: F401
from woti_attendance.config import settings
from woti_attendance.database import Base, get_db
from woti_attendance.main import app
from woti_attendance.models.organization import Council, Facility, Region
from woti_attendance.models.user import User
from woti_attendance.rate_limit import sync_rate_limiter
from woti_attendance.security import get_current_user_id


@pytest.fixture(autouse=True)
def no_scheduler(monkeypatch):
    """Le planificateur ne démarre jamais pendant les tests."""
    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    sync_rate_limiter.reset()
    yield
    sync_rate_limiter.reset()


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def client(user_id):
    """Client HTTP de test avec la BDD mockée et un utilisateur authentifié."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client():
    """Client HTTP sans override d'authentification (jeton vérifié réellement)."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# --- Base SQLite ---

@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def db_client(db_session, staff_user):
    """Client HTTP branché sur la base SQLite, authentifié en tant que staff_user."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_user_id] = lambda: staff_user.id
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _make_facility(db, status="active", code="FAC-001"):
    region = Region(name="Région Centre", code=f"REG-{code}")
    db.add(region)
    db.flush()
    council = Council(region_id=region.id, name="Conseil de district", code=f"CNL-{code}")
    db.add(council)
    db.flush()
    facility = Facility(
        council_id=council.id,
        name="Centre de santé",
        code=code,
        latitude=-6.8,
        longitude=39.28,
        status=status,
    )
    db.add(facility)
    db.commit()
    return facility


@pytest.fixture
def facility(db_session):
    return _make_facility(db_session)


@pytest.fixture
def inactive_facility(db_session):
    return _make_facility(db_session, status="inactive", code="FAC-002")


def _make_user(db, facility, email):
    user = User(
        facility_id=facility.id,
        email=email,
        password_hash="x",
        first_name="Amina",
        last_name="Said",
        role="data_clerk",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def staff_user(db_session, facility):
    return _make_user(db_session, facility, "amina@example.org")


@pytest.fixture
def other_user(db_session, facility):
    return _make_user(db_session, facility, "baraka@example.org")
