"""
Pytest configuration shared by unit and integration tests.

Settings are read at import time, so the environment is prepared before
anything from mfa_service is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MFA_ENCRYPTION_KEY", "test-master-key-for-mfa-tests")
os.environ.setdefault("JWT_VERIFICATION_KEY", "test-jwt-signing-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("FEATURE_CHALLENGE_SWEEPER", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from mfa_service.core.database import Base
from mfa_service.core.permissions import Role
from mfa_service.models import Profile
from mfa_service.services.event_service import EventService
from mfa_service.services.mfa_service import MfaService
from mfa_service.services.totp_service import TotpService
from mfa_service.utils.crypto import SecretCipher

TEST_MASTER_KEY = os.environ["MFA_ENCRYPTION_KEY"]


class FakeClock:
    """Injectable `now` callable that only moves when told to"""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, 0))


@pytest.fixture(scope="session")
def cipher():
    """Key derivation is deliberately slow, so derive once per session."""
    return SecretCipher(master_key=TEST_MASTER_KEY)


@pytest.fixture
def totp():
    return TotpService(issuer="Card Show Finder")


@pytest.fixture
def mock_redis():
    """Mock Redis client"""
    redis = Mock()
    redis.publish = Mock(return_value=1)
    return redis


@pytest.fixture
def event_service(mock_redis):
    return EventService(mock_redis)


@pytest.fixture
def make_profile(db_session):
    """Factory for profile rows"""

    def _make(user_id="user-1", email="collector@example.com", role=Role.USER, **kwargs):
        profile = Profile(user_id=user_id, email=email, role=role, **kwargs)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture
def mfa_service(db_session, cipher, totp, event_service, clock):
    """MfaService wired to the test session, fixed clock and mocked Redis"""
    return MfaService(db_session, cipher, totp=totp, events=event_service, now=clock, render_qr=False)


@pytest.fixture
def current_code(totp, clock):
    """Compute the current TOTP code for a secret at the fake clock's time"""

    def _code(secret: str, **kwargs) -> str:
        return totp.generate_code(secret, for_time=clock(), **kwargs)

    return _code


@pytest.fixture
def active_user(mfa_service, make_profile, current_code):
    """A user who has completed enrollment; returns (user_id, secret, recovery_codes)"""
    make_profile(user_id="active-1", email="active@example.com")
    enrollment = mfa_service.enroll("active-1")
    recovery_codes = mfa_service.verify_setup(
        "active-1",
        current_code(enrollment.secret),
        enrollment.challenge_id,
        ip_address="198.51.100.1",
        user_agent="pytest",
    )
    return "active-1", enrollment.secret, recovery_codes
