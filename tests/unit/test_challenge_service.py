"""
Unit tests for ChallengeService
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from mfa_service.core.database import Base
from mfa_service.models import MfaChallenge, Profile
from mfa_service.services.challenge_service import ChallengeService


@pytest.fixture
def challenges(db_session, clock):
    return ChallengeService(db_session, now=clock, ttl_seconds=300)


@pytest.fixture
def challenge_id(challenges, db_session, make_profile):
    make_profile(user_id="user-1")
    challenge_id = challenges.create("user-1")
    db_session.commit()
    return challenge_id


def count_challenges(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(MfaChallenge)).scalar_one()


class TestChallengeLifecycle:

    def test_created_challenge_is_pending(self, challenges, challenge_id):
        assert len(challenge_id) == 32
        assert challenges.is_pending(challenge_id, "user-1")

    def test_verify_once(self, challenges, challenge_id, db_session):
        assert challenges.verify(challenge_id, user_id="user-1") is True
        db_session.commit()

        assert challenges.verify(challenge_id, user_id="user-1") is False
        assert not challenges.is_pending(challenge_id, "user-1")

    def test_verify_wrong_owner(self, challenges, challenge_id, make_profile):
        make_profile(user_id="user-2", email="other@example.com")

        assert not challenges.is_pending(challenge_id, "user-2")
        assert challenges.verify(challenge_id, user_id="user-2") is False

    def test_expired_challenge_rejected(self, challenges, challenge_id, clock):
        clock.advance(seconds=301)

        assert not challenges.is_pending(challenge_id, "user-1")
        assert challenges.verify(challenge_id) is False

    def test_unknown_challenge_rejected(self, challenges, challenge_id):
        assert challenges.verify("0" * 32) is False


class TestSweep:

    def test_sweep_removes_only_expired_unverified(self, challenges, challenge_id, db_session, clock):
        verified_id = challenges.create("user-1")
        db_session.commit()
        challenges.verify(verified_id)
        db_session.commit()

        clock.advance(minutes=10)
        fresh_id = challenges.create("user-1")
        db_session.commit()

        assert challenges.sweep_expired() == 1
        assert count_challenges(db_session) == 2
        assert challenges.is_pending(fresh_id, "user-1")

    def test_sweep_with_nothing_expired(self, challenges, challenge_id, db_session):
        assert challenges.sweep_expired() == 0
        assert count_challenges(db_session) == 1

    def test_delete_for_user_keeps_verified(self, challenges, challenge_id, db_session):
        verified_id = challenges.create("user-1")
        db_session.commit()
        challenges.verify(verified_id)
        challenges.create("user-1")
        db_session.commit()

        assert challenges.delete_for_user("user-1") == 2
        db_session.commit()
        assert count_challenges(db_session) == 1


class TestConcurrentVerify:

    def test_replayed_challenge_verifies_once(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'challenge-race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine)

        with factory() as db:
            db.add(Profile(user_id="user-1", email="collector@example.com"))
            challenge_id = ChallengeService(db).create("user-1")
            db.commit()

        def submit(_):
            with factory() as db:
                verified = ChallengeService(db).verify(challenge_id, user_id="user-1")
                db.commit()
                return verified

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(submit, range(8)))

        engine.dispose()
        assert results.count(True) == 1
