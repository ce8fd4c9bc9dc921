"""
Unit tests for the background challenge sweeper
"""

import asyncio
from datetime import timedelta

from sqlalchemy import func, select

from mfa_service.background.challenge_sweeper import ChallengeSweeper
from mfa_service.models import MfaChallenge
from mfa_service.utils.security import utcnow


def add_challenge(db_session, challenge_id, expires_in):
    created_at = utcnow() - timedelta(hours=1)
    db_session.add(MfaChallenge(
        user_id="user-1",
        challenge_id=challenge_id,
        created_at=created_at,
        expires_at=utcnow() + expires_in,
    ))
    db_session.commit()


def test_sweep_once_uses_its_own_session(session_factory, db_session, make_profile):
    make_profile()
    add_challenge(db_session, "a" * 32, timedelta(minutes=-5))
    add_challenge(db_session, "b" * 32, timedelta(minutes=5))

    sweeper = ChallengeSweeper(session_factory, interval_seconds=3600)

    assert sweeper.sweep_once() == 1
    remaining = db_session.execute(select(func.count()).select_from(MfaChallenge)).scalar_one()
    assert remaining == 1


def test_start_and_stop(session_factory, db_session, make_profile):
    make_profile()
    add_challenge(db_session, "c" * 32, timedelta(minutes=-5))

    sweeper = ChallengeSweeper(session_factory, interval_seconds=3600)
    cycles = []
    sweep_once = sweeper.sweep_once
    sweeper.sweep_once = lambda: cycles.append(sweep_once()) or cycles[-1]

    async def run():
        await sweeper.start()
        # Let the first cycle run
        for _ in range(100):
            await asyncio.sleep(0.01)
            if cycles:
                break
        await sweeper.stop()

    asyncio.run(run())

    assert cycles == [1]
    assert sweeper.running is False
    assert sweeper.task.done()
    assert db_session.execute(select(func.count()).select_from(MfaChallenge)).scalar_one() == 0
