"""
Challenge Service - short-lived, single-use enrollment challenges

State machine: Created -> Verified, Created -> Expired (TTL), Created -> Swept.
Verification is a single conditional UPDATE, so concurrent replays of the
same challenge id yield exactly one success.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from mfa_service import metrics
from mfa_service.core.config import settings
from mfa_service.models import MfaChallenge
from mfa_service.utils.security import generate_random_token, utcnow

logger = logging.getLogger(__name__)

CHALLENGE_ID_BYTES = 16


class ChallengeService:
    """Service for MFA challenge lifecycle"""

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = utcnow,
        ttl_seconds: Optional[int] = None,
    ):
        self.db = db
        self.now = now
        self.ttl = timedelta(seconds=ttl_seconds or settings.MFA_CHALLENGE_TTL_SECONDS)

    def create(self, user_id: str) -> str:
        """
        Create a challenge for a user within the current transaction

        Args:
            user_id: Challenge owner

        Returns:
            Unguessable challenge id (32 hex characters)
        """
        created_at = self.now()
        challenge_id = generate_random_token(CHALLENGE_ID_BYTES)
        self.db.add(MfaChallenge(
            user_id=user_id,
            challenge_id=challenge_id,
            verified=False,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        ))
        return challenge_id

    def is_pending(self, challenge_id: str, user_id: str) -> bool:
        """Read-only check: exists, owned by user, unverified and unexpired"""
        row = self.db.execute(
            select(MfaChallenge.mfa_challenge_id).where(
                MfaChallenge.challenge_id == challenge_id,
                MfaChallenge.user_id == user_id,
                MfaChallenge.verified.is_(False),
                MfaChallenge.expires_at > self.now(),
            )
        ).first()
        return row is not None

    def verify(self, challenge_id: str, user_id: Optional[str] = None) -> bool:
        """
        Mark a pending challenge verified

        Does not commit; the caller commits together with the state the
        challenge unlocks.

        Args:
            challenge_id: Challenge id returned from create()
            user_id: If given, the challenge must belong to this user

        Returns:
            True if this call won the transition to Verified
        """
        now = self.now()
        stmt = (
            update(MfaChallenge)
            .where(
                MfaChallenge.challenge_id == challenge_id,
                MfaChallenge.verified.is_(False),
                MfaChallenge.expires_at > now,
            )
            .values(verified=True, verified_at=now)
            .execution_options(synchronize_session=False)
        )
        if user_id is not None:
            stmt = stmt.where(MfaChallenge.user_id == user_id)

        result = self.db.execute(stmt)
        return result.rowcount == 1

    def delete_for_user(self, user_id: str) -> int:
        """Drop a user's unverified challenges within the current transaction"""
        result = self.db.execute(
            delete(MfaChallenge)
            .where(MfaChallenge.user_id == user_id, MfaChallenge.verified.is_(False))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def sweep_expired(self) -> int:
        """
        Delete expired, unverified challenges

        Storage hygiene only; verify() already rejects expired challenges.

        Returns:
            Number of rows removed
        """
        result = self.db.execute(
            delete(MfaChallenge)
            .where(MfaChallenge.verified.is_(False), MfaChallenge.expires_at < self.now())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        metrics.mfa_challenges_swept_total.inc(result.rowcount)
        if result.rowcount:
            logger.info(f"Swept {result.rowcount} expired MFA challenges")
        return result.rowcount
