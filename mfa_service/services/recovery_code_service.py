"""
Recovery Code Service - single-use backup codes for MFA

Codes are shown in plaintext exactly once and stored only as SHA-256 hashes.
Consumption is a single conditional UPDATE so concurrent replays of the same
code can succeed at most once.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from mfa_service.core.config import settings
from mfa_service.models import RecoveryCode
from mfa_service.utils.security import generate_recovery_codes, hash_recovery_code, utcnow

logger = logging.getLogger(__name__)


class RecoveryCodeService:
    """Service for recovery code operations"""

    def __init__(self, db: Session, now: Callable[[], datetime] = utcnow):
        self.db = db
        self.now = now

    def generate(self, count: Optional[int] = None) -> List[str]:
        """Generate a batch of plaintext codes (not persisted)"""
        return generate_recovery_codes(count=count or settings.MFA_RECOVERY_CODES_COUNT)

    @staticmethod
    def hash_code(code: str) -> str:
        return hash_recovery_code(code)

    def store(self, user_id: str, codes: List[str]) -> None:
        """
        Add hashed codes for a user to the current transaction

        The caller owns the commit so the batch lands atomically with the
        surrounding state change.
        """
        created_at = self.now()
        self.db.add_all([
            RecoveryCode(user_id=user_id, code_hash=self.hash_code(code), used=False, created_at=created_at)
            for code in codes
        ])

    def consume(self, user_id: str, code: str) -> bool:
        """
        Mark a matching unused code as used

        Args:
            user_id: Code owner
            code: Submitted plaintext recovery code

        Returns:
            True if this call flipped an unused code to used, False otherwise
        """
        if not code or not code.strip():
            return False

        result = self.db.execute(
            update(RecoveryCode)
            .where(
                RecoveryCode.user_id == user_id,
                RecoveryCode.code_hash == self.hash_code(code),
                RecoveryCode.used.is_(False),
            )
            .values(used=True, used_at=self.now())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def delete_all(self, user_id: str) -> int:
        """Delete every code for a user within the current transaction"""
        result = self.db.execute(
            delete(RecoveryCode)
            .where(RecoveryCode.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def regenerate(self, user_id: str, count: Optional[int] = None) -> List[str]:
        """
        Replace all of a user's codes with a fresh batch

        Old codes are deleted in the same transaction the new ones are inserted.

        Returns:
            New plaintext codes
        """
        removed = self.delete_all(user_id)
        codes = self.generate(count)
        self.store(user_id, codes)
        self.db.commit()
        logger.info(f"Regenerated recovery codes for user {user_id} ({removed} previous codes invalidated)")
        return codes

    def count_remaining(self, user_id: str) -> int:
        """Number of unused codes for a user"""
        return self.db.execute(
            select(func.count())
            .select_from(RecoveryCode)
            .where(RecoveryCode.user_id == user_id, RecoveryCode.used.is_(False))
        ).scalar_one()
