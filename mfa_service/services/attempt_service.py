"""
Attempt Service - MFA attempt ledger and failure-window rate limiter

Every verification attempt is appended to mfa_attempts. A caller is rate
limited when failures for the user OR for the IP within the trailing window
reach the threshold, so one abusive IP is blocked across target accounts and
one targeted account is protected against rotating IPs.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from mfa_service import metrics
from mfa_service.core.config import settings
from mfa_service.models import MfaAttempt
from mfa_service.utils.security import mask_ip, utcnow

logger = logging.getLogger(__name__)


class AttemptService:
    """Service for attempt logging and rate limiting"""

    def __init__(
        self,
        db: Session,
        now: Callable[[], datetime] = utcnow,
        max_attempts: Optional[int] = None,
        window_minutes: Optional[int] = None,
    ):
        self.db = db
        self.now = now
        self.max_attempts = max_attempts or settings.MFA_RATE_LIMIT_MAX_ATTEMPTS
        self.window = timedelta(minutes=window_minutes or settings.MFA_RATE_LIMIT_WINDOW_MINUTES)

    def log(self, user_id: str, ip_address: str, user_agent: str, success: bool) -> None:
        """
        Append one attempt record and commit it

        Args:
            user_id: Target user id (may not exist)
            ip_address: Client IP
            user_agent: Client user agent
            success: Whether the attempt verified
        """
        self.db.add(MfaAttempt(
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            successful=success,
            created_at=self.now(),
        ))
        self.db.commit()

        if not success:
            logger.info(f"Failed MFA attempt for user {user_id} from {mask_ip(ip_address or 'unknown')}")

    def count_recent_failures(self, user_id: str, ip_address: str) -> int:
        """Failed attempts for the user or the IP inside the window"""
        since = self.now() - self.window
        return self.db.execute(
            select(func.count())
            .select_from(MfaAttempt)
            .where(
                or_(MfaAttempt.user_id == user_id, MfaAttempt.ip_address == ip_address),
                MfaAttempt.successful.is_(False),
                MfaAttempt.created_at > since,
            )
        ).scalar_one()

    def is_rate_limited(self, user_id: str, ip_address: str) -> bool:
        """
        Check the failure threshold before any cryptographic work

        Returns:
            True if further attempts must be rejected
        """
        limited = self.count_recent_failures(user_id, ip_address) >= self.max_attempts
        if limited:
            metrics.mfa_rate_limited_total.inc()
            logger.warning(f"MFA rate limit hit for user {user_id} from {mask_ip(ip_address or 'unknown')}")
        return limited
