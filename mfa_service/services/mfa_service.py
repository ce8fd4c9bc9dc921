"""
MFA Service - TOTP enrollment, verification, and recovery orchestration

Per-user lifecycle:
    Unenrolled -> Enrolling (enrollment row, challenge, mfa_verified=false)
               -> Active (mfa_enabled and mfa_verified)
               -> Unenrolled (disable)

Every operation validates input, checks the attempt rate limiter before any
cryptographic work, and records failed verifications in the attempt ledger
before raising, so rate limiting accounts for them.
"""

import functools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mfa_service import metrics
from mfa_service.core.config import settings
from mfa_service.core.permissions import Action, has_permission
from mfa_service.exceptions import (
    AlreadyEnrolled,
    CipherError,
    CodeRequired,
    ConfigurationError,
    Forbidden,
    InvalidChallenge,
    InvalidCode,
    InvalidRecoveryCode,
    MfaError,
    NotEnrolled,
    RateLimited,
    TransientError,
    Unauthorized,
    ValidationError,
)
from mfa_service.models import AuthenticatorEnrollment
from mfa_service.services.attempt_service import AttemptService
from mfa_service.services.challenge_service import ChallengeService
from mfa_service.services.event_service import EventService
from mfa_service.services.profile_service import MfaState, ProfileService
from mfa_service.services.recovery_code_service import RecoveryCodeService
from mfa_service.services.totp_service import TotpService
from mfa_service.utils.crypto import SecretCipher
from mfa_service.utils.security import utcnow

logger = logging.getLogger(__name__)


@dataclass
class EnrollmentResult:
    secret: str
    otpauth_uri: str
    challenge_id: str
    algorithm: str
    digits: int
    period: int
    qr_code: Optional[str] = None


@dataclass
class AuthenticationResult:
    success: bool
    session_id: Optional[str] = None


@dataclass
class RecoveryResult:
    success: bool
    recovery_codes_remaining: int
    session_id: Optional[str] = None


@dataclass
class StatusResult:
    mfa_enabled: bool
    mfa_verified: bool
    enrollment_time: Optional[datetime]
    recovery_codes_remaining: int


def mfa_operation(name: str):
    """
    Operation boundary: count outcomes and translate store failures

    SQLAlchemy errors roll the session back and surface as TransientError so
    no raw driver error reaches the caller.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                result = func(self, *args, **kwargs)
            except MfaError as e:
                self.db.rollback()
                metrics.mfa_operations_total.labels(operation=name, status=e.kind).inc()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                metrics.mfa_operations_total.labels(operation=name, status=TransientError.kind).inc()
                logger.error(f"Store failure during MFA {name}: {e.__class__.__name__}")
                raise TransientError() from e
            metrics.mfa_operations_total.labels(operation=name, status="success").inc()
            return result
        return wrapper
    return decorator


class MfaService:
    """Service for MFA/TOTP operations"""

    def __init__(
        self,
        db: Session,
        cipher: SecretCipher,
        totp: Optional[TotpService] = None,
        events: Optional[EventService] = None,
        now: Callable[[], datetime] = utcnow,
        render_qr: Optional[bool] = None,
    ):
        self.db = db
        self.cipher = cipher
        self.totp = totp or TotpService()
        self.events = events or EventService(None)
        self.now = now
        self.render_qr = settings.FEATURE_QR_CODE if render_qr is None else render_qr

        self.profiles = ProfileService(db)
        self.attempts = AttemptService(db, now=now)
        self.challenges = ChallengeService(db, now=now)
        self.recovery_codes = RecoveryCodeService(db, now=now)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_enrollment(self, user_id: str) -> Optional[AuthenticatorEnrollment]:
        return self.db.execute(
            select(AuthenticatorEnrollment).where(AuthenticatorEnrollment.user_id == user_id)
        ).scalar_one_or_none()

    def _ensure_not_rate_limited(self, user_id: str, ip_address: str) -> None:
        if self.attempts.is_rate_limited(user_id, ip_address):
            raise RateLimited()

    def _fail(self, user_id: str, ip_address: str, user_agent: str, error: MfaError) -> None:
        """Record the failed attempt, then raise"""
        self.db.rollback()
        self.attempts.log(user_id, ip_address, user_agent, success=False)
        raise error

    def _verify_code(self, enrollment: AuthenticatorEnrollment, code: str) -> bool:
        """Decrypt the stored secret and verify with the parameters recorded at enrollment"""
        try:
            secret = self.cipher.decrypt(enrollment.secret)
        except CipherError as e:
            logger.error(f"Stored MFA secret for user {enrollment.user_id} could not be decrypted")
            raise ConfigurationError("Stored MFA secret cannot be decrypted with the configured key") from e

        return self.totp.verify(
            secret,
            code,
            algorithm=enrollment.algorithm,
            digits=enrollment.digits,
            period=enrollment.period,
            window=settings.MFA_TOTP_VALID_WINDOW,
            for_time=self.now(),
        )

    @staticmethod
    def _require(value: Optional[str], message: str = "Missing required fields") -> str:
        if value is None or not str(value).strip():
            raise ValidationError(message)
        return str(value).strip()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @mfa_operation("enroll")
    def enroll(self, user_id: str) -> EnrollmentResult:
        """
        Start TOTP enrollment

        Generates and encrypts a secret, stores the enrollment (MFA stays
        inactive) and opens a setup challenge. The raw secret is returned here
        and never again.

        Args:
            user_id: Authenticated user

        Returns:
            EnrollmentResult

        Raises:
            AlreadyEnrolled: If an enrollment already exists
        """
        profile = self.profiles.get_profile(user_id)
        if profile is None:
            raise Unauthorized("User not found")

        if self._get_enrollment(user_id) is not None:
            raise AlreadyEnrolled()

        algorithm = settings.MFA_TOTP_ALGORITHM
        digits = settings.MFA_TOTP_DIGITS
        period = settings.MFA_TOTP_PERIOD

        secret = self.totp.generate_secret()
        otpauth_uri = self.totp.provisioning_uri(
            secret,
            account_label=profile.email or user_id,
            algorithm=algorithm,
            digits=digits,
            period=period,
        )

        now = self.now()
        self.db.add(AuthenticatorEnrollment(
            user_id=user_id,
            secret=self.cipher.encrypt(secret),
            name=settings.MFA_AUTHENTICATOR_NAME,
            algorithm=algorithm,
            digits=digits,
            period=period,
            created_at=now,
            updated_at=now,
        ))
        try:
            self.db.flush()
        except IntegrityError:
            # Lost a race against a concurrent enroll for the same user
            self.db.rollback()
            raise AlreadyEnrolled()

        challenge_id = self.challenges.create(user_id)

        state = self.profiles.get_mfa_state(user_id)
        self.profiles.set_mfa_state(user_id, MfaState(
            mfa_enabled=state.mfa_enabled,
            mfa_verified=False,
            enrollment_time=state.enrollment_time,
        ))
        self.db.commit()

        logger.info(f"MFA enrollment started for user {user_id}")

        return EnrollmentResult(
            secret=secret,
            otpauth_uri=otpauth_uri,
            challenge_id=challenge_id,
            algorithm=algorithm,
            digits=digits,
            period=period,
            qr_code=self.totp.render_qr_data_uri(otpauth_uri) if self.render_qr else None,
        )

    @mfa_operation("verify_setup")
    def verify_setup(
        self,
        user_id: str,
        code: str,
        challenge_id: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
    ) -> List[str]:
        """
        Confirm enrollment with a code from the authenticator app

        Args:
            user_id: Authenticated user
            code: TOTP code
            challenge_id: Challenge returned by enroll
            ip_address: Client IP for the attempt ledger
            user_agent: Client user agent for the attempt ledger

        Returns:
            Plaintext recovery codes (shown once)
        """
        code = self._require(code)
        challenge_id = self._require(challenge_id)

        self._ensure_not_rate_limited(user_id, ip_address)

        if not self.challenges.is_pending(challenge_id, user_id):
            self._fail(user_id, ip_address, user_agent, InvalidChallenge())

        enrollment = self._get_enrollment(user_id)
        if enrollment is None:
            self._fail(user_id, ip_address, user_agent, NotEnrolled())

        if not self._verify_code(enrollment, code):
            # The challenge stays usable for another try
            self._fail(user_id, ip_address, user_agent, InvalidCode())

        if not self.challenges.verify(challenge_id, user_id=user_id):
            # Concurrent replay already consumed it, or it expired meanwhile
            self._fail(user_id, ip_address, user_agent, InvalidChallenge())

        self.recovery_codes.delete_all(user_id)
        recovery_codes = self.recovery_codes.generate()
        self.recovery_codes.store(user_id, recovery_codes)
        self.profiles.set_mfa_state(user_id, MfaState(
            mfa_enabled=True,
            mfa_verified=True,
            enrollment_time=self.now(),
        ))
        self.db.commit()

        self.attempts.log(user_id, ip_address, user_agent, success=True)
        self.events.publish_mfa_enabled(user_id, recovery_codes_count=len(recovery_codes))
        logger.info(f"MFA enabled for user {user_id}")

        return recovery_codes

    @mfa_operation("authenticate")
    def authenticate(
        self,
        user_id: str,
        code: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
        session_id: Optional[str] = None,
    ) -> AuthenticationResult:
        """
        Login-time TOTP check (after password, before session issuance)

        Args:
            user_id: User completing login
            code: TOTP code
            ip_address: Client IP for the attempt ledger
            user_agent: Client user agent for the attempt ledger
            session_id: Opaque pending-session id, passed through on success

        Returns:
            AuthenticationResult
        """
        user_id = self._require(user_id)
        code = self._require(code)

        self._ensure_not_rate_limited(user_id, ip_address)

        enrollment = self._get_enrollment(user_id)
        # Mid-enrollment is not active MFA
        if enrollment is None or not self.profiles.get_mfa_state(user_id).active:
            self._fail(user_id, ip_address, user_agent, NotEnrolled())

        if not self._verify_code(enrollment, code):
            self._fail(user_id, ip_address, user_agent, InvalidCode())

        self.db.execute(
            update(AuthenticatorEnrollment)
            .where(AuthenticatorEnrollment.enrollment_id == enrollment.enrollment_id)
            .values(last_used_at=self.now())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        self.attempts.log(user_id, ip_address, user_agent, success=True)
        return AuthenticationResult(success=True, session_id=session_id)

    @mfa_operation("validate_recovery")
    def validate_recovery(
        self,
        user_id: str,
        code: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
        session_id: Optional[str] = None,
    ) -> RecoveryResult:
        """
        Login-time recovery-code check; each code works once

        Args:
            user_id: User completing login
            code: Plaintext recovery code
            ip_address: Client IP for the attempt ledger
            user_agent: Client user agent for the attempt ledger
            session_id: Opaque pending-session id, passed through on success

        Returns:
            RecoveryResult with the exact number of unused codes left
        """
        user_id = self._require(user_id)
        code = self._require(code)

        self._ensure_not_rate_limited(user_id, ip_address)

        if not self.recovery_codes.consume(user_id, code):
            self._fail(user_id, ip_address, user_agent, InvalidRecoveryCode())

        self.attempts.log(user_id, ip_address, user_agent, success=True)
        remaining = self.recovery_codes.count_remaining(user_id)
        self.events.publish_recovery_code_used(user_id, remaining=remaining)

        return RecoveryResult(success=True, recovery_codes_remaining=remaining, session_id=session_id)

    @mfa_operation("disable")
    def disable(
        self,
        user_id: str,
        code: Optional[str] = None,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
    ) -> None:
        """
        Disable MFA for the caller

        With a code, the code must verify against the caller's own enrollment.
        Without one, the caller's role must allow disabling without a code.
        Enrollment, recovery codes, open challenges and both profile flags are
        removed in one transaction.

        Raises:
            NotEnrolled: No enrollment exists
            InvalidCode: Supplied code did not verify
            CodeRequired: No code and no privileged role
        """
        code = code.strip() if code and code.strip() else None

        enrollment = self._get_enrollment(user_id)
        if enrollment is None:
            raise NotEnrolled()

        if code is not None:
            self._ensure_not_rate_limited(user_id, ip_address)
            if not self._verify_code(enrollment, code):
                self._fail(user_id, ip_address, user_agent, InvalidCode())
        else:
            profile = self.profiles.get_profile(user_id)
            if profile is None or not has_permission(profile.role, Action.DISABLE_WITHOUT_CODE):
                raise CodeRequired()

        self.db.delete(enrollment)
        self.recovery_codes.delete_all(user_id)
        self.challenges.delete_for_user(user_id)
        self.profiles.set_mfa_state(user_id, MfaState(
            mfa_enabled=False,
            mfa_verified=False,
            enrollment_time=None,
        ))
        self.db.commit()

        self.attempts.log(user_id, ip_address, user_agent, success=True)
        self.events.publish_mfa_disabled(user_id, with_code=code is not None)
        logger.info(f"MFA disabled for user {user_id}")

    @mfa_operation("status")
    def get_status(self, user_id: str) -> StatusResult:
        """Read-only MFA status projection"""
        state = self.profiles.get_mfa_state(user_id)
        return StatusResult(
            mfa_enabled=state.mfa_enabled,
            mfa_verified=state.mfa_verified,
            enrollment_time=state.enrollment_time,
            recovery_codes_remaining=self.recovery_codes.count_remaining(user_id),
        )

    @mfa_operation("regenerate_recovery_codes")
    def regenerate_recovery_codes(
        self,
        user_id: str,
        code: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
    ) -> List[str]:
        """
        Replace all recovery codes after a fresh TOTP check

        Returns:
            New plaintext recovery codes (shown once)
        """
        code = self._require(code, "TOTP code required")

        self._ensure_not_rate_limited(user_id, ip_address)

        enrollment = self._get_enrollment(user_id)
        if enrollment is None or not self.profiles.get_mfa_state(user_id).active:
            raise NotEnrolled()

        if not self._verify_code(enrollment, code):
            self._fail(user_id, ip_address, user_agent, InvalidCode())

        recovery_codes = self.recovery_codes.regenerate(user_id)

        self.attempts.log(user_id, ip_address, user_agent, success=True)
        self.events.publish_recovery_codes_regenerated(user_id, count=len(recovery_codes))

        return recovery_codes

    @mfa_operation("is_required")
    def is_mfa_required(self, user_id: str, requested_by: Optional[str] = None) -> bool:
        """
        Whether login for this user must pass a second factor

        A caller may always ask about itself. Asking about another user needs
        a role holding VIEW_OTHER_MFA_REQUIREMENT.

        Raises:
            Forbidden: Caller may not query other users
        """
        if requested_by is not None and requested_by != user_id:
            caller = self.profiles.get_profile(requested_by)
            if caller is None or not has_permission(caller.role, Action.VIEW_OTHER_MFA_REQUIREMENT):
                raise Forbidden()

        return self.profiles.is_mfa_required(user_id)

    @mfa_operation("sweep")
    def sweep_expired_challenges(self) -> int:
        return self.challenges.sweep_expired()
