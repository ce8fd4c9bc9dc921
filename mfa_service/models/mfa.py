"""
MFA (Multi-Factor Authentication) models
"""

from sqlalchemy import (
    Column, BigInteger, Integer, String, Text, Boolean, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint, Index,
)

from mfa_service.core.database import Base
from mfa_service.utils.security import utcnow


class AuthenticatorEnrollment(Base):
    """TOTP authenticator enrollment - one per user"""
    __tablename__ = "authenticator_enrollments"
    __table_args__ = (
        UniqueConstraint('user_id', name='uq_authenticator_enrollments_user'),
    )

    enrollment_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False)
    secret = Column(Text, nullable=False)  # AES-GCM encrypted TOTP seed
    name = Column(String(100), nullable=False, default="Authenticator App")
    algorithm = Column(String(10), nullable=False, default="SHA1")
    digits = Column(Integer, nullable=False, default=6)
    period = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<AuthenticatorEnrollment(user_id='{self.user_id}', algorithm='{self.algorithm}')>"


class RecoveryCode(Base):
    """Single-use recovery code (stored as a SHA-256 hash)"""
    __tablename__ = "recovery_codes"
    __table_args__ = (
        Index('idx_recovery_codes_user_hash', 'user_id', 'code_hash'),
    )

    recovery_code_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<RecoveryCode(user_id='{self.user_id}', used={self.used})>"


class MfaChallenge(Base):
    """Short-lived single-use challenge binding an enrollment attempt to a user"""
    __tablename__ = "mfa_challenges"
    __table_args__ = (
        CheckConstraint('expires_at > created_at', name='ck_mfa_challenges_expiry'),
    )

    mfa_challenge_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id = Column(String(64), unique=True, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    verified_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<MfaChallenge(user_id='{self.user_id}', verified={self.verified})>"


class MfaAttempt(Base):
    """Append-only MFA verification attempt log, used for rate limiting"""
    __tablename__ = "mfa_attempts"

    attempt_id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    # Not a foreign key: attempts against unknown user ids are still counted
    user_id = Column(String(36), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True, index=True)
    user_agent = Column(Text, nullable=True)
    successful = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<MfaAttempt(user_id='{self.user_id}', successful={self.successful})>"
