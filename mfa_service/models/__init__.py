"""
Database models
"""

from mfa_service.models.profile import Profile
from mfa_service.models.mfa import AuthenticatorEnrollment, RecoveryCode, MfaChallenge, MfaAttempt

__all__ = [
    "Profile",
    "AuthenticatorEnrollment",
    "RecoveryCode",
    "MfaChallenge",
    "MfaAttempt",
]
