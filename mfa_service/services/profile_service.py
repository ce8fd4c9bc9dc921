"""
Profile Service - MFA flags and role on the user profile store
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from mfa_service.core.permissions import Role
from mfa_service.models import Profile


@dataclass(frozen=True)
class MfaState:
    """MFA flags on a profile. Active MFA is mfa_enabled AND mfa_verified."""
    mfa_enabled: bool = False
    mfa_verified: bool = False
    enrollment_time: Optional[datetime] = None

    @property
    def active(self) -> bool:
        return self.mfa_enabled and self.mfa_verified


@dataclass(frozen=True)
class ProfileInfo:
    user_id: str
    email: Optional[str]
    role: Role


class ProfileService:
    """Reads and writes the profile fields the MFA subsystem owns"""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> Optional[ProfileInfo]:
        profile = self.db.get(Profile, user_id)
        if profile is None:
            return None
        return ProfileInfo(user_id=profile.user_id, email=profile.email, role=Role(profile.role))

    def get_mfa_state(self, user_id: str) -> MfaState:
        """Current MFA flags, all false for an unknown user"""
        row = self.db.execute(
            select(Profile.mfa_enabled, Profile.mfa_verified, Profile.mfa_enrollment_time)
            .where(Profile.user_id == user_id)
        ).first()
        if row is None:
            return MfaState()
        return MfaState(
            mfa_enabled=bool(row.mfa_enabled),
            mfa_verified=bool(row.mfa_verified),
            enrollment_time=row.mfa_enrollment_time,
        )

    def set_mfa_state(self, user_id: str, state: MfaState) -> None:
        """
        Write MFA flags within the current transaction

        The caller commits, so flag changes land together with the enrollment
        and recovery-code changes they describe.
        """
        self.db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(
                mfa_enabled=state.mfa_enabled,
                mfa_verified=state.mfa_verified,
                mfa_enrollment_time=state.enrollment_time,
            )
            .execution_options(synchronize_session=False)
        )

    def is_mfa_required(self, user_id: str) -> bool:
        """Whether login for this user must pass a second factor"""
        return self.get_mfa_state(user_id).active
