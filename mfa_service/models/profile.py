"""
Profile model - the user profile fields the MFA subsystem reads and writes
"""

from sqlalchemy import Column, String, Boolean, DateTime, Enum

from mfa_service.core.database import Base
from mfa_service.core.permissions import Role


class Profile(Base):
    """User profile (owned by the profile store, MFA flags maintained here)"""
    __tablename__ = "profiles"

    user_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=True)
    role = Column(
        Enum(Role, name="profile_role", values_callable=lambda roles: [r.value for r in roles]),
        default=Role.USER,
        nullable=False,
    )
    mfa_enabled = Column(Boolean, default=False, nullable=False)
    mfa_verified = Column(Boolean, default=False, nullable=False)
    mfa_enrollment_time = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Profile(user_id='{self.user_id}', mfa_enabled={self.mfa_enabled}, mfa_verified={self.mfa_verified})>"
