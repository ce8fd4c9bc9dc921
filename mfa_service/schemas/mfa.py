"""
Pydantic schemas for MFA (Multi-Factor Authentication) endpoints
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# Enrollment schemas

class MfaEnrollResponse(BaseModel):
    """
    MFA enrollment response

    Contains the TOTP secret and provisioning data. The secret is returned
    only here and is never retrievable again.
    """
    secret: str = Field(
        ...,
        description="Base32-encoded TOTP secret (display to user for manual entry)"
    )
    qr_code: Optional[str] = Field(
        None,
        description="QR code as PNG data URI (can be embedded in <img> tag)"
    )
    otpauth_uri: str = Field(..., description="otpauth:// provisioning URI")
    challenge_id: str = Field(..., description="Setup challenge to pass to /verify")
    algorithm: str = "SHA1"
    digits: int = 6
    period: int = 30


class MfaVerifyRequest(BaseModel):
    """
    MFA setup verification request

    Confirms TOTP enrollment by verifying a code against the setup challenge.
    """
    code: str = Field(..., max_length=16, description="TOTP code from authenticator app")
    challenge_id: str = Field(..., max_length=64, description="Challenge returned by /enroll")


class MfaVerifyResponse(BaseModel):
    success: bool = True
    recovery_codes: List[str] = Field(
        ...,
        description="One-time recovery codes (shown once)"
    )
    message: str = "MFA enabled successfully"


# Login-time schemas

class MfaAuthenticateRequest(BaseModel):
    """Second-factor check during login"""
    code: str = Field(..., max_length=16, description="TOTP code from authenticator app")
    user_id: str = Field(..., max_length=36)
    session_id: Optional[str] = Field(
        None,
        max_length=255,
        description="Pending session id, echoed back on success"
    )


class MfaAuthenticateResponse(BaseModel):
    success: bool = True
    message: str = "MFA verification successful"
    session_id: Optional[str] = None


class MfaValidateRecoveryRequest(BaseModel):
    """Recovery-code check during login"""
    code: str = Field(..., max_length=32, description="Recovery code (XXXX-XXXX-XXXX)")
    user_id: str = Field(..., max_length=36)
    session_id: Optional[str] = Field(None, max_length=255)


class MfaValidateRecoveryResponse(BaseModel):
    success: bool = True
    message: str = "Recovery code accepted"
    session_id: Optional[str] = None
    recovery_codes_remaining: int = Field(
        ...,
        description="Number of unused recovery codes left"
    )


# Management schemas

class MfaDisableRequest(BaseModel):
    """
    MFA disable request

    The code may be omitted only by callers whose role allows it.
    """
    code: Optional[str] = Field(None, max_length=16, description="TOTP code")


class MfaDisableResponse(BaseModel):
    success: bool = True
    message: str = "MFA disabled successfully"


class MfaStatusResponse(BaseModel):
    """
    MFA status response

    Returns current MFA configuration status.
    """
    mfa_enabled: bool
    mfa_verified: bool
    enrollment_time: Optional[datetime] = Field(
        None,
        description="When MFA was enabled"
    )
    recovery_codes_remaining: int


class MfaRegenerateRecoveryCodesRequest(BaseModel):
    """
    Recovery codes regeneration request

    Generates a new set of recovery codes (invalidates old ones).
    """
    code: str = Field(..., max_length=16, description="TOTP code")


class MfaRegenerateRecoveryCodesResponse(BaseModel):
    success: bool = True
    recovery_codes: List[str]
    message: str = "Store these codes securely. Previous recovery codes are now invalid."


class MfaRequiredResponse(BaseModel):
    user_id: str
    mfa_required: bool


class ErrorResponse(BaseModel):
    """Error payload for every failed MFA request"""
    error: str
    kind: str
