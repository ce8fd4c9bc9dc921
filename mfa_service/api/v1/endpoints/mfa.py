"""
MFA (Multi-Factor Authentication) endpoints

Errors are raised as MfaError subclasses and rendered by the application
exception handler as {"error": ..., "kind": ...}.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from mfa_service.api.dependencies import (
    get_client_ip,
    get_current_user_id,
    get_mfa_service,
    get_user_agent,
)
from mfa_service.services.mfa_service import MfaService
from mfa_service.schemas.mfa import (
    ErrorResponse,
    MfaAuthenticateRequest,
    MfaAuthenticateResponse,
    MfaDisableRequest,
    MfaDisableResponse,
    MfaEnrollResponse,
    MfaRegenerateRecoveryCodesRequest,
    MfaRegenerateRecoveryCodesResponse,
    MfaRequiredResponse,
    MfaStatusResponse,
    MfaValidateRecoveryRequest,
    MfaValidateRecoveryResponse,
    MfaVerifyRequest,
    MfaVerifyResponse,
)


router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)


@router.post("/enroll", response_model=MfaEnrollResponse)
def enroll(
    user_id: str = Depends(get_current_user_id),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Start TOTP (Time-based One-Time Password) enrollment

    Generates a TOTP secret, a QR code and a setup challenge.
    Scan the QR code with an authenticator app (Google Authenticator, Authy, 1Password, etc.).

    **Returns:**
    - secret: Base32-encoded TOTP secret (for manual entry, shown only once)
    - qr_code: QR code as data URI (embed in <img> tag)
    - otpauth_uri: Provisioning URI encoded in the QR code
    - challenge_id: Pass to `/mfa/verify` together with the first code
    - algorithm, digits, period: TOTP parameters

    **Authentication:**
    - Requires valid access token

    **Process:**
    1. Call this endpoint to get the QR code
    2. Scan the QR code with your authenticator app
    3. Call `/mfa/verify` with the 6-digit code and the challenge_id
    4. MFA stays inactive until step 3 succeeds

    **Errors:**
    - 409: MFA already enrolled (disable it first to re-enroll)
    """
    result = mfa_service.enroll(user_id)

    return MfaEnrollResponse(
        secret=result.secret,
        qr_code=result.qr_code,
        otpauth_uri=result.otpauth_uri,
        challenge_id=result.challenge_id,
        algorithm=result.algorithm,
        digits=result.digits,
        period=result.period
    )


@router.post("/verify", response_model=MfaVerifyResponse)
def verify_setup(
    request_data: MfaVerifyRequest,
    user_id: str = Depends(get_current_user_id),
    ip_address: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Confirm TOTP enrollment and activate MFA

    **Request Body:**
    - code: 6-digit TOTP code from authenticator app
    - challenge_id: Challenge returned by `/mfa/enroll`

    **Example Request:**
    ```json
    {
      "code": "123456",
      "challenge_id": "9f86d081884c7d659a2feaa0c55ad015"
    }
    ```

    **Recovery Codes:**
    - 10 one-time recovery codes are returned
    - Store them securely; they are never shown again
    - Each code can only be used once

    **Errors:**
    - 400: Invalid or expired challenge, invalid code, or no enrollment
    - 429: Too many failed attempts
    """
    recovery_codes = mfa_service.verify_setup(
        user_id,
        request_data.code,
        request_data.challenge_id,
        ip_address=ip_address,
        user_agent=user_agent
    )

    return MfaVerifyResponse(recovery_codes=recovery_codes)


@router.post("/authenticate", response_model=MfaAuthenticateResponse)
def authenticate(
    request_data: MfaAuthenticateRequest,
    ip_address: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Verify a TOTP code during login

    Called after the password step and before a session is issued.
    The optional session_id is echoed back unchanged on success.

    **Errors:**
    - 400: Invalid code or MFA not enabled
    - 429: Too many failed attempts
    """
    result = mfa_service.authenticate(
        request_data.user_id,
        request_data.code,
        ip_address=ip_address,
        user_agent=user_agent,
        session_id=request_data.session_id
    )

    return MfaAuthenticateResponse(success=result.success, session_id=result.session_id)


@router.post("/validate-recovery", response_model=MfaValidateRecoveryResponse)
def validate_recovery(
    request_data: MfaValidateRecoveryRequest,
    ip_address: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Use a recovery code during login

    Each recovery code works exactly once. The response carries the number
    of unused codes left so clients can prompt for regeneration.

    **Errors:**
    - 400: Invalid or already used recovery code
    - 429: Too many failed attempts
    """
    result = mfa_service.validate_recovery(
        request_data.user_id,
        request_data.code,
        ip_address=ip_address,
        user_agent=user_agent,
        session_id=request_data.session_id
    )

    return MfaValidateRecoveryResponse(
        success=result.success,
        session_id=result.session_id,
        recovery_codes_remaining=result.recovery_codes_remaining
    )


@router.post("/disable", response_model=MfaDisableResponse, responses={403: {"model": ErrorResponse}})
def disable(
    request_data: Optional[MfaDisableRequest] = None,
    user_id: str = Depends(get_current_user_id),
    ip_address: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Disable TOTP MFA

    Removes the authenticator enrollment, all recovery codes and any open
    setup challenges.

    **Request Body (optional):**
    - code: Current TOTP code (only administrators may omit it or the body)

    **After Disabling:**
    - Future logins will not require MFA
    - You can re-enroll at any time by calling `/mfa/enroll`

    **Errors:**
    - 400: Invalid code or MFA not enrolled
    - 403: Code required
    - 429: Too many failed attempts
    """
    mfa_service.disable(
        user_id,
        code=request_data.code if request_data else None,
        ip_address=ip_address,
        user_agent=user_agent
    )

    return MfaDisableResponse()


@router.get("/status", response_model=MfaStatusResponse)
def get_mfa_status(
    user_id: str = Depends(get_current_user_id),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Get MFA status

    **Returns:**
    - mfa_enabled / mfa_verified: MFA is active when both are true
    - enrollment_time: When MFA was enabled
    - recovery_codes_remaining: Number of unused recovery codes
    """
    result = mfa_service.get_status(user_id)

    return MfaStatusResponse(
        mfa_enabled=result.mfa_enabled,
        mfa_verified=result.mfa_verified,
        enrollment_time=result.enrollment_time,
        recovery_codes_remaining=result.recovery_codes_remaining
    )


@router.post("/regenerate-recovery-codes", response_model=MfaRegenerateRecoveryCodesResponse)
def regenerate_recovery_codes(
    request_data: MfaRegenerateRecoveryCodesRequest,
    user_id: str = Depends(get_current_user_id),
    ip_address: str = Depends(get_client_ip),
    user_agent: str = Depends(get_user_agent),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Regenerate recovery codes

    Requires a current TOTP code. All previous recovery codes stop working.

    **Errors:**
    - 400: Invalid code or MFA not enabled
    - 429: Too many failed attempts
    """
    recovery_codes = mfa_service.regenerate_recovery_codes(
        user_id,
        request_data.code,
        ip_address=ip_address,
        user_agent=user_agent
    )

    return MfaRegenerateRecoveryCodesResponse(recovery_codes=recovery_codes)


@router.get(
    "/required/{user_id}",
    response_model=MfaRequiredResponse,
    responses={403: {"model": ErrorResponse}}
)
def is_mfa_required(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    mfa_service: MfaService = Depends(get_mfa_service)
):
    """
    Whether the login flow must ask this user for a second factor

    Callers may query their own id. Other ids need an administrator role.

    **Errors:**
    - 401: Missing or invalid bearer token
    - 403: Not permitted to query another user
    """
    mfa_required = mfa_service.is_mfa_required(user_id, requested_by=current_user_id)
    return MfaRequiredResponse(user_id=user_id, mfa_required=mfa_required)
