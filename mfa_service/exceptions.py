"""
MFA domain errors

Every error carries a stable machine-readable ``kind``, a human-readable
message and the HTTP status the API layer renders it with. Messages never
contain submitted codes, recovery codes or secrets.
"""

from typing import Optional


class MfaError(Exception):
    """Base class for all errors surfaced to MFA callers"""

    kind: str = "MfaError"
    status_code: int = 400
    default_message: str = "MFA request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(MfaError):
    """Malformed input (missing code or challenge id, bad secret encoding)"""

    kind = "ValidationError"
    status_code = 400
    default_message = "Missing required fields"


class Unauthorized(MfaError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class AlreadyEnrolled(MfaError):
    kind = "AlreadyEnrolled"
    status_code = 409
    default_message = "MFA already enrolled"


class NotEnrolled(MfaError):
    kind = "NotEnrolled"
    status_code = 400
    default_message = "MFA not enrolled"


class InvalidChallenge(MfaError):
    """Challenge unknown, expired, already verified, or owned by another user"""

    kind = "InvalidChallenge"
    status_code = 400
    default_message = "Invalid or expired challenge"


class InvalidCode(MfaError):
    kind = "InvalidCode"
    status_code = 400
    default_message = "Invalid code"


class InvalidRecoveryCode(MfaError):
    kind = "InvalidRecoveryCode"
    status_code = 400
    default_message = "Invalid recovery code"


class RateLimited(MfaError):
    """
    Too many failed attempts for the user or the IP.

    The message is identical whether or not the account has MFA configured.
    """

    kind = "RateLimited"
    status_code = 429
    default_message = "Too many failed attempts. Please try again later."


class CodeRequired(MfaError):
    kind = "CodeRequired"
    status_code = 403
    default_message = "Code required to disable MFA"


class Forbidden(MfaError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Not permitted"


class ConfigurationError(MfaError):
    kind = "ConfigurationError"
    status_code = 500
    default_message = "MFA service is misconfigured"


class TransientError(MfaError):
    """Store or cipher temporarily unavailable, safe to retry"""

    kind = "TransientError"
    status_code = 503
    default_message = "MFA service temporarily unavailable"


class CipherError(MfaError):
    """Stored secret could not be authenticated or decoded"""

    kind = "CipherError"
    status_code = 500
    default_message = "Failed to decrypt MFA secret"
