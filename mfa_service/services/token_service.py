"""
Bearer token verification

Access tokens are issued by the identity service; this service only validates them
and extracts the user id from the ``sub`` claim.
"""

import logging
from typing import Optional

from jose import jwt, JWTError

from mfa_service.core.config import settings
from mfa_service.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Validates JWT access tokens"""

    def __init__(
        self,
        verification_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.verification_key = verification_key or settings.JWT_VERIFICATION_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.issuer = issuer if issuer is not None else settings.JWT_ISSUER
        self.audience = audience if audience is not None else settings.JWT_AUDIENCE

    def verify_bearer_token(self, token: str) -> Optional[str]:
        """
        Validate an access token

        Args:
            token: Raw JWT (without the "Bearer " prefix)

        Returns:
            User id if the token is valid, None otherwise

        Raises:
            ConfigurationError: If no verification key is configured
        """
        if not self.verification_key:
            raise ConfigurationError("JWT_VERIFICATION_KEY is not configured")
        if not token:
            return None

        try:
            payload = jwt.decode(
                token,
                self.verification_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.debug(f"Rejected bearer token: {e}")
            return None

        if payload.get("type", "access") != "access":
            return None

        subject = str(payload.get("sub") or "")
        # The identity service issues subjects as "user:<id>"
        user_id = subject.split(":", 1)[-1] if subject.startswith("user:") else subject
        return user_id or None


# Global instance (initialized on first use)
_verifier_instance: Optional[TokenVerifier] = None


def get_token_verifier() -> TokenVerifier:
    """Dependency function to get the token verifier"""
    global _verifier_instance
    if _verifier_instance is None:
        _verifier_instance = TokenVerifier()
    return _verifier_instance
