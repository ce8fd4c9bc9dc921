"""
TOTP Service - Time-based One-Time Password engine (RFC 6238)

Secret generation, provisioning URIs for authenticator apps, and code
verification with a bounded clock-skew window. Digits, period and hash
algorithm always come from the stored enrollment, never from global defaults.
"""

import base64
import binascii
import hashlib
import io
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

import pyotp
import qrcode

from mfa_service.core.config import settings
from mfa_service.exceptions import ValidationError
from mfa_service.utils.security import constant_time_compare

logger = logging.getLogger(__name__)

SECRET_BYTES = 20

DIGESTS = {
    "SHA1": hashlib.sha1,
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}


def _as_utc(for_time: Optional[datetime]) -> datetime:
    """Naive datetimes are UTC by convention; pyotp would read them as local time"""
    if for_time is None:
        return datetime.now(timezone.utc)
    if for_time.tzinfo is None:
        return for_time.replace(tzinfo=timezone.utc)
    return for_time


class TotpService:
    """TOTP engine for authenticator apps"""

    def __init__(self, issuer: Optional[str] = None):
        self.issuer = issuer or settings.MFA_ISSUER

    def generate_secret(self) -> str:
        """
        Generate a new TOTP seed

        Returns:
            Base32-encoded secret (160 random bits, 32 characters)
        """
        return base64.b32encode(secrets.token_bytes(SECRET_BYTES)).decode("ascii")

    def _totp(self, secret: str, algorithm: str, digits: int, period: int) -> pyotp.TOTP:
        digest = DIGESTS.get(algorithm.upper())
        if digest is None:
            raise ValidationError(f"Unsupported TOTP algorithm: {algorithm}")

        totp = pyotp.TOTP(secret, digits=digits, digest=digest, interval=period, issuer=self.issuer)
        try:
            totp.byte_secret()
        except (binascii.Error, ValueError, TypeError):
            raise ValidationError("TOTP secret is not valid base32")
        return totp

    def provisioning_uri(
        self,
        secret: str,
        account_label: str,
        algorithm: str = "SHA1",
        digits: int = 6,
        period: int = 30,
    ) -> str:
        """
        Build the otpauth:// URI used to render the enrollment QR code

        Args:
            secret: Base32 secret
            account_label: Account name shown in the authenticator (email or user id)
            algorithm: Hash algorithm recorded on the enrollment
            digits: Code length recorded on the enrollment
            period: Time step in seconds recorded on the enrollment

        Returns:
            otpauth URI
        """
        totp = self._totp(secret, algorithm, digits, period)
        return totp.provisioning_uri(name=account_label, issuer_name=self.issuer)

    def generate_code(
        self,
        secret: str,
        algorithm: str = "SHA1",
        digits: int = 6,
        period: int = 30,
        for_time: Optional[datetime] = None,
    ) -> str:
        """Compute the code for the time step containing for_time"""
        totp = self._totp(secret, algorithm, digits, period)
        return totp.at(_as_utc(for_time))

    def verify(
        self,
        secret: str,
        code: str,
        algorithm: str = "SHA1",
        digits: int = 6,
        period: int = 30,
        window: int = 1,
        for_time: Optional[datetime] = None,
    ) -> bool:
        """
        Verify a submitted code against the current step and ±window adjacent steps

        Args:
            secret: Base32 secret
            code: Submitted code
            algorithm: Hash algorithm recorded on the enrollment
            digits: Code length recorded on the enrollment
            period: Time step recorded on the enrollment
            window: Tolerated steps of clock drift in each direction
            for_time: Verification time (defaults to now)

        Returns:
            True if any candidate code matches

        Raises:
            ValidationError: If the secret is not valid base32
        """
        totp = self._totp(secret, algorithm, digits, period)

        if code is None:
            return False
        submitted = str(code).strip().replace(" ", "")
        if len(submitted) != digits or not submitted.isdigit():
            return False

        at = _as_utc(for_time)
        matched = False
        # Every candidate step is computed and compared, no early exit
        for offset in range(-window, window + 1):
            candidate = totp.at(at, counter_offset=offset)
            matched = constant_time_compare(candidate, submitted) or matched
        return matched

    def render_qr_data_uri(self, data: str) -> str:
        """
        Generate QR code as data URI

        Args:
            data: Data to encode in QR code (the otpauth URI)

        Returns:
            QR code as data URI (can be used in <img src="">)
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        # Convert to data URI
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        buffer.seek(0)

        img_base64 = base64.b64encode(buffer.read()).decode()
        return f"data:image/png;base64,{img_base64}"
