"""
Security utilities for recovery codes, random tokens, and log masking
"""

import base64
import hashlib
import secrets
import string
from datetime import datetime, timezone


RECOVERY_CODE_ALPHABET = string.ascii_uppercase + string.digits


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention for all columns)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_random_token(num_bytes: int = 16) -> str:
    """
    Generate a cryptographically secure random hex token

    Args:
        num_bytes: Number of random bytes (hex output is twice as long)

    Returns:
        Random hex string
    """
    return secrets.token_hex(num_bytes)


def generate_recovery_codes(count: int = 10, groups: int = 3, group_length: int = 4) -> list[str]:
    """
    Generate recovery codes for MFA

    Args:
        count: Number of recovery codes to generate
        groups: Number of dash-separated groups per code
        group_length: Characters per group

    Returns:
        List of codes formatted as XXXX-XXXX-XXXX
    """
    codes = []
    for _ in range(count):
        parts = [
            ''.join(secrets.choice(RECOVERY_CODE_ALPHABET) for _ in range(group_length))
            for _ in range(groups)
        ]
        codes.append("-".join(parts))
    return codes


def normalize_recovery_code(code: str) -> str:
    """Strip surrounding whitespace and upper-case a transcribed recovery code"""
    return code.strip().upper()


def hash_recovery_code(code: str) -> str:
    """
    One-way deterministic hash of a recovery code

    Recovery codes are high-entropy random strings, so an unsalted SHA-256 is
    enough and keeps them addressable by exact hash.

    Args:
        code: Plaintext recovery code

    Returns:
        base64 encoded SHA-256 digest
    """
    digest = hashlib.sha256(normalize_recovery_code(code).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def mask_ip(ip: str) -> str:
    """
    Mask IP address for logging (last octet)

    Args:
        ip: IP address to mask

    Returns:
        Masked IP (e.g., 203.0.113.xxx)
    """
    parts = ip.split('.')
    if len(parts) == 4:  # IPv4
        parts[-1] = 'xxx'
        return '.'.join(parts)
    else:  # IPv6 or other format
        return ip[:20] + '...' if len(ip) > 20 else ip


def constant_time_compare(a: str, b: str) -> bool:
    """
    Constant-time string comparison to prevent timing attacks

    Args:
        a: First string
        b: Second string

    Returns:
        True if strings are equal, False otherwise
    """
    return secrets.compare_digest(a.encode(), b.encode())
