"""
API dependencies for authentication, request context and service wiring
"""

import ipaddress
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from mfa_service.core.database import get_db
from mfa_service.core.redis_client import get_redis, RedisClient
from mfa_service.exceptions import Unauthorized
from mfa_service.services.event_service import EventService
from mfa_service.services.mfa_service import MfaService
from mfa_service.services.token_service import TokenVerifier, get_token_verifier
from mfa_service.utils.crypto import SecretCipher, get_cipher


# Security scheme (missing credentials are reported as our own Unauthorized)
security = HTTPBearer(auto_error=False)


def get_event_service(redis: RedisClient = Depends(get_redis)) -> EventService:
    return EventService(redis)


def get_mfa_service(
    db: Session = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
    events: EventService = Depends(get_event_service)
) -> MfaService:
    """
    Get MFA service instance

    Args:
        db: Database session
        cipher: Secret cipher
        events: Event publisher

    Returns:
        MfaService instance
    """
    return MfaService(db, cipher, events=events)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier)
) -> str:
    """
    Resolve the caller from the bearer token

    Raises:
        Unauthorized: If the token is missing or invalid
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing authentication credentials")

    user_id = verifier.verify_bearer_token(credentials.credentials)
    if not user_id:
        raise Unauthorized("Could not validate credentials")

    return user_id


def _parse_ip(value: str) -> Optional[str]:
    """Canonical form of an IP literal, or None if the value is not one"""
    try:
        address = str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None
    # Scoped IPv6 literals can outgrow the 45-char ledger column
    return address if len(address) <= 45 else None


def get_client_ip(request: Request) -> str:
    """
    Client IP for the attempt ledger

    CF-Connecting-IP, then the first X-Forwarded-For entry, then the socket
    peer, else "unknown". Header values that do not parse as an IP address
    are ignored.
    """
    cf_ip = _parse_ip(request.headers.get("CF-Connecting-IP", ""))
    if cf_ip:
        return cf_ip

    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = _parse_ip(forwarded.split(",")[0])
    if first_hop:
        return first_hop

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent") or "unknown"
