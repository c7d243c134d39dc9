"""Bearer JWT authorization verdicts for the stream endpoint"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt
from fastapi import Request

from app.core.config import settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthVerdict:
    """Outcome of the credential check, produced before the stream handler runs"""
    authenticated: bool
    subject: Optional[str] = None
    role: Optional[str] = None


DENIED = AuthVerdict(authenticated=False)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` value"""
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def generate_token(user_id: str, role: str = "user", ttl: Optional[timedelta] = None) -> str:
    """Issue a session token carrying userId and role claims"""
    if not settings.session_secret:
        raise ValueError("SESSION_SECRET is not configured")

    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "role": role,
        "iat": now,
        "exp": now + (ttl if ttl is not None else timedelta(days=settings.token_ttl_days)),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> AuthVerdict:
    """
    Verify an HS256 session token.

    Bad signatures, expired tokens, malformed tokens and tokens without a
    userId claim all yield DENIED.
    """
    if not settings.session_secret:
        return DENIED

    try:
        claims = jwt.decode(token, settings.session_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired session token")
        return DENIED
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid session token: {e}")
        return DENIED

    user_id = claims.get("userId")
    if not user_id:
        logger.info("Rejected session token without userId claim")
        return DENIED

    return AuthVerdict(authenticated=True, subject=str(user_id), role=claims.get("role"))


def authorize(request: Request) -> AuthVerdict:
    """
    Check the request credential.

    Missing and invalid credentials both yield a negative verdict; the
    stream handler turns that into a 401.
    """
    token = extract_bearer_token(request.headers.get("authorization"))
    if token is None:
        return DENIED
    return verify_token(token)


def get_auth_verdict(request: Request) -> AuthVerdict:
    """FastAPI dependency wrapper around authorize(), overridable in tests"""
    return authorize(request)
