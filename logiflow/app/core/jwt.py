"""
JWT token utilities.

Tokens are issued by the identity service; this backend only needs to
verify them (and mint them for seeding and tests).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from logiflow.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token.

    Args:
        data: Payload to encode (sub, user_id, role)
        expires_delta: Optional custom lifetime

    Example payload:
        {
            "sub": "customer@example.com",
            "user_id": 12,
            "role": "customer",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": datetime.now(timezone.utc) + lifetime})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or None when the signature or expiry is invalid."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
