"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from logiflow.app.core.jwt import decode_access_token
from logiflow.app.db.session import Database, get_database
from logiflow.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    database: Database = Depends(get_database)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates the token signature and expiry
    2. Verifies the user still exists and is active

    Returns:
        Decoded token payload (sub, user_id, role); the role is refreshed
        from the users table.

    Raises:
        HTTPException: 401 for bad tokens or unknown users, 403 for inactive users
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Real-time check: the identity service may have deactivated the user.
    # The lookup commits before the route runs its own unit of work.
    async def load_user(session: AsyncSession):
        return await session.get(User, user_id)

    user = await database.run_in_transaction(load_user)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {**payload, "role": user.role.value}
