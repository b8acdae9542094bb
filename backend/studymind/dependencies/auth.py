"""
Authentication Dependencies for StudyMind

Bearer tokens are issued by the hosted auth provider as HS256 JWTs signed
with the project's JWT secret. The "sub" claim is the user id.

Provides FastAPI dependencies for:
- Optional authentication (AI endpoints persist only when a user is known)
- Required authentication (progress and history endpoints)

Usage:
    @router.get("/protected")
    def protected_endpoint(user_id: str = Depends(get_current_user_id)):
        return {"user_id": user_id}
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from studymind.config import AUTH_JWT_AUDIENCE, get_auth_jwt_secret

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)

JWT_ALGORITHMS = ["HS256"]


def verify_access_token(token: str) -> dict:
    """
    Verify a bearer JWT and return its claims.

    Raises:
        HTTPException: If the secret is not configured or the token is invalid/expired
    """
    secret = get_auth_jwt_secret()
    if not secret:
        logger.error("AUTH_JWT_SECRET is not configured - cannot verify tokens")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication is not configured",
        )

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=JWT_ALGORITHMS,
            audience=AUTH_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    FastAPI dependency returning the authenticated user's id.

    Raises:
        HTTPException: 401 if no valid token is supplied
    """
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = verify_access_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject",
        )
    return user_id


async def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Optional authentication - returns None if not authenticated.

    AI endpoints still answer anonymous callers; they only skip persistence.
    """
    try:
        return await get_current_user_id(credentials)
    except HTTPException:
        return None
