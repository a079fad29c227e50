"""
JWT verification for the admin API.

Tokens are issued by the CRM's login service with the shared secret; this
service only verifies them. create_access_token exists for operators and
tests that need a token without going through the CRM.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from slabline.config import settings

# JWT configuration
ALGORITHM = "HS256"
TOKEN_TYPE = "access"
COOKIE_NAME = "access_token"


def create_access_token(
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: User's database ID
        role: User's role (admin/sales_manager/sales_person)
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.jwt_expire_hours))

    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
        "type": TOKEN_TYPE,
        "iat": now,
    }

    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Decode a token.

    Returns:
        {"user_id": int, "role": str}, or None if the token is invalid,
        expired or not an access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
        )
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE:
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        return None

    return {
        "user_id": int(user_id),
        "role": role,
    }


def get_token(request: Request) -> Optional[str]:
    """Token from the httpOnly cookie, or from an Authorization: Bearer header."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token

    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()

    return None
