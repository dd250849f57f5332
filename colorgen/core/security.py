"""
Bearer token helpers (PyJWT, HS256)

The account id travels in the "sub" claim as a string.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .exceptions import AuthenticationRequired


def create_access_token(
    account_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: Optional[int] = None
) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": str(account_id), "iat": now}
    if expires_minutes:
        payload["exp"] = now + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = "HS256") -> int:
    """
    Returns:
        account id from the token

    Raises:
        AuthenticationRequired: bad signature, expired, or malformed subject
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationRequired("Access token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationRequired("Invalid access token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationRequired("Invalid access token")
