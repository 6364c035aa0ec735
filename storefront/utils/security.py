"""
Token verification for the external auth service.

Sign-in, registration and identity verification all live in the auth
service. This module only reads the bearer token it issued and turns the
claims into a CurrentUser. The flags are client-side hints for gating the
storefront flow; the data service remains the authority.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from ..config import settings


@dataclass
class CurrentUser:
    """Identity as seen by the storefront"""
    uid: str
    email: Optional[str] = None
    is_verified: bool = False
    is_admin: bool = False


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    except JWTError:
        return None


def user_from_claims(payload: dict) -> Optional[CurrentUser]:
    """Build a CurrentUser from token claims, None when no subject is present"""
    uid = payload.get("uid") or payload.get("sub")
    if not uid:
        return None
    return CurrentUser(
        uid=str(uid),
        email=payload.get("email"),
        is_verified=bool(payload.get("id_verified", False)),
        is_admin=bool(payload.get("admin", False)) or payload.get("role") == "admin",
    )


def verify_access_token(token: str) -> Optional[CurrentUser]:
    """Verify an access token and return the user it names"""
    payload = decode_token(token)
    if not payload:
        return None
    return user_from_claims(payload)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a token the way the auth service does.
    Used by local tooling and tests; production tokens come from the auth service.
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.auth_secret_key, algorithm=settings.auth_algorithm)
