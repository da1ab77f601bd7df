"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Access/refresh JWT issuing and verification via PyJWT
- Refresh-token rotation against the stored identity
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import current_app

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidSignature(TokenError):
    """Signature, structure or claim set is not acceptable."""


class TokenExpired(TokenError):
    """Signature is fine but `exp` is in the past."""


@dataclass(frozen=True)
class TokenClaims:
    username: str
    issued_at: datetime
    expires_at: datetime


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_token(username: str, secret: str, lifetime: timedelta, token_type: str,
                 algorithm: str = "HS256") -> str:
    """
    Sign {username, iat, exp} with `secret`. `jti` keeps two tokens issued
    within the same second distinct.
    """
    issued = _now()
    payload = {
        "username": username,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
        "type": token_type,
        "jti": generate_jti(),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_token(token: str, secret: str, expected_type: Optional[str] = None,
                 algorithm: str = "HS256") -> TokenClaims:
    """
    Decode and validate a JWT. Raises TokenExpired or InvalidSignature.
    """
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidSignature(f"Invalid token: {exc}") from exc

    if expected_type and decoded.get("type") != expected_type:
        raise InvalidSignature("Wrong token type")
    username = decoded.get("username")
    if not isinstance(username, str) or not username:
        raise InvalidSignature("Missing username claim")
    return TokenClaims(
        username=username,
        issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
    )


def issue_access_token(username: str) -> str:
    cfg = current_app.config
    return create_token(
        username,
        cfg["ACCESS_TOKEN_SECRET"],
        cfg["ACCESS_TOKEN_EXPIRES"],
        ACCESS,
        cfg["JWT_ALGORITHM"],
    )


def issue_refresh_token(username: str) -> str:
    cfg = current_app.config
    return create_token(
        username,
        cfg["REFRESH_TOKEN_SECRET"],
        cfg["REFRESH_TOKEN_EXPIRES"],
        REFRESH,
        cfg["JWT_ALGORITHM"],
    )


def verify_access_token(token: str) -> TokenClaims:
    cfg = current_app.config
    return verify_token(token, cfg["ACCESS_TOKEN_SECRET"], ACCESS, cfg["JWT_ALGORITHM"])


def verify_refresh_token(token: str) -> TokenClaims:
    cfg = current_app.config
    return verify_token(token, cfg["REFRESH_TOKEN_SECRET"], REFRESH, cfg["JWT_ALGORITHM"])


def rotate_refresh_token(store, user) -> str:
    """Issue a refresh token and persist it as the user's only valid one."""
    token = issue_refresh_token(user.username)
    store.set_refresh_token(user, token)
    return token
