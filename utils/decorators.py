from __future__ import annotations

import logging
from functools import wraps

from flask import current_app, g, request

from models.user import User
from utils.exceptions import Unauthenticated
from utils.security import TokenExpired, TokenError, verify_access_token

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refreshToken"


def extract_access_token(req) -> str | None:
    """Cookie `token` first, then `Authorization: Bearer <token>`."""
    token = req.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth = req.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def authenticate(req) -> tuple[User, str]:
    """
    Resolve the identity behind an inbound request.
    Raises Unauthenticated with reason "no token", "expired", "invalid" or
    "unknown user". Reads only; nothing is written.
    """
    token = extract_access_token(req)
    if not token:
        raise Unauthenticated("no token")
    try:
        claims = verify_access_token(token)
    except TokenExpired:
        raise Unauthenticated("expired")
    except TokenError as exc:
        logger.info("Rejected access token: %s", exc)
        raise Unauthenticated("invalid")

    user = current_app.extensions["user_store"].find_by_username(claims.username)
    if user is None:
        raise Unauthenticated("unknown user")
    return user, token


def token_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                user, token = authenticate(request)
            except Unauthenticated as exc:
                logger.info("Authentication failed on %s: %s", request.path, exc.reason)
                raise
            g.current_user = user
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator
