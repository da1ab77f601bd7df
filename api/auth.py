"""
Authentication blueprint:
- POST /signup
- POST /login
- POST /refresh-token
- GET  /token
- POST /logout

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs
  signed with HS256, one secret per token type)
- Stores the current refresh token on the user row: writing a new one is
  how older refresh tokens get revoked
- Sends tokens both as HTTP-only cookies and in the JSON body
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.user import SignupSchema, LoginSchema, UserOutSchema
from utils.decorators import ACCESS_COOKIE, REFRESH_COOKIE, token_required
from utils.exceptions import Conflict, InvalidCredentials, Unauthenticated
from utils.security import (
    TokenError,
    hash_password,
    issue_access_token,
    rotate_refresh_token,
    verify_password,
    verify_refresh_token,
)

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

signup_schema = SignupSchema()
login_schema = LoginSchema()
user_out_schema = UserOutSchema()


def _store():
    return current_app.extensions["user_store"]


def _set_token_cookie(response, name: str, value: str, lifetime):
    response.set_cookie(
        name,
        value,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        secure=current_app.config["COOKIE_SECURE"],
        samesite=current_app.config["COOKIE_SAMESITE"],
        path="/",
    )


def _clear_token_cookie(response, name: str):
    response.delete_cookie(
        name,
        path="/",
        httponly=True,
        secure=current_app.config["COOKIE_SECURE"],
        samesite=current_app.config["COOKIE_SAMESITE"],
    )


def _resolve_refresh_owner(refresh_token: str | None):
    """
    Return the user whose stored refresh token is exactly `refresh_token`.
    Raises Unauthenticated otherwise.
    """
    if not refresh_token:
        raise Unauthenticated("no token")
    try:
        claims = verify_refresh_token(refresh_token)
    except TokenError as exc:
        logger.info("Rejected refresh token: %s", exc)
        raise Unauthenticated("invalid")

    user = _store().find_by_username(claims.username)
    if user is None:
        raise Unauthenticated("unknown user")
    if not user.refresh_token or user.refresh_token != refresh_token:
        logger.info("Refresh token for %s is not the current one", claims.username)
        raise Unauthenticated("invalid")
    return user


@bp.post("/signup")
def signup():
    """
    Register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Missing field or username already taken
    """
    payload = request.get_json(silent=True) or {}
    data = signup_schema.load(payload)

    store = _store()
    if store.exists(data["username"]):
        raise Conflict()

    user = store.create(data["username"], hash_password(data["password"]))
    logger.info("Created user %s", user.username)
    return jsonify(
        {
            "message": "User created successfully",
            "user": user_out_schema.dump(user),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: sets `token` and `refreshToken` cookies and returns both tokens
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: Invalid username or password
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)
    username = data.get("username")
    password = data.get("password")

    store = _store()
    user = store.find_by_username(username) if username else None
    # one message for unknown user and wrong password
    if not user or not password or not verify_password(password, user.password_hash):
        logger.info("Failed login for %r", username)
        raise InvalidCredentials()

    access_token = issue_access_token(user.username)
    refresh_token = rotate_refresh_token(store, user)

    response = jsonify(
        {
            "message": "Login successful",
            "token": access_token,
            "refreshToken": refresh_token,
            "apiKey": user.api_key,
        }
    )
    _set_token_cookie(response, ACCESS_COOKIE, access_token, current_app.config["ACCESS_TOKEN_EXPIRES"])
    _set_token_cookie(response, REFRESH_COOKIE, refresh_token, current_app.config["REFRESH_TOKEN_EXPIRES"])
    return response, 200


@bp.post("/refresh-token")
def refresh_token():
    """
    Exchange the `refreshToken` cookie for a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: New access token (also set as the `token` cookie)
      401:
        description: Missing, invalid, expired or revoked refresh token
    """
    user = _resolve_refresh_owner(request.cookies.get(REFRESH_COOKIE))

    access_token = issue_access_token(user.username)
    body = {"token": access_token}
    new_refresh = None
    if current_app.config["ROTATE_REFRESH_ON_REFRESH"]:
        new_refresh = rotate_refresh_token(_store(), user)
        body["refreshToken"] = new_refresh

    response = jsonify(body)
    _set_token_cookie(response, ACCESS_COOKIE, access_token, current_app.config["ACCESS_TOKEN_EXPIRES"])
    if new_refresh:
        _set_token_cookie(response, REFRESH_COOKIE, new_refresh, current_app.config["REFRESH_TOKEN_EXPIRES"])
    return response, 200


@bp.get("/token")
@token_required()
def current_token():
    """
    Echo the access token the request was authenticated with
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"token": g.current_token}), 200


@bp.post("/logout")
def logout():
    """
    Logout: clears the access-token cookie and revokes the stored refresh token
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out
    """
    response = jsonify({"message": "Logged out successfully"})
    _clear_token_cookie(response, ACCESS_COOKIE)

    if current_app.config["REVOKE_REFRESH_ON_LOGOUT"]:
        presented = request.cookies.get(REFRESH_COOKIE)
        if presented:
            try:
                user = _resolve_refresh_owner(presented)
            except Unauthenticated:
                user = None
            if user is not None:
                _store().set_refresh_token(user, None)
                logger.info("Revoked refresh token for %s", user.username)
        _clear_token_cookie(response, REFRESH_COOKIE)
    return response, 200
