"""
Per-user generative-AI keys with an optional process-wide default.

The default key is handed in at construction and never mutated afterwards,
so resolution needs no locking.
"""
from __future__ import annotations

import logging
from typing import Optional

from models.user import User
from models.user_store import UserStore
from utils.exceptions import BadRequest, NoApiKey

logger = logging.getLogger(__name__)


class ApiKeyManager:
    def __init__(self, store: UserStore, default_key: Optional[str] = None,
                 allow_anonymous_fallback: bool = True):
        self._store = store
        self._default_key = default_key or None
        self.allow_anonymous_fallback = allow_anonymous_fallback

    def resolve_key(self, user: Optional[User]) -> str:
        """User's own key, then the default key when fallback is allowed."""
        if user is not None and user.api_key:
            return user.api_key
        if self.allow_anonymous_fallback and self._default_key:
            return self._default_key
        raise NoApiKey()

    def set_key(self, user: User, api_key: Optional[str]) -> User:
        if not api_key or not api_key.strip():
            raise BadRequest("API key is not provided")
        logger.info("Storing API key for user %s", user.username)
        return self._store.set_api_key(user, api_key.strip())

    def clear_key(self, user: User) -> User:
        return self._store.set_api_key(user, None)
