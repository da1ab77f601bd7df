"""
Typed operations on the identity record.

Every method is a single commit: there is no transaction spanning two calls,
so a login that verifies the password and then fails to persist the refresh
token leaves the stored refresh token unchanged.
"""
from __future__ import annotations

from typing import Optional

from models.db_storage import DBStorage
from models.user import User


class UserStore:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    def find_by_username(self, username: str) -> Optional[User]:
        if not username:
            return None
        session = self._storage.get_session()
        return session.query(User).filter(User.username == username).first()

    def exists(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def create(self, username: str, password_hash: str) -> User:
        """Create an identity with no refresh token and no API key."""
        user = User(
            username=username,
            password_hash=password_hash,
            refresh_token=None,
            api_key=None,
        )
        self._storage.new(user)
        self._storage.save()
        return user

    def _update(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        self._storage.new(user)
        self._storage.save()
        return user

    def set_password_hash(self, user: User, password_hash: str) -> User:
        return self._update(user, password_hash=password_hash)

    def set_refresh_token(self, user: User, refresh_token: Optional[str]) -> User:
        """Overwrite the stored refresh token; None revokes all of them."""
        return self._update(user, refresh_token=refresh_token)

    def set_api_key(self, user: User, api_key: Optional[str]) -> User:
        return self._update(user, api_key=api_key)
