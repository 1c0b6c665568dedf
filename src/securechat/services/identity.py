"""Identity store: registration, lookup and public key material."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from securechat.core import security
from securechat.core.errors import NotFoundError, UsernameTakenError, ValidationError
from securechat.core.settings import settings
from securechat.models import User

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


class IdentityStore:
    """Owns user records. Other components only reference identities by id."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_id(self, user_id: uuid.UUID) -> User | None:
        """Return the identity with ``user_id`` or None."""
        return self.db.get(User, user_id)

    def find_by_username(self, username: str) -> User | None:
        """Return the identity registered as ``username`` or None."""
        return self.db.scalar(select(User).where(User.username == username.strip()))

    def get_by_id(self, user_id: uuid.UUID) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_by_username(self, username: str) -> User:
        user = self.find_by_username(username)
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        return user

    def register(self, username: str, password: str, nickname: str | None = None) -> User:
        """Create a new identity with a hashed credential.

        Raises:
            ValidationError: blank username or too-short password
            UsernameTakenError: the username is already registered
        """
        username = username.strip()
        if not username:
            raise ValidationError("Username cannot be blank")
        if password is None or len(password) < settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {settings.min_password_length} characters long"
            )
        if self.find_by_username(username) is not None:
            raise UsernameTakenError()

        display_name = (nickname or "").strip() or username
        user = User(
            username=username,
            nickname=display_name,
            password_hash=security.hash_password(password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as err:
            # Lost a race with a concurrent registration of the same name.
            self.db.rollback()
            raise UsernameTakenError() from err
        self.db.refresh(user)
        logger.info("User '%s' registered", user.username)
        return user

    def verify_credential(self, user: User, password: str) -> bool:
        """Return True if ``password`` matches the stored credential hash."""
        return security.verify_password(password, user.password_hash)

    def update_nickname(self, user: User, nickname: str) -> User:
        cleaned = nickname.strip()
        if not cleaned:
            raise ValidationError("Nickname cannot be blank")
        user.nickname = cleaned
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_signing_key(self, user: User, public_key: str) -> User:
        """Store the caller's Ed25519 verification key."""
        try:
            security.validate_signing_public_key(public_key)
        except ValueError as err:
            raise ValidationError(f"Invalid Ed25519 public key: {err}") from err
        user.signing_public_key = public_key.strip()
        self.db.commit()
        self.db.refresh(user)
        logger.info("User '%s' uploaded a signing key", user.username)
        return user

    def set_key_exchange_key(self, user: User, public_key: str) -> User:
        """Store the caller's X25519 key-agreement key."""
        try:
            security.validate_key_exchange_public_key(public_key)
        except ValueError as err:
            raise ValidationError(f"Invalid X25519 public key: {err}") from err
        user.key_exchange_public_key = public_key.strip()
        self.db.commit()
        self.db.refresh(user)
        logger.info("User '%s' uploaded a key-exchange key", user.username)
        return user

    def get_public_keys(self, username: str) -> User:
        """Return the identity whose keys a peer wants; either key may be ``None``."""
        return self.get_by_username(username)

    def get_signing_key(self, username: str) -> str:
        """Return ``username``'s Ed25519 key or raise ``NotFoundError``."""
        user = self.get_by_username(username)
        if not user.signing_public_key:
            raise NotFoundError(f"User '{user.username}' has not uploaded a signing key yet")
        return user.signing_public_key

    def get_key_exchange_key(self, username: str) -> str:
        """Return ``username``'s X25519 key or raise ``NotFoundError``."""
        user = self.get_by_username(username)
        if not user.key_exchange_public_key:
            raise NotFoundError(f"User '{user.username}' has not uploaded a key-exchange key yet")
        return user.key_exchange_public_key

    def search(self, prefix: str, exclude: uuid.UUID | None = None) -> Sequence[User]:
        """Return identities whose username starts with ``prefix``."""
        cleaned = prefix.strip()
        if not cleaned:
            return []
        escaped = cleaned.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = (
            select(User)
            .where(User.username.like(f"{escaped}%", escape="\\"))
            .order_by(User.username)
            .limit(SEARCH_LIMIT)
        )
        if exclude is not None:
            stmt = stmt.where(User.id != exclude)
        return self.db.scalars(stmt).all()
