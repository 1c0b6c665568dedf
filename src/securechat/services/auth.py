"""Authentication collaborator: credential checks and session tokens."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from securechat.core import security
from securechat.core.errors import AuthError, InvalidTokenError
from securechat.models import User
from securechat.services.identity import IdentityStore

logger = logging.getLogger(__name__)


class AuthService:
    """Turns credentials into identities and identities into session tokens."""

    def __init__(self, db: Session, identities: IdentityStore | None = None) -> None:
        self.db = db
        self.identities = identities if identities is not None else IdentityStore(db)

    def authenticate(self, username: str, password: str) -> User:
        """Return the identity for valid credentials.

        Unknown usernames and wrong passwords raise the same ``AuthError`` so
        callers cannot tell which usernames exist.
        """
        user = self.identities.find_by_username(username)
        if user is None or not self.identities.verify_credential(user, password):
            logger.warning("Failed login attempt for username '%s'", username)
            raise AuthError()
        logger.info("User '%s' logged in", user.username)
        return user

    @staticmethod
    def issue_session_token(user: User) -> str:
        return security.create_access_token(str(user.id))

    def validate_session_token(self, token: str | None) -> User:
        """Return the identity a token was issued to.

        Raises:
            InvalidTokenError: missing, forged or expired token, or the
                identity no longer exists
        """
        if not token:
            raise InvalidTokenError()
        subject = security.decode_access_token(token)
        if subject is None:
            raise InvalidTokenError()
        try:
            user_id = uuid.UUID(subject)
        except ValueError as err:
            raise InvalidTokenError() from err
        user = self.identities.find_by_id(user_id)
        if user is None:
            raise InvalidTokenError("User not found")
        return user
