"""Client-facing error taxonomy.

Every exception defined here is an expected, recoverable outcome of a service
call. Services raise them; the API layer translates them into HTTP responses
using ``status_code`` and ``detail``. Anything else that escapes a service is
treated as an internal failure.
"""

from __future__ import annotations

from enum import Enum

from fastapi import status


class DenialReason(str, Enum):
    """Why the messaging gate refused an exchange between two identities."""

    NOT_FRIENDS = "not friends"
    BLOCKED_BY_PEER = "blocked"
    YOU_BLOCKED_PEER = "you blocked them"


class SecureChatError(Exception):
    """Base class for expected, client-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be completed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_payload(self) -> dict[str, str]:
        """Return the JSON body sent to clients for this error."""
        return {"detail": self.detail, "error": type(self).__name__}


class NotFoundError(SecureChatError):
    """A referenced identity or relationship row does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ValidationError(SecureChatError):
    """The request is malformed."""

    default_detail = "Invalid request"


class InvalidStateError(SecureChatError):
    """The operation is not valid for the current relationship status."""

    default_detail = "Operation not allowed in the current state"


class AuthorizationError(SecureChatError):
    """The caller is not the party entitled to perform this mutation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action"


class SelfRequestError(SecureChatError):
    """An identity tried to befriend or block itself."""

    default_detail = "You cannot perform this action on yourself"


class SelfMessageError(SecureChatError):
    """An identity tried to message itself."""

    default_detail = "Sender and receiver cannot be the same person"


class AlreadyExistsError(SecureChatError):
    """A record that must be unique already exists."""

    default_detail = "Already exists"


class RequestAlreadyExistsError(AlreadyExistsError):
    """A pending or declined request already links the two identities."""

    default_detail = "A friend request already exists between you two"


class AlreadyFriendsError(AlreadyExistsError):
    """The two identities are already friends."""

    default_detail = "You are already friends"


class UsernameTakenError(AlreadyExistsError):
    """Registration used a username that is already registered."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Username is already taken"


class BlockedByOtherError(SecureChatError):
    """The peer has blocked the caller."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "You are blocked by this user"


class YouBlockedThemError(SecureChatError):
    """The caller has blocked the peer."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have blocked this user. Unblock them first"


class NotAuthorizedError(SecureChatError):
    """The messaging gate denied the exchange."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: DenialReason) -> None:
        self.reason = reason
        super().__init__(f"Messaging not allowed: {reason.value}")

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        payload["reason"] = self.reason.value
        return payload


class AuthError(SecureChatError):
    """Credentials were rejected."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid username or password"


class InvalidTokenError(AuthError):
    """A session token is missing, malformed, expired or names no identity."""

    default_detail = "Could not validate credentials"
