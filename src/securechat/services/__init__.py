"""Business logic for identities, relationships, messaging and delivery."""

from .auth import AuthService
from .files import FileStorageService
from .identity import IdentityStore
from .message_store import MessageStore
from .messaging import MessagingService
from .pairs import PairKey, PairLocks, canonicalize, get_pair_locks
from .relationships import Authorization, FriendEntry, PendingRequest, RelationshipEngine
from .sessions import DeliveryResult, SessionRegistry, get_session_registry

__all__ = [
    "AuthService",
    "FileStorageService",
    "IdentityStore",
    "MessageStore",
    "MessagingService",
    "PairKey", "PairLocks", "canonicalize", "get_pair_locks",
    "Authorization", "FriendEntry", "PendingRequest", "RelationshipEngine",
    "DeliveryResult", "SessionRegistry", "get_session_registry",
]
