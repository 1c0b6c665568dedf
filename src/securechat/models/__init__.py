"""SQLAlchemy models for the SecureChat application."""

from .message import Message, MessageType
from .relationship import Relationship, RelationshipStatus
from .stored_file import StoredFile
from .user import User

__all__ = [
    "Message", "MessageType",
    "Relationship", "RelationshipStatus",
    "StoredFile",
    "User",
]
