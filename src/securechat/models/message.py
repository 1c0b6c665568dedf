"""Models describing messages exchanged between two identities."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from securechat.db.session import Base
from securechat.db.time import utcnow
from securechat.models.user import User


class MessageType(str, enum.Enum):
    """Kinds of message payload."""

    TEXT = "TEXT"
    FILE = "FILE"


class Message(Base):
    """Encrypted message exchanged between two users.

    Messages are stored on the server but are never decrypted, providing
    end-to-end encryption between users. Rows are immutable; the
    autoincrement id is the conversation sort key.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_sender_receiver", "sender_id", "receiver_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Opaque client ciphertext; the server relays it without interpretation.
    ciphertext: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(
        Enum(MessageType, name="message_type"),
        nullable=False,
        default=MessageType.TEXT,
    )
    nonce: Mapped[str] = mapped_column(Text, nullable=False)

    # Set only for FILE messages.
    file_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    sender: Mapped[User] = relationship("User", foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship("User", foreign_keys=[receiver_id])
