"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from securechat.db.time import as_utc
from securechat.models.message import Message, MessageType


class SendMessageRequest(BaseModel):
    """Schema for sending a message; the ciphertext is relayed untouched."""

    receiver_username: str = Field(..., min_length=1)
    ciphertext: str = Field(..., min_length=1, description="Opaque client-encrypted payload")
    message_type: MessageType = Field(MessageType.TEXT)
    nonce: str = Field(..., min_length=1, description="Opaque encryption nonce")
    file_url: str | None = Field(None, description="Handle returned by the file upload endpoint")
    original_filename: str | None = Field(None, description="Display name of the attachment")


class MessageResponse(BaseModel):
    """A persisted message as returned to clients and pushed over WebSocket."""

    id: int
    sender_username: str
    receiver_username: str
    ciphertext: str
    message_type: MessageType
    nonce: str
    file_url: str | None
    original_filename: str | None
    timestamp: datetime

    @classmethod
    def from_model(cls, message: Message) -> "MessageResponse":
        """Build a response from an ORM message with loaded participants."""
        return cls(
            id=message.id,
            sender_username=message.sender.username,
            receiver_username=message.receiver.username,
            ciphertext=message.ciphertext,
            message_type=message.message_type,
            nonce=message.nonce,
            file_url=message.file_url,
            original_filename=message.original_filename,
            timestamp=as_utc(message.created_at),
        )
