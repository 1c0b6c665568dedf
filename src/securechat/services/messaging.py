"""Messaging service: authorized send and conversation fetch.

A send runs in two stages. The gate check and the insert share one pair
transaction, so a message is never stored for a pair that fails
authorization. Real-time delivery happens only after the commit and outside
the pair lock; its failure never undoes the send.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy.orm import Session

from securechat.core.errors import (
    InvalidStateError,
    NotAuthorizedError,
    SelfMessageError,
    ValidationError,
)
from securechat.models import Message, MessageType, User
from securechat.schemas.message import MessageResponse, SendMessageRequest
from securechat.services.identity import IdentityStore
from securechat.services.message_store import MessageStore
from securechat.services.relationships import RelationshipEngine
from securechat.services.sessions import DeliveryResult, SessionRegistry, get_session_registry

logger = logging.getLogger(__name__)


class MessagingService:
    """Orchestrates the gate, the message store and the session registry."""

    def __init__(
        self,
        db: Session,
        registry: SessionRegistry | None = None,
        relationships: RelationshipEngine | None = None,
        store: MessageStore | None = None,
        identities: IdentityStore | None = None,
    ) -> None:
        self.db = db
        self.store = store if store is not None else MessageStore(db)
        self.relationships = (
            relationships if relationships is not None else RelationshipEngine(db, message_store=self.store)
        )
        self.identities = identities if identities is not None else IdentityStore(db)
        self.registry = registry if registry is not None else get_session_registry()

    def _require_authorized(self, user_a: User, user_b: User) -> None:
        verdict = self.relationships.check_authorized(user_a.id, user_b.id)
        if not verdict.allowed:
            raise NotAuthorizedError(verdict.reason)

    @staticmethod
    def _validate_attachment(request: SendMessageRequest) -> None:
        if request.message_type is not MessageType.FILE:
            return
        if not (request.file_url or "").strip() or not (request.original_filename or "").strip():
            raise ValidationError("File messages require both a file URL and an original filename")

    async def send_message(self, sender_id: uuid.UUID, request: SendMessageRequest) -> MessageResponse:
        """Persist a message from ``sender_id`` and push it to the receiver.

        Raises:
            NotFoundError: sender or receiver does not exist
            SelfMessageError: sender and receiver are the same identity
            NotAuthorizedError: the relationship gate denied the pair
            ValidationError: a FILE message lacks its attachment fields
        """
        sender = self.identities.get_by_id(sender_id)
        receiver = self.identities.get_by_username(request.receiver_username)
        if sender.id == receiver.id:
            raise SelfMessageError()

        with self.relationships.transaction(sender.id, receiver.id, conflict=InvalidStateError):
            self._require_authorized(sender, receiver)
            self._validate_attachment(request)
            is_file = request.message_type is MessageType.FILE
            message = self.store.save(
                Message(
                    sender_id=sender.id,
                    receiver_id=receiver.id,
                    ciphertext=request.ciphertext,
                    message_type=request.message_type,
                    nonce=request.nonce,
                    file_url=request.file_url if is_file else None,
                    original_filename=request.original_filename if is_file else None,
                )
            )

        logger.info(
            "Message %s persisted from '%s' to '%s' (%s)",
            message.id,
            sender.username,
            receiver.username,
            message.message_type.value,
        )
        response = MessageResponse.from_model(message)
        await self._dispatch(receiver, response)
        return response

    async def _dispatch(self, receiver: User, response: MessageResponse) -> None:
        payload = {"type": "message", "message": response.model_dump(mode="json")}
        try:
            result = await self.registry.deliver(receiver.id, payload)
        except Exception:
            logger.warning("Real-time delivery of message %s failed", response.id, exc_info=True)
            return
        if result is DeliveryResult.DELIVERED:
            logger.info("Message %s pushed to '%s'", response.id, receiver.username)
        else:
            logger.debug("'%s' is offline; message %s kept for history", receiver.username, response.id)

    def get_conversation(self, user_a_id: uuid.UUID, user_b_id: uuid.UUID) -> Sequence[Message]:
        """Return the pair's messages, oldest first, if the gate allows it."""
        user_a = self.identities.get_by_id(user_a_id)
        user_b = self.identities.get_by_id(user_b_id)
        if user_a.id == user_b.id:
            raise SelfMessageError()
        self._require_authorized(user_a, user_b)
        return self.store.conversation(user_a.id, user_b.id)

    def get_conversation_with(self, caller_id: uuid.UUID, other_username: str) -> Sequence[Message]:
        """Resolve ``other_username`` and return the caller's conversation with them."""
        other = self.identities.get_by_username(other_username)
        return self.get_conversation(caller_id, other.id)
