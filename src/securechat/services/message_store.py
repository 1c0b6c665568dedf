"""Persistence and queries for messages.

The store only stages changes on the session it is given; committing is the
job of whichever service owns the surrounding unit of work.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.orm import Session, selectinload

from securechat.models import Message


def _between(user_a: uuid.UUID, user_b: uuid.UUID):
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


class MessageStore:
    """Data access for the message table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def save(self, message: Message) -> Message:
        """Stage a new message and flush it so it receives its id."""
        self.db.add(message)
        self.db.flush()
        return message

    def conversation(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Sequence[Message]:
        """Return every message between two identities, oldest first."""
        stmt = (
            select(Message)
            .where(_between(user_a, user_b))
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .order_by(Message.id.asc())
        )
        return self.db.scalars(stmt).all()

    def purge_conversation(self, user_a: uuid.UUID, user_b: uuid.UUID) -> int:
        """Delete every message between two identities and return the count."""
        result = self.db.execute(
            delete(Message).where(_between(user_a, user_b)).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def count_between(self, user_a: uuid.UUID, user_b: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(Message).where(_between(user_a, user_b))
        return self.db.scalar(stmt) or 0
