"""Models describing the friendship/block link between two identities."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from securechat.db.session import Base
from securechat.db.time import utcnow
from securechat.models.user import User


class RelationshipStatus(str, enum.Enum):
    """Lifecycle states of a relationship row."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    BLOCKED = "BLOCKED"


class Relationship(Base):
    """The single authoritative record linking two identities.

    ``(requester_id, addressee_id)`` is fixed when the row is created and
    never changes afterwards. ``(pair_low, pair_high)`` holds the same two ids
    in canonical order so that the database rejects a second row for the
    pair in either direction.
    """

    __tablename__ = "relationships"
    __table_args__ = (
        UniqueConstraint("pair_low", "pair_high", name="uq_relationship_pair"),
    )

    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    addressee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    pair_low: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    pair_high: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    status: Mapped[RelationshipStatus] = mapped_column(
        Enum(RelationshipStatus, name="relationship_status"),
        nullable=False,
        default=RelationshipStatus.PENDING,
    )
    action_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id])
    addressee: Mapped[User] = relationship("User", foreign_keys=[addressee_id])

    def peer_of(self, user_id: uuid.UUID) -> uuid.UUID:
        """Return the id of the other participant."""
        return self.addressee_id if self.requester_id == user_id else self.requester_id

    def __repr__(self) -> str:
        return (
            f"Relationship(requester={self.requester_id}, addressee={self.addressee_id}, "
            f"status={self.status.value}, action_user={self.action_user_id})"
        )
