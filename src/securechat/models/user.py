"""SQLAlchemy model for registered identities."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from securechat.db.session import Base
from securechat.db.time import utcnow


class User(Base):
    """A registered identity addressed by a unique, immutable username.

    Public key material is uploaded separately by the client and may be
    absent until then. The server stores it verbatim and never holds the
    matching private keys.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    nickname: Mapped[str] = mapped_column(String(128), nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)

    signing_public_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_exchange_public_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(onupdate=utcnow, nullable=True)

    def __repr__(self) -> str:
        return f"User(username={self.username!r})"
