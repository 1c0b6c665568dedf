"""Friendship-related Pydantic schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from securechat.models.relationship import RelationshipStatus


class FriendRequestCreate(BaseModel):
    """Schema for sending a friend request."""

    addressee_username: str = Field(..., min_length=1, description="Username to befriend")


class PeerRequest(BaseModel):
    """Body naming the other party of a relationship operation."""

    username: str = Field(..., min_length=1)


class RelationshipResponse(BaseModel):
    """Outcome of a relationship transition."""

    requester_username: str
    addressee_username: str
    status: RelationshipStatus
    action_username: str | None = None
    message: str


class FriendStatusResponse(BaseModel):
    """A friend or blocked peer together with their public keys."""

    id: uuid.UUID
    username: str
    nickname: str
    status: RelationshipStatus
    signing_public_key: str | None
    key_exchange_public_key: str | None

    model_config = ConfigDict(from_attributes=True)


class PendingRequestResponse(BaseModel):
    """An incoming friend request awaiting a decision."""

    requester_id: uuid.UUID
    username: str
    nickname: str
    sent_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthorizationStatusResponse(BaseModel):
    """Whether the caller may currently exchange messages with a peer."""

    username: str
    allowed: bool
    reason: str | None = None
