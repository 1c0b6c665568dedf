"""Encrypted message endpoints for the SecureChat API."""

from __future__ import annotations

from fastapi import APIRouter, status

from securechat.api.dependencies import CurrentUserDep, MessagingServiceDep
from securechat.schemas.message import MessageResponse, SendMessageRequest

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: SendMessageRequest,
    current_user: CurrentUserDep,
    messaging: MessagingServiceDep,
) -> MessageResponse:
    """Store an end-to-end encrypted message and push it to the receiver if online."""
    return await messaging.send_message(current_user.id, payload)


@router.get("/{other_username}", response_model=list[MessageResponse])
async def get_conversation(
    other_username: str,
    current_user: CurrentUserDep,
    messaging: MessagingServiceDep,
) -> list[MessageResponse]:
    """Return the caller's conversation with ``other_username``, oldest first."""
    messages = messaging.get_conversation_with(current_user.id, other_username)
    return [MessageResponse.from_model(message) for message in messages]
