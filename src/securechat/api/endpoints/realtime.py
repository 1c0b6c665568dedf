"""WebSocket endpoint for real-time message delivery."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState

from securechat.api.dependencies import AuthServiceDep, RegistryDep, SessionDep
from securechat.core.errors import InvalidTokenError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class WebSocketChannel:
    """Adapts a FastAPI WebSocket to the registry's channel interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send_json(self, payload: dict[str, Any]) -> None:
        await self.websocket.send_json(payload)

    async def close(self) -> None:
        if self.websocket.application_state is WebSocketState.CONNECTED:
            await self.websocket.close(code=status.WS_1011_INTERNAL_ERROR)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    db: SessionDep,
    auth: AuthServiceDep,
    registry: RegistryDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate with ``?token=`` and then receive pushed messages.

    Unauthenticated sockets are closed with a policy violation before they
    are accepted, so they never reach the registry.
    """
    try:
        user = auth.validate_session_token(token)
    except InvalidTokenError:
        logger.warning("WebSocket rejected: invalid or missing token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id, username = user.id, user.username
    # End the lookup transaction so an idle socket does not pin a connection.
    db.rollback()

    await websocket.accept()
    channel = WebSocketChannel(websocket)
    registry.register(user_id, channel)
    logger.info("WebSocket connected for '%s'", username)
    try:
        while websocket.application_state is WebSocketState.CONNECTED:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for '%s'", username)
    finally:
        registry.unregister(user_id, channel)
