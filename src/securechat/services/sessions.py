"""Session registry and real-time dispatcher.

Maps an authenticated identity to its live delivery channel(s) and pushes
notifications to them. Delivery is best effort: it is bounded by a timeout,
never retried, and a channel that fails is dropped from the registry and
closed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from securechat.core.settings import settings

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Anything that can push a JSON payload to one connected client."""

    async def send_json(self, payload: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class DeliveryResult(str, enum.Enum):
    DELIVERED = "delivered"
    NOT_CONNECTED = "not_connected"


@dataclass(eq=False)
class _Binding:
    channel: Channel
    # Serializes sends on one channel so clients see payloads in call order.
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionRegistry:
    """Concurrency-safe ``identity -> channels`` map.

    Connect and disconnect events race with in-flight deliveries, so the map
    is only touched under ``_lock`` and deliveries work on a snapshot.
    """

    def __init__(
        self,
        max_channels_per_user: int | None = None,
        delivery_timeout: float | None = None,
    ) -> None:
        if max_channels_per_user is None:
            max_channels_per_user = settings.max_channels_per_user
        if max_channels_per_user < 1:
            raise ValueError("max_channels_per_user must be at least 1")
        self.max_channels_per_user = max_channels_per_user
        self.delivery_timeout = (
            delivery_timeout if delivery_timeout is not None else settings.delivery_timeout_seconds
        )
        self._lock = threading.Lock()
        self._bindings: dict[uuid.UUID, list[_Binding]] = {}

    def register(self, identity_id: uuid.UUID, channel: Channel) -> None:
        """Bind ``channel`` to ``identity_id``.

        With the default limit of one channel the newest registration replaces
        the previous one. Above the limit the oldest binding is evicted.
        """
        with self._lock:
            bindings = self._bindings.setdefault(identity_id, [])
            bindings[:] = [b for b in bindings if b.channel is not channel]
            bindings.append(_Binding(channel))
            evicted = len(bindings) - self.max_channels_per_user
            if evicted > 0:
                del bindings[:evicted]
        logger.info("Channel registered for user %s", identity_id)

    def unregister(self, identity_id: uuid.UUID, channel: Channel) -> None:
        """Remove ``channel``; a channel that was already replaced is ignored."""
        with self._lock:
            self._remove(identity_id, channel)
        logger.info("Channel unregistered for user %s", identity_id)

    def _remove(self, identity_id: uuid.UUID, channel: Channel) -> None:
        bindings = self._bindings.get(identity_id)
        if bindings is None:
            return
        bindings[:] = [b for b in bindings if b.channel is not channel]
        if not bindings:
            del self._bindings[identity_id]

    def is_connected(self, identity_id: uuid.UUID) -> bool:
        with self._lock:
            return bool(self._bindings.get(identity_id))

    def channel_count(self, identity_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._bindings.get(identity_id, ()))

    async def _send(self, binding: _Binding, payload: dict[str, Any]) -> None:
        async with binding.send_lock:
            await binding.channel.send_json(payload)

    async def _close(self, identity_id: uuid.UUID, binding: _Binding) -> None:
        """Close a dropped channel so its client reconnects instead of idling."""
        try:
            await asyncio.wait_for(binding.channel.close(), timeout=self.delivery_timeout)
        except asyncio.TimeoutError:
            logger.warning("Closing dropped channel of user %s timed out", identity_id)
        except Exception as exc:
            logger.debug("Dropped channel of user %s was already gone (%s)", identity_id, exc)

    async def deliver(self, identity_id: uuid.UUID, payload: dict[str, Any]) -> DeliveryResult:
        """Push ``payload`` to every channel bound to ``identity_id``.

        Returns ``DELIVERED`` if at least one channel accepted the payload,
        otherwise ``NOT_CONNECTED``. Failed or timed-out channels are dropped
        and closed.
        """
        with self._lock:
            bindings = list(self._bindings.get(identity_id, ()))
        if not bindings:
            logger.debug("User %s has no live channel", identity_id)
            return DeliveryResult.NOT_CONNECTED

        delivered = False
        for binding in bindings:
            try:
                await asyncio.wait_for(self._send(binding, payload), timeout=self.delivery_timeout)
            except asyncio.TimeoutError:
                logger.warning("Delivery to user %s timed out; dropping channel", identity_id)
            except Exception as exc:
                logger.warning("Delivery to user %s failed (%s); dropping channel", identity_id, exc)
            else:
                delivered = True
                continue
            with self._lock:
                self._remove(identity_id, binding.channel)
            await self._close(identity_id, binding)

        if delivered:
            logger.debug("Payload delivered to user %s", identity_id)
            return DeliveryResult.DELIVERED
        return DeliveryResult.NOT_CONNECTED

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()


class _SessionRegistrySingleton:
    """Singleton wrapper for SessionRegistry."""

    _instance: SessionRegistry | None = None

    @classmethod
    def get_instance(cls) -> SessionRegistry:
        """Get or create the process-wide SessionRegistry."""
        if cls._instance is None:
            cls._instance = SessionRegistry()
        return cls._instance


def get_session_registry() -> SessionRegistry:
    """Return the shared session registry."""
    return _SessionRegistrySingleton.get_instance()
