import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import redis.asyncio as redis

from chatpulse.config import settings
from chatpulse.utils.websocket_manager import manager

logger = logging.getLogger(__name__)


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        return

    async def is_present(self, user_id: str) -> Optional[bool]:
        # unknown without Redis
        return None


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: Callable[[str], Awaitable[None]]):
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)

        class _Sub:
            _running = True

            async def run(self_inner):
                while self_inner._running:
                    try:
                        msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                        if msg and msg.get("type") == "message":
                            data = msg.get("data")
                            if isinstance(data, bytes):
                                data = data.decode("utf-8")
                            await on_message(data)
                    except redis.RedisError as e:
                        logger.warning(f"Subscription to {channel} interrupted: {e}")
                        await asyncio.sleep(0.5)

            async def cancel(self_inner):
                self_inner._running = False
                await pubsub.unsubscribe(channel)

        return _Sub()

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        await self._redis.set(f"presence:{user_id}", "online", ex=ttl_seconds)

    async def is_present(self, user_id: str) -> Optional[bool]:
        ttl = await self._redis.ttl(f"presence:{user_id}")
        return bool(ttl and ttl > 0)


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if not settings.REDIS_URL:
        _bus = NoopBus()
    else:
        _bus = RedisBus(settings.REDIS_URL)
        logger.info("Realtime bus using Redis")
    return _bus


def set_bus(bus) -> None:
    """Replace the process-wide bus (used by tests and alternate deployments)."""
    global _bus
    _bus = bus


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


async def fanout(user_ids: Iterable[str], event: Dict[str, Any]) -> None:
    """Deliver one event to each user, through Redis when enabled or local sockets otherwise."""
    bus = await get_bus()
    if not bus.enabled:
        for uid in user_ids:
            await manager.deliver(uid, event)
        return
    payload = json.dumps(event)
    for uid in user_ids:
        await bus.publish(user_channel(uid), payload)
