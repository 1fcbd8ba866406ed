"""Reaction-count change notifications.

Listeners subscribe to a ``(thread_id, segment_id)`` key and receive the
recomputed count map after every reaction insert or delete on that key.
With Redis configured and the listener running, snapshots travel through
Redis pub/sub so every API process sees them; otherwise they are dispatched
in-process.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID

import redis

from .cache import get_redis_client, publish

logger = logging.getLogger(__name__)

ReactionKey = Tuple[UUID, Optional[UUID]]
Listener = Callable[[Dict[str, int]], None]

CHANNEL_PREFIX = "reactions"


def channel_for(thread_id: UUID, segment_id: UUID | None) -> str:
    return f"{CHANNEL_PREFIX}:{thread_id}:{segment_id or 'thread'}"


def _parse_channel(channel: str) -> ReactionKey:
    _, thread_part, segment_part = channel.split(":", 2)
    return UUID(thread_part), None if segment_part == "thread" else UUID(segment_part)


class ReactionHub:
    """Registry of reaction-count listeners keyed by target."""

    def __init__(self):
        self._listeners: Dict[ReactionKey, Dict[int, Listener]] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pubsub_task = None
        self._running = False

    def subscribe(
        self, thread_id: UUID, segment_id: UUID | None, listener: Listener
    ) -> Callable[[], None]:
        """Register a listener and return a function that unregisters it."""
        key = (thread_id, segment_id)
        listener_id = next(self._ids)
        with self._lock:
            self._listeners.setdefault(key, {})[listener_id] = listener

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key)
                if listeners is None:
                    return
                listeners.pop(listener_id, None)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def listener_count(self) -> int:
        with self._lock:
            return sum(len(listeners) for listeners in self._listeners.values())

    def dispatch(self, thread_id: UUID, segment_id: UUID | None, counts: Dict[str, int]) -> None:
        """Deliver a snapshot to this process's listeners for the key."""
        key = (thread_id, segment_id)
        with self._lock:
            listeners = list(self._listeners.get(key, {}).items())

        failed = []
        for listener_id, listener in listeners:
            try:
                listener(dict(counts))
            except Exception as e:
                logger.error(f"Reaction listener failed for {key}: {e}")
                failed.append(listener_id)

        if failed:
            with self._lock:
                remaining = self._listeners.get(key, {})
                for listener_id in failed:
                    remaining.pop(listener_id, None)
                if key in self._listeners and not remaining:
                    del self._listeners[key]

    def publish(self, thread_id: UUID, segment_id: UUID | None, counts: Dict[str, int]) -> None:
        """Announce a new snapshot for a key, across processes when Redis is running."""
        if self._running:
            payload = {"counts": counts}
            if publish(channel_for(thread_id, segment_id), payload):
                return
        self.dispatch(thread_id, segment_id, counts)

    async def start_redis_listener(self):
        """Start the Redis pub/sub listener. No-op without Redis."""
        if self._running:
            return
        if get_redis_client() is None:
            logger.info("Redis not configured, reaction updates stay in-process")
            return

        self._running = True
        self._pubsub_task = asyncio.create_task(self._redis_listener())
        logger.info("Redis Pub/Sub listener started")

    async def stop_redis_listener(self):
        """Stop the Redis pub/sub listener."""
        if not self._running:
            return
        self._running = False
        if self._pubsub_task:
            self._pubsub_task.cancel()
            try:
                await self._pubsub_task
            except asyncio.CancelledError:
                pass
            self._pubsub_task = None
        logger.info("Redis Pub/Sub listener stopped")

    async def _redis_listener(self):
        """Forward Redis pub/sub messages to local listeners."""
        client = get_redis_client()
        if client is None:
            logger.error("Redis not available, cannot start Pub/Sub listener")
            self._running = False
            return

        pubsub = client.pubsub()
        pubsub.psubscribe(f"{CHANNEL_PREFIX}:*")

        try:
            while self._running:
                message = await asyncio.to_thread(pubsub.get_message, timeout=1.0)
                if not message or message["type"] != "pmessage":
                    continue
                try:
                    thread_id, segment_id = _parse_channel(message["channel"])
                    counts = json.loads(message["data"])["counts"]
                except (ValueError, KeyError, TypeError) as e:
                    logger.error(f"Ignoring malformed reaction message: {e}")
                    continue
                self.dispatch(thread_id, segment_id, counts)
        except redis.RedisError as e:
            logger.error(f"Redis listener error: {e}")
            self._running = False
        finally:
            try:
                pubsub.punsubscribe(f"{CHANNEL_PREFIX}:*")
                pubsub.close()
            except redis.RedisError as e:
                logger.error(f"Error closing Redis Pub/Sub: {e}")


# Global hub instance
reaction_hub = ReactionHub()
