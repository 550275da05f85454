"""Idempotency protection for payment operations."""

import hashlib
import json
import logging
from typing import Any
from uuid import UUID

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "checkout_create", "refund_create")
        entity_id: Primary entity ID
        params: Additional parameters to include in key

    Returns:
        SHA256 hash of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.sha256(key_str.encode()).hexdigest()


class ProcessedEventStore:
    """Redis-backed record of webhook events already handled.

    Entries expire after ``ttl_seconds``. Lookups fail open when Redis is
    unavailable: the guarded booking transitions keep replays harmless, this
    store only saves the work.
    """

    def __init__(self, ttl_seconds: int | None = None, key_prefix: str = "webhook_event"):
        self.ttl_seconds = ttl_seconds or settings.processed_event_ttl_seconds
        self.key_prefix = key_prefix
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    def _key(self, event_id: str) -> str:
        return f"{self.key_prefix}:{event_id}"

    async def is_processed(self, event_id: str) -> bool:
        try:
            redis_client = await self.get_redis()
            return bool(await redis_client.exists(self._key(event_id)))
        except redis.RedisError as e:
            logger.warning(f"Processed-event lookup unavailable for {event_id}: {e}")
            return False

    async def mark_processed(self, event_id: str) -> None:
        try:
            redis_client = await self.get_redis()
            await redis_client.set(self._key(event_id), "1", ex=self.ttl_seconds)
        except redis.RedisError as e:
            logger.warning(f"Could not record processed event {event_id}: {e}")


processed_event_store = ProcessedEventStore()
