"""Thin async wrapper over the shared Redis store.

Only single-key primitives are exposed; nothing here spans keys in a
transaction. Every failure (connection, protocol or timeout) is converted
to :class:`StoreUnavailable` so callers handle one error type.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from gatekeeper import metrics
from gatekeeper.config import Settings

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """Raised when a store round-trip fails or times out."""

    def __init__(self, op: str):
        super().__init__(f"store call failed: {op}")
        self.op = op


def make_redis_client(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.store_timeout_s,
        socket_connect_timeout=settings.store_timeout_s,
    )


class KVStore:
    def __init__(self, client: Any):
        self.client = client

    async def _call(self, op: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await getattr(self.client, op)(*args, **kwargs)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            metrics.store_errors_total.labels(op=op).inc()
            logger.warning("Store call %s failed: %s", op, exc, extra={"op": op})
            raise StoreUnavailable(op) from exc

    async def get(self, key: str) -> str | None:
        return await self._call("get", key)

    async def increment(self, key: str) -> int:
        """Atomically increment ``key``, creating it at zero. No expiry is set."""
        return int(await self._call("incr", key))

    async def set_with_expiry(self, key: str, value: str | int, ttl_s: int) -> None:
        """Overwrite ``key`` and reset its TTL."""
        await self._call("set", key, str(value), ex=ttl_s)

    async def delete(self, key: str) -> None:
        await self._call("delete", key)

    async def add_to_set(self, set_key: str, member: str) -> None:
        await self._call("sadd", set_key, member)

    async def remove_from_set(self, set_key: str, member: str) -> None:
        await self._call("srem", set_key, member)

    async def list_set(self, set_key: str) -> list[str]:
        members = await self._call("smembers", set_key)
        return sorted(members or ())

    async def ping(self) -> bool:
        return bool(await self._call("ping"))
