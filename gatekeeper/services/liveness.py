"""Session liveness records and the shared online-session pool.

Two layers of expiry apply to a session:

* ``session:<token>`` holds the last-active timestamp (epoch ms) and expires
  on its own after ``session_ttl_s``.
* ``online_sessions`` is a plain set with no per-member expiry. A member is
  only counted while its record is younger than ``stale_after_s``; older or
  missing records are purged from the pool by whichever request counts it.

There is no background sweep. ``count_live`` is both the query and the
garbage collector.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from gatekeeper import metrics
from gatekeeper.logger import short_token
from gatekeeper.services.day_key import to_epoch_ms
from gatekeeper.services.store import KVStore, StoreUnavailable

logger = logging.getLogger(__name__)

ONLINE_SESSIONS_KEY = "online_sessions"


def session_key(token: str) -> str:
    return f"session:{token}"


def _parse_ms(raw: str | None) -> int:
    try:
        return int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        return 0


class LivenessTracker:
    def __init__(self, store: KVStore, *, ttl_s: int = 600, stale_after_s: int = 300):
        if stale_after_s >= ttl_s:
            raise ValueError("stale_after_s must be shorter than ttl_s")
        self.store = store
        self.ttl_s = ttl_s
        self.stale_after_ms = stale_after_s * 1000

    async def touch(self, token: str, now: datetime) -> None:
        """Refresh the liveness record and make sure the token is in the pool."""
        await self.store.set_with_expiry(session_key(token), to_epoch_ms(now), self.ttl_s)
        await self.store.add_to_set(ONLINE_SESSIONS_KEY, token)

    async def release(self, token: str) -> None:
        """Vacate the slot held by ``token``."""
        await self.store.remove_from_set(ONLINE_SESSIONS_KEY, token)
        await self.store.delete(session_key(token))

    async def _last_active(self, token: str) -> int | None:
        # None means the read failed; such members are counted as live
        try:
            raw = await self.store.get(session_key(token))
        except StoreUnavailable:
            logger.warning(
                "Liveness read failed, counting session as live",
                extra={"session": short_token(token)},
            )
            return None
        return _parse_ms(raw)

    async def count_live(self, now: datetime) -> int:
        members = await self.store.list_set(ONLINE_SESSIONS_KEY)
        if not members:
            metrics.concurrent_sessions.set(0)
            return 0

        now_ms = to_epoch_ms(now)
        last_seen = await asyncio.gather(*(self._last_active(m) for m in members))

        live = 0
        stale: list[str] = []
        for token, last_active in zip(members, last_seen):
            if last_active is None or now_ms - last_active < self.stale_after_ms:
                live += 1
            else:
                stale.append(token)

        if stale:
            await self._purge(stale)
        metrics.concurrent_sessions.set(live)
        return live

    async def _purge(self, tokens: list[str]) -> None:
        results = await asyncio.gather(
            *(self.release(t) for t in tokens), return_exceptions=True
        )
        purged = 0
        for token, result in zip(tokens, results):
            if isinstance(result, StoreUnavailable):
                # Still excluded from the count; the next reader retries.
                logger.warning(
                    "Failed to purge stale session",
                    extra={"session": short_token(token)},
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                purged += 1
        if purged:
            metrics.stale_sessions_purged_total.inc(purged)
            logger.info("Purged %s stale sessions", purged)
