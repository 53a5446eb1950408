"""Single-pass admission decision.

Gates run cheapest first: the once-per-day marker needs no store access,
the concurrency gate runs before the quota gate so capacity rejections do
not consume the daily counter. Store outages fail open.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from gatekeeper import metrics
from gatekeeper.logger import short_token
from gatekeeper.models import Admitted, AdmissionOutcome, Rejected, RejectReason
from gatekeeper.services.day_key import daily_counter_key, get_day_key
from gatekeeper.services.liveness import LivenessTracker
from gatekeeper.services.markers import ClientIdentity, mint_session_token
from gatekeeper.services.store import KVStore, StoreUnavailable

logger = logging.getLogger(__name__)


class AdmissionEngine:
    def __init__(
        self,
        store: KVStore,
        liveness: LivenessTracker,
        *,
        daily_limit: int = 1000,
        concurrent_limit: int = 100,
        day_key_tz: str = "UTC",
        token_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self.liveness = liveness
        self.daily_limit = daily_limit
        self.concurrent_limit = concurrent_limit
        self.day_key_tz = day_key_tz
        self.token_factory = token_factory or mint_session_token

    def today(self, now: datetime) -> str:
        return get_day_key(now, self.day_key_tz)

    def _over_quota(self, total: int, counted_now: bool) -> bool:
        # Compare against the counter as it stood before this visit. With
        # strict ">" the day admits daily_limit + 1 first visits.
        before = total - 1 if counted_now else total
        return before > self.daily_limit

    async def decide(self, identity: ClientIdentity, now: datetime) -> AdmissionOutcome:
        """Run every gate against one captured instant ``now``."""
        today = self.today(now)

        if identity.has_used_today:
            return self._reject(Rejected(day=today, reason=RejectReason.ONCE_PER_DAY))

        total: int | None = None
        concurrent: int | None = None
        counted = False
        try:
            concurrent = await self.liveness.count_live(now)
            if concurrent >= self.concurrent_limit:
                return self._reject(
                    Rejected(
                        day=today,
                        reason=RejectReason.CONCURRENCY_LIMIT,
                        concurrent_users=concurrent,
                    )
                )

            counter_key = daily_counter_key(today)
            if identity.is_first_visit_today:
                total = await self.store.increment(counter_key)
                counted = True
            else:
                total = int(await self.store.get(counter_key) or 0)

            if self._over_quota(total, counted):
                return self._reject(
                    Rejected(
                        day=today,
                        reason=RejectReason.DAILY_LIMIT,
                        total=total,
                        first_visit=counted,
                    )
                )
        except StoreUnavailable as exc:
            return await self._admit_degraded(identity, today, now, exc, counted, total)

        token, minted = self._resolve_token(identity)
        try:
            await self.liveness.touch(token, now)
            concurrent = await self.liveness.count_live(now)
        except StoreUnavailable as exc:
            logger.warning(
                "Admitted without liveness record: %s",
                exc,
                extra={"session": short_token(token)},
            )
            metrics.admission_requests_total.labels(outcome="degraded").inc()
            return Admitted(
                day=today,
                session_token=token,
                total=total,
                concurrent_users=None,
                token_minted=minted,
                first_visit=counted,
                degraded=True,
            )

        metrics.admission_requests_total.labels(outcome="admitted").inc()
        logger.info(
            "Admitted session (total=%s, concurrent=%s)",
            total,
            concurrent,
            extra={"session": short_token(token)},
        )
        return Admitted(
            day=today,
            session_token=token,
            total=total,
            concurrent_users=concurrent,
            token_minted=minted,
            first_visit=counted,
        )

    def _resolve_token(self, identity: ClientIdentity) -> tuple[str, bool]:
        if identity.session_token:
            return identity.session_token, False
        return self.token_factory(), True

    async def _admit_degraded(
        self,
        identity: ClientIdentity,
        today: str,
        now: datetime,
        exc: StoreUnavailable,
        counted: bool,
        total: int | None,
    ) -> Admitted:
        logger.warning("Store unavailable, admitting without enforcement: %s", exc, extra={"op": exc.op})
        metrics.admission_requests_total.labels(outcome="degraded").inc()
        token, minted = self._resolve_token(identity)
        try:
            await self.liveness.touch(token, now)
        except StoreUnavailable:
            logger.warning(
                "Liveness record not written", extra={"session": short_token(token)}
            )
        return Admitted(
            day=today,
            session_token=token,
            total=total,
            concurrent_users=None,
            token_minted=minted,
            first_visit=counted,
            degraded=True,
        )

    def _reject(self, outcome: Rejected) -> Rejected:
        metrics.admission_requests_total.labels(outcome="rejected").inc()
        metrics.admission_reject_total.labels(reason=outcome.reason.value).inc()
        logger.info("Admission rejected", extra={"reason": outcome.reason.value})
        return outcome
