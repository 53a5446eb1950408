from __future__ import annotations

import logging

from fastapi import HTTPException
from pydantic import BaseModel

from gatekeeper.config import Settings
from gatekeeper.models import ErrorCode
from gatekeeper.services.admission import AdmissionEngine
from gatekeeper.services.liveness import LivenessTracker
from gatekeeper.services.markers import MarkerWriter
from gatekeeper.services.store import KVStore, make_redis_client

settings = Settings()
redis_client = make_redis_client(settings)


logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str


def store_unavailable() -> HTTPException:
    err = ErrorResponse(
        code=ErrorCode.SERVICE_UNAVAILABLE, message="Session store unavailable"
    )
    return HTTPException(status_code=503, detail=err.model_dump())


# Resolved per request so tests can swap ``redis_client`` and ``settings``.
def get_store() -> KVStore:
    return KVStore(redis_client)


def get_liveness() -> LivenessTracker:
    return LivenessTracker(
        get_store(),
        ttl_s=settings.session_ttl_s,
        stale_after_s=settings.stale_after_s,
    )


def get_engine() -> AdmissionEngine:
    return AdmissionEngine(
        get_store(),
        get_liveness(),
        daily_limit=settings.daily_limit,
        concurrent_limit=settings.concurrent_limit,
        day_key_tz=settings.day_key_tz,
    )


def get_marker_writer() -> MarkerWriter:
    return MarkerWriter(settings)
