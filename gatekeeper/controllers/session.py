from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from gatekeeper import metrics
from gatekeeper.dependencies import (
    ErrorResponse,
    get_engine,
    get_liveness,
    get_marker_writer,
    get_store,
    settings,
    store_unavailable,
)
from gatekeeper.logger import short_token
from gatekeeper.models import Admitted, ErrorCode, RejectReason, Rejected
from gatekeeper.models.admission import REJECT_MESSAGES
from gatekeeper.services.admission import AdmissionEngine
from gatekeeper.services.day_key import daily_counter_key, get_day_key, utc_now
from gatekeeper.services.liveness import LivenessTracker
from gatekeeper.services.markers import (
    MarkerWriter,
    resolve_identity,
    session_token_from,
)
from gatekeeper.services.store import KVStore, StoreUnavailable

logger = logging.getLogger(__name__)

router = APIRouter()


def _admitted_body(outcome: Admitted) -> dict:
    return {
        "allowed": True,
        "total": outcome.total,
        "concurrentUsers": outcome.concurrent_users,
        "sessionToken": outcome.session_token,
        "heartbeatIntervalSeconds": settings.heartbeat_interval_s,
    }


def _rejected_body(outcome: Rejected) -> dict:
    body = {
        "allowed": False,
        "reason": outcome.reason.value,
        "message": outcome.message,
    }
    if outcome.total is not None:
        body["total"] = outcome.total
    if outcome.concurrent_users is not None:
        body["concurrentUsers"] = outcome.concurrent_users
    return body


@router.api_route("/enter", methods=["GET", "POST"])
async def enter(
    request: Request,
    engine: AdmissionEngine = Depends(get_engine),
    markers: MarkerWriter = Depends(get_marker_writer),
):
    """Decide whether this client may start a session now."""
    now = utc_now()
    try:
        with metrics.admission_latency_seconds.time():
            identity = resolve_identity(request.cookies, engine.today(now))
            outcome = await engine.decide(identity, now)
    except Exception:
        logger.exception("Admission failed")
        metrics.admission_requests_total.labels(outcome="error").inc()
        return JSONResponse(
            status_code=500,
            content={
                "allowed": False,
                "reason": RejectReason.SERVER_ERROR.value,
                "message": REJECT_MESSAGES[RejectReason.SERVER_ERROR],
            },
        )

    if isinstance(outcome, Rejected):
        response = JSONResponse(status_code=200, content=_rejected_body(outcome))
        if outcome.first_visit:
            markers.mark_visited(response, outcome.day)
        return response

    response = JSONResponse(status_code=200, content=_admitted_body(outcome))
    if outcome.first_visit:
        markers.mark_visited(response, outcome.day)
    if outcome.token_minted:
        markers.set_session_token(response, outcome.session_token)
    markers.mark_used(response, outcome.day)
    return response


@router.post(
    "/session/heartbeat",
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def heartbeat(
    request: Request, liveness: LivenessTracker = Depends(get_liveness)
):
    token = session_token_from(request.cookies, request.headers)
    if token is None:
        err = ErrorResponse(code=ErrorCode.BAD_REQUEST, message="Missing session token")
        raise HTTPException(status_code=400, detail=err.model_dump())
    try:
        await liveness.touch(token, utc_now())
    except StoreUnavailable as exc:
        raise store_unavailable() from exc
    return {"ok": True}


@router.post("/session/leave", responses={503: {"model": ErrorResponse}})
async def leave(request: Request, liveness: LivenessTracker = Depends(get_liveness)):
    """Vacate the caller's concurrency slot. Best effort from the client side."""
    token = session_token_from(request.cookies, request.headers)
    if token is None:
        return {"ok": True}
    try:
        await liveness.release(token)
    except StoreUnavailable as exc:
        raise store_unavailable() from exc
    logger.info("Session left", extra={"session": short_token(token)})
    return {"ok": True}


@router.get("/stats", responses={503: {"model": ErrorResponse}})
async def stats(
    store: KVStore = Depends(get_store),
    liveness: LivenessTracker = Depends(get_liveness),
):
    now = utc_now()
    today = get_day_key(now, settings.day_key_tz)
    try:
        total = int(await store.get(daily_counter_key(today)) or 0)
        concurrent = await liveness.count_live(now)
    except StoreUnavailable as exc:
        raise store_unavailable() from exc
    return {
        "date": today,
        "total": total,
        "concurrentUsers": concurrent,
        "dailyLimit": settings.daily_limit,
        "concurrentLimit": settings.concurrent_limit,
    }
