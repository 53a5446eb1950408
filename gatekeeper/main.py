from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from gatekeeper import dependencies
from gatekeeper.controllers import health, v1
from gatekeeper.logger import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = dependencies.settings
    logger.info(
        "Admission limits: daily=%s concurrent=%s",
        settings.daily_limit,
        settings.concurrent_limit,
    )
    yield
    await dependencies.redis_client.aclose()

if sys.version_info[:2] < (3, 11):
    raise RuntimeError("Python 3.11+ is required")

app = FastAPI(
    title="Gatekeeper Admission API",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(v1.router)
app.include_router(health.router)

Instrumentator().instrument(app).expose(app)
