from fastapi import APIRouter

from . import session

router = APIRouter(prefix="/v1")
# enter, heartbeat, leave and the read-only stats view
router.include_router(session.router)
