from fastapi import APIRouter, Depends

from gatekeeper.dependencies import get_store
from gatekeeper.services.store import KVStore, StoreUnavailable

router = APIRouter()


@router.get("/health")
async def health(store: KVStore = Depends(get_store)):
    try:
        await store.ping()
    except StoreUnavailable:
        return {"ok": True, "store": "down"}
    return {"ok": True, "store": "up"}
