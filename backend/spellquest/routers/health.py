from fastapi import APIRouter

from ..settings import settings
from .. import sync

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "gemini_configured": bool(settings.gemini_api_key),
        "storage_version": settings.storage_version,
        "sync_clients": sync.subscriber_count(),
    }
