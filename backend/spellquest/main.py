import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, get_db, ensure_schema, SessionLocal
from .cleanup import purge_stale_sessions
from .logging_config import configure_logging
from .settings import settings
from .store import Store, notifier
from . import sync
from .routers import health
from .routers import auth
from .routers import students
from .routers import lessons
from .routers import teacher
from .routers import placement
from .routers import reading
from .routers import tudor


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="SpellQuest API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(students.router)
app.include_router(lessons.router)
app.include_router(teacher.router)
app.include_router(placement.router)
app.include_router(reading.router)
app.include_router(tudor.router)
app.include_router(sync.router)


@app.get("/info")
def root():
    return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


def _purge_once() -> None:
    db = next(get_db())
    try:
        purge_stale_sessions(db)
    finally:
        db.close()


async def _cleanup_watcher():
    # Startup already ran one pass; repeat daily
    while True:
        await asyncio.sleep(24 * 60 * 60)
        try:
            _purge_once()
        except Exception:
            logger.exception("Auth session cleanup failed")


@app.on_event("startup")
async def startup_event():
    # Initialize DB schema
    Base.metadata.create_all(bind=engine)
    # Apply lightweight dev migrations
    ensure_schema()
    db = SessionLocal()
    try:
        migrated_from = Store(db, notifier).migrate_legacy_data()
        if migrated_from:
            logger.info("Carried records forward from %s", migrated_from)
    finally:
        db.close()
    try:
        _purge_once()
    except Exception:
        logger.exception("Auth session cleanup failed")
    sync.attach(notifier)
    app.state.cleanup_task = asyncio.create_task(_cleanup_watcher())


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "cleanup_task", None)
    if task is not None:
        task.cancel()
