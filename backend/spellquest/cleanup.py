from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import delete, or_
from sqlalchemy.orm import Session

from .models import AuthSession
from .settings import settings


logger = logging.getLogger(__name__)


def purge_stale_sessions(db: Session, days: Optional[int] = None) -> int:
    """Delete auth sessions with no activity in the retention window."""
    threshold = datetime.utcnow() - timedelta(days=days if days is not None else settings.session_retention_days)
    res = db.execute(
        delete(AuthSession).where(
            or_(
                AuthSession.last_activity_at < threshold,
                (AuthSession.last_activity_at.is_(None)) & (AuthSession.created_at < threshold),
            )
        )
    )
    db.commit()
    removed = res.rowcount or 0
    if removed:
        logger.info("Purged %s stale auth sessions", removed)
    return removed
