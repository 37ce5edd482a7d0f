"""Health check endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
def health_check(db: Session = Depends(get_db)) -> dict:
    """Report service liveness and database reachability."""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception:
        logger.exception("Database health check failed")
        database = "error"
    return {"status": "healthy" if database == "ok" else "degraded", "database": database}
