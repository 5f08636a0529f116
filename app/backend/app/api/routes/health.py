"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.dependencies import get_db_session

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    settings = get_settings()
    return {"status": "ok", "environment": settings.app_env}


@router.get("/health/ready")
def readiness(db: Session = Depends(get_db_session)) -> dict[str, str]:
    """Report whether the database answers a trivial query."""

    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        LOGGER.warning("readiness_check_failed error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is unavailable.",
        ) from exc
    return {"status": "ready", "database": "ok"}
