"""
Health check endpoint - no authentication required
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.health import HealthOut
from ..services.images import enabled_image_count

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthOut)
def health(db: Session = Depends(get_db)):
    try:
        count = enabled_image_count(db)
    except SQLAlchemyError as e:
        logger.error("Health check failed - database error: %s", e)
        raise HTTPException(status_code=503, detail="Database unavailable")
    return HealthOut(status="healthy", image_count=count)
