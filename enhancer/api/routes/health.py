import os

from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from enhancer.core.config import settings
from enhancer.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness probe - returns 503 if database, Redis or storage are unavailable."""
    try:
        db.execute(text("SELECT 1"))

        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        redis_client.ping()
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}

    if not os.path.isdir(settings.storage_base_path):
        response.status_code = 503
        return {"status": "not_ready", "error": "storage path missing"}
    return {"status": "ready"}
