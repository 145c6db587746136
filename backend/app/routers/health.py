from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import redis

from app.core.redis_client import get_redis
from app.db import session as session_module

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        with session_module.SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise HTTPException(status_code=503, detail="db not ready") from e

    try:
        get_redis().ping()
    except redis.RedisError as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready"}
