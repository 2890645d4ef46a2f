# backend/storefront/routes/system.py
"""
System health endpoint.

Checks the database and the cache backend; used by load balancers and
deployment checks.
"""

import time

import redis
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db, cache
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_cache_health() -> dict:
    """
    A broken cache only degrades the service: reads fall through to the
    database, but writes fail while invalidation is impossible.
    """
    start_time = time.time()
    backend = current_app.config.get("CACHE_BACKEND", "memory")
    try:
        cache.backend.get("health:ping")
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "backend": backend, "latency_ms": round(elapsed_ms, 2)}
    except redis.exceptions.RedisError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.warning("Cache health check failed", exc_info=True)
        return {
            "status": "degraded",
            "backend": backend,
            "latency_ms": round(elapsed_ms, 2),
            "error": "Cache unreachable",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    cache_health = check_cache_health()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif cache_health["status"] != "healthy":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "cache": cache_health,
        },
    }, http_status
