"""Health and readiness endpoints.

LIVENESS vs READINESS
---------------------
  /health (liveness):
    "Is this process alive?"  Always 200; the body reports dependency
    status so an operator can see a degraded instance at a glance.

  /ready (readiness):
    "Can this instance reconcile right now?"  503 when the configured
    database is unreachable: every event would otherwise be absorbed
    and logged as a failure.  Redis is not critical, a cache outage only
    costs recomputation.

HEALTH RESPONSE STRUCTURE
-------------------------
  status:        overall health ("ok" or "degraded")
  checks:        per-dependency status (database, redis)
  capabilities:  which collaborating subsystems this instance sees
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from enrollsync.db import engine as db
from enrollsync.db import redis as cache_db
from enrollsync.services.container import Container, get_container

router = APIRouter(tags=["health"])


def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        with db.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except SQLAlchemyError:
        return "degraded"


def _redis_status() -> str:
    if cache_db.redis_client is None:
        return "not_configured"
    try:
        cache_db.redis_client.ping()
        return "ok"
    except RedisError:
        return "degraded"


@router.get("/health")
def health(container: Annotated[Container, Depends(get_container)]) -> dict:
    """Liveness probe + dependency status.

    Returns 200 even when degraded; the status field carries the actual
    health.
    """
    checks = {"database": _database_status(), "redis": _redis_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "checks": checks,
        "capabilities": {
            "course_catalog": container.capabilities.course_catalog_available(),
            "bundle_addon": container.capabilities.bundle_addon_available(),
        },
    }


@router.get("/ready")
def ready() -> Response:
    """Readiness probe: 503 while a configured database is unreachable."""
    if _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
