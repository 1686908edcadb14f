from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from enrollsync.api.access import router as access_router
from enrollsync.api.admin import router as admin_router
from enrollsync.api.health import router as health_router
from enrollsync.api.hooks import router as hooks_router
from enrollsync.api.metrics_endpoint import router as metrics_router
from enrollsync.core.config import SETTINGS
from enrollsync.core.logging import setup_logging
from enrollsync.db.engine import lifespan_db
from enrollsync.db.redis import lifespan_redis
from enrollsync.middleware.metrics import MetricsMiddleware
from enrollsync.middleware.request_context import (
    RequestContextMiddleware,
    install_context_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="enrollsync",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(hooks_router)
app.include_router(admin_router)
app.include_router(access_router)

logger.info(
    "enrollsync started  env=%s log_level=%s port=%d catalog=%s bundles=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.course_catalog_enabled else "off",
    "on" if SETTINGS.bundle_addon_enabled else "off",
)
