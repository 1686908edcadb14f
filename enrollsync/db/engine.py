"""SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- a synchronous engine (the reconciliation engine runs on the caller's
  thread, so there is no event loop to hand sessions to)
- a session factory the Sql* gateways open short-lived sessions from
- FastAPI lifespan hook for startup/shutdown

When DATABASE_URL is None (no database configured), all exports are None
and the container falls back to in-memory gateways.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from enrollsync.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine: Engine | None = create_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_pre_ping=True,
    )
    session_factory: sessionmaker[Session] | None = create_session_factory(engine)
else:
    engine = None
    session_factory = None


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory gateways")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    engine.dispose()
    logger.info("Database engine disposed")
