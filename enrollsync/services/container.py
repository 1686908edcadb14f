"""Composition root.

Builds the gateways (SQL when a session factory is available, in-memory
otherwise), the services on top of them, and subscribes the event
adapters to the bus.  Nothing in the service layer wires itself up at
import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from enrollsync.core.config import SETTINGS, Settings
from enrollsync.db.engine import session_factory as default_session_factory
from enrollsync.db.redis import redis_client as default_redis_client
from enrollsync.repos.billing_repo import BillingGateway, InMemoryBillingGateway
from enrollsync.repos.catalog_repo import CatalogGateway, InMemoryCatalogGateway
from enrollsync.repos.sql_billing_repo import SqlBillingGateway
from enrollsync.repos.sql_catalog_repo import SqlCatalogGateway
from enrollsync.services import event_bus as events
from enrollsync.services.access_cache import (
    AccessCache,
    InMemoryAccessCache,
    RedisAccessCache,
)
from enrollsync.services.access_checker import AccessChecker
from enrollsync.services.attribution import AttributionTagger
from enrollsync.services.bundle_cascade import BundleCascadeHandler
from enrollsync.services.capabilities import Capabilities, StaticCapabilities
from enrollsync.services.event_adapters import EnrollmentEventAdapters
from enrollsync.services.event_bus import EventBus
from enrollsync.services.reconciler import ReconciliationEngine
from enrollsync.services.resolver import LevelCourseResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Container:
    settings: Settings
    billing: BillingGateway
    catalog: CatalogGateway
    capabilities: Capabilities
    access_checker: AccessChecker
    engine: ReconciliationEngine
    tagger: AttributionTagger
    adapters: EnrollmentEventAdapters
    bus: EventBus


def subscribe_adapters(bus: EventBus, adapters: EnrollmentEventAdapters) -> None:
    bus.subscribe(events.CHECKOUT_COMPLETED, adapters.on_checkout_completed)
    # Access-model revoke runs before the diff on the same level change.
    bus.subscribe(events.LEVEL_CHANGED, adapters.on_level_access_cancelled)
    bus.subscribe(events.LEVEL_CHANGED, adapters.on_level_changed)
    bus.subscribe(events.BULK_LEVELS_CHANGED, adapters.on_bulk_level_changes)
    bus.subscribe(events.ORDER_REFUNDED, adapters.on_order_refunded)
    bus.subscribe(events.ENROLLMENT_COMPLETED, adapters.on_enrollment_completed)


def build_container(
    settings: Settings = SETTINGS,
    *,
    billing: BillingGateway | None = None,
    catalog: CatalogGateway | None = None,
    cache: AccessCache | None = None,
    capabilities: Capabilities | None = None,
    session_factory: sessionmaker[Session] | None = None,
    redis_client=None,
) -> Container:
    if billing is None:
        billing = (
            SqlBillingGateway(session_factory)
            if session_factory is not None
            else InMemoryBillingGateway()
        )
    if catalog is None:
        catalog = (
            SqlCatalogGateway(session_factory)
            if session_factory is not None
            else InMemoryCatalogGateway()
        )
    if cache is None:
        cache = (
            RedisAccessCache(redis_client)
            if redis_client is not None
            else InMemoryAccessCache()
        )
    if capabilities is None:
        capabilities = StaticCapabilities(
            course_catalog=settings.course_catalog_enabled,
            bundle_addon=settings.bundle_addon_enabled,
        )

    resolver = LevelCourseResolver(billing, catalog, capabilities)
    access_checker = AccessChecker(
        billing, catalog, resolver, cache, ttl_seconds=settings.access_cache_ttl
    )
    cascade = BundleCascadeHandler(catalog, access_checker)
    engine = ReconciliationEngine(catalog, resolver, capabilities, access_checker, cascade)
    tagger = AttributionTagger(
        catalog,
        access_checker,
        cascade,
        capabilities,
        membership_only=settings.membership_only,
        strategy=settings.attribution_strategy,
    )
    adapters = EnrollmentEventAdapters(billing, catalog, engine, tagger, capabilities)

    bus = EventBus()
    subscribe_adapters(bus, adapters)

    logger.info(
        "Container built: billing=%s catalog=%s cache=%s",
        type(billing).__name__,
        type(catalog).__name__,
        type(cache).__name__,
    )
    return Container(
        settings=settings,
        billing=billing,
        catalog=catalog,
        capabilities=capabilities,
        access_checker=access_checker,
        engine=engine,
        tagger=tagger,
        adapters=adapters,
        bus=bus,
    )


_container: Container | None = None


def get_container() -> Container:
    """FastAPI dependency returning the process-wide container.

    Built on first use from SETTINGS and the configured database/Redis
    clients.  Tests override this dependency with their own container.
    """
    global _container
    if _container is None:
        _container = build_container(
            SETTINGS,
            session_factory=default_session_factory,
            redis_client=default_redis_client,
        )
    return _container
