"""In-process event bus between the billing/catalog subsystems and us.

Handlers are subscribed explicitly by the composition root
(``subscribe_adapters`` in container.py), not by import side effects.
``publish`` calls them synchronously, in subscription order, on the
caller's thread.

A handler that raises is logged, counted in
``event_handler_failures_total`` and skipped; the remaining handlers
still run and ``publish`` itself never raises.  Event sources do not
expect their callbacks to interrupt them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from enrollsync.core.metrics import EVENT_HANDLER_FAILURES

logger = logging.getLogger(__name__)

# Billing subsystem events
CHECKOUT_COMPLETED = "billing.checkout_completed"
LEVEL_CHANGED = "billing.level_changed"
BULK_LEVELS_CHANGED = "billing.bulk_levels_changed"
ORDER_REFUNDED = "billing.order_refunded"

# Catalog subsystem events
ENROLLMENT_COMPLETED = "catalog.enrollment_completed"

EventHandler = Callable[..., Any]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def handlers(self, event: str) -> list[EventHandler]:
        return list(self._handlers.get(event, []))

    def publish(self, event: str, *args: Any) -> list[Any]:
        """Deliver an event; returns each successful handler's result."""
        results: list[Any] = []
        handlers = self._handlers.get(event, [])
        if not handlers:
            logger.debug("No handlers subscribed to %s", event)
        for handler in handlers:
            try:
                results.append(handler(*args))
            except Exception:
                logger.exception(
                    "Handler %s failed for %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    event,
                )
                EVENT_HANDLER_FAILURES.labels(event=event).inc()
        return results
