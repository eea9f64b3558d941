from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

from insomnia_fuel.models.order import Order

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"
ORDER_PAYMENT_STATUS_CHANGED = "order.payment_status.changed"

Handler = Callable[[dict[str, Any]], None]

logger = logging.getLogger(__name__)


class EventBus:
    """In-process fan-out; a failing handler never breaks the caller."""

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        handlers = list(self._handlers.get(event_name, []))
        if not handlers:
            logger.debug("no handlers for %s", event_name)
            return
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("event handler failed for %s", event_name)


event_bus = EventBus()


def build_order_payload(order: Order, **extra: Any) -> dict[str, Any]:
    payload = {
        "order_id": order.id,
        "stripe_session_id": order.stripe_session_id,
        "user_id": order.user_id,
        "user_name": order.user_name,
        "email": order.email,
        "status": order.status,
        "payment_status": order.payment_status,
        "total": str(order.total),
        "currency": order.currency,
        "items": [
            {"name": item.name, "quantity": item.quantity, "price": str(item.unit_price)}
            for item in order.items
        ],
    }
    payload.update(extra)
    return payload


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, build_order_payload(order))


def emit_order_status_changed(order: Order, previous_status: str | None) -> None:
    if previous_status == order.status:
        return
    event_bus.emit(ORDER_STATUS_CHANGED, build_order_payload(order, previous_status=previous_status))


def emit_payment_status_changed(order: Order, previous_payment_status: str | None) -> None:
    if previous_payment_status == order.payment_status:
        return
    event_bus.emit(
        ORDER_PAYMENT_STATUS_CHANGED,
        build_order_payload(order, previous_payment_status=previous_payment_status),
    )
