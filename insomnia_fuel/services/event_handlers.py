from __future__ import annotations

import logging

from insomnia_fuel.core.metrics import request_metrics
from insomnia_fuel.services.order_events import (
    ORDER_CREATED,
    ORDER_PAYMENT_STATUS_CHANGED,
    ORDER_STATUS_CHANGED,
    event_bus,
)

logger = logging.getLogger(__name__)


def format_order_lines(payload: dict) -> str:
    lines = [
        f"Order ID: {payload.get('order_id') or 'unknown'}",
        f"Customer: {payload.get('user_name') or 'Guest'} ({payload.get('email') or 'n/a'})",
        f"Total: ${payload.get('total')} {str(payload.get('currency') or '').upper()}",
        f"Status: {payload.get('status')}",
        "",
        "Items:",
    ]
    for item in payload.get("items") or []:
        lines.append(f"- {item['name']} x{item['quantity']} @ ${item['price']}")
    return "\n".join(lines)


def handle_order_created(payload: dict) -> None:
    request_metrics.increment("orders_created")
    logger.info(
        "new order received\n%s",
        format_order_lines(payload),
        extra={"order_id": payload.get("order_id"), "session_id": payload.get("stripe_session_id")},
    )


def handle_order_status_changed(payload: dict) -> None:
    request_metrics.increment(f"orders_status_{payload.get('status')}")
    logger.info(
        "order status %s -> %s",
        payload.get("previous_status"),
        payload.get("status"),
        extra={"order_id": payload.get("order_id")},
    )


def handle_payment_status_changed(payload: dict) -> None:
    request_metrics.increment(f"orders_payment_{payload.get('payment_status')}")
    if payload.get("payment_status") in {"refunded", "disputed"}:
        logger.warning(
            "order payment status %s -> %s",
            payload.get("previous_payment_status"),
            payload.get("payment_status"),
            extra={"order_id": payload.get("order_id")},
        )


event_bus.subscribe(ORDER_CREATED, handle_order_created)
event_bus.subscribe(ORDER_STATUS_CHANGED, handle_order_status_changed)
event_bus.subscribe(ORDER_PAYMENT_STATUS_CHANGED, handle_payment_status_changed)
