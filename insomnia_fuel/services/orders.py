from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insomnia_fuel.models.order import Order
from insomnia_fuel.models.order_item import OrderItem
from insomnia_fuel.services.errors import InvalidStatusTransitionError, OrderNotFoundError
from insomnia_fuel.services.order_events import (
    emit_order_created,
    emit_order_status_changed,
    emit_payment_status_changed,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
SERVICE_FEE = Decimal("0.00")

ORDER_STATUSES = ("pending", "preparing", "ready", "completed", "cancelled")
PAYMENT_STATUSES = ("unpaid", "paid", "refunded", "disputed")

# kitchen flow; anything not listed here is rejected
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"preparing", "cancelled"},
    "preparing": {"ready", "cancelled"},
    "ready": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


@dataclass(frozen=True)
class LineItem:
    menu_item_id: str
    name: str
    unit_price: Decimal
    quantity: int


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_totals(items: Iterable[LineItem], service_fee: Decimal = SERVICE_FEE) -> tuple[Decimal, Decimal, Decimal]:
    subtotal = sum((to_money(item.unit_price) * int(item.quantity) for item in items), Decimal("0"))
    subtotal = to_money(subtotal)
    fee = to_money(service_fee)
    return subtotal, fee, to_money(subtotal + fee)


def resolve_display_name(user_name: str | None, email: str | None) -> str:
    name = (user_name or "").strip()
    if name:
        return name
    if email and "@" in email:
        local_part = email.split("@", 1)[0].strip()
        if local_part:
            return local_part
    return "Guest"


def find_by_session_id(db: Session, stripe_session_id: str) -> Order | None:
    return db.query(Order).filter(Order.stripe_session_id == stripe_session_id).first()


def find_by_payment_intent(db: Session, payment_intent_id: str) -> Order | None:
    return db.query(Order).filter(Order.payment_intent_id == payment_intent_id).first()


def get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFoundError(order_id)
    return order


def create_order_once(
    db: Session,
    *,
    stripe_session_id: str,
    items: Sequence[LineItem],
    currency: str,
    user_id: str | None = None,
    user_name: str | None = None,
    email: str | None = None,
    payment_status: str = "unpaid",
    payment_intent_id: str | None = None,
) -> tuple[Order, bool]:
    """Materialise the order for a checkout session, at most once.

    Returns ``(order, created)``. When an order already exists for the
    session it is returned untouched and the incoming items and purchaser
    fields are dropped. The unique constraint on ``stripe_session_id`` is
    what guarantees a single row; the lookup below only saves a round trip
    in the common duplicate case.
    """
    session_id = (stripe_session_id or "").strip()
    if not session_id:
        raise ValueError("stripe_session_id is required")

    existing = find_by_session_id(db, session_id)
    if existing:
        logger.info("order already exists for session", extra={"session_id": session_id, "order_id": existing.id})
        return existing, False

    if not items:
        raise ValueError("An order needs at least one line item")
    if payment_status not in PAYMENT_STATUSES:
        raise ValueError(f"Unknown payment status: {payment_status}")

    subtotal, service_fee, total = compute_totals(items)
    now = utcnow()

    order = Order(
        stripe_session_id=session_id,
        payment_intent_id=payment_intent_id,
        user_id=user_id,
        user_name=resolve_display_name(user_name, email),
        email=email,
        subtotal=subtotal,
        service_fee=service_fee,
        total=total,
        currency=(currency or "").strip().lower(),
        status="pending",
        payment_status=payment_status,
        completed_at=None,
        created_at=now,
        updated_at=now,
    )
    order.items = [
        OrderItem(
            position=position,
            menu_item_id=item.menu_item_id or "",
            name=item.name,
            unit_price=to_money(item.unit_price),
            quantity=int(item.quantity),
        )
        for position, item in enumerate(items)
    ]

    db.add(order)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = find_by_session_id(db, session_id)
        if winner is None:
            raise
        logger.info(
            "concurrent insert lost; returning existing order",
            extra={"session_id": session_id, "order_id": winner.id},
        )
        return winner, False

    db.refresh(order)
    logger.info("order created", extra={"session_id": session_id, "order_id": order.id})
    emit_order_created(order)
    return order, True


def list_orders_paginated(db: Session, page: int = 1, limit: int = 20) -> dict:
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    skip = (page - 1) * limit

    query = db.query(Order)
    total = query.count()
    items = (
        query.order_by(desc(Order.created_at), desc(Order.id))
        .offset(skip)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total}


def list_orders_for_user(db: Session, user_id: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(desc(Order.created_at), desc(Order.id))
        .all()
    )


def ensure_transition_allowed(current: str, requested: str) -> None:
    if requested not in ORDER_STATUSES:
        raise ValueError(f"Unknown order status: {requested}")
    if current == requested:
        return
    if requested not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(current, requested)


def update_order_status(db: Session, order_id: int, new_status: str) -> Order:
    new_status = (new_status or "").strip().lower()
    order = get_order(db, order_id)
    previous_status = order.status
    ensure_transition_allowed(previous_status, new_status)
    if previous_status == new_status:
        return order

    now = utcnow()
    order.status = new_status
    order.updated_at = now
    if new_status == "completed":
        order.completed_at = now

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    emit_order_status_changed(order, previous_status)
    return order


def update_payment_status(db: Session, order_id: int, new_payment_status: str) -> Order:
    new_payment_status = (new_payment_status or "").strip().lower()
    if new_payment_status not in PAYMENT_STATUSES:
        raise ValueError(f"Unknown payment status: {new_payment_status}")

    order = get_order(db, order_id)
    previous_payment_status = order.payment_status
    order.payment_status = new_payment_status
    order.updated_at = utcnow()

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    emit_payment_status_changed(order, previous_payment_status)
    return order


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "stripeSessionId": order.stripe_session_id,
        "userId": order.user_id,
        "userName": order.user_name,
        "email": order.email,
        "items": [
            {
                "menuItemId": item.menu_item_id,
                "name": item.name,
                "price": float(item.unit_price),
                "quantity": item.quantity,
            }
            for item in order.items
        ],
        "subtotal": float(order.subtotal),
        "serviceFee": float(order.service_fee),
        "total": float(order.total),
        "currency": order.currency,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "completedAt": order.completed_at.isoformat() if order.completed_at else None,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
    }
