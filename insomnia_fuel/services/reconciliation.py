from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from insomnia_fuel.core.config import STRIPE_CURRENCY
from insomnia_fuel.core.metrics import request_metrics
from insomnia_fuel.models.order import Order
from insomnia_fuel.payments.base import GatewayLineItem, GatewaySession, PaymentGateway, session_from_payload
from insomnia_fuel.services.carts import clear_cart_by_uid
from insomnia_fuel.services.errors import GatewayError, GatewaySessionNotFound, WebhookSignatureError
from insomnia_fuel.services.orders import (
    LineItem,
    create_order_once,
    find_by_payment_intent,
    find_by_session_id,
    update_payment_status,
)
from insomnia_fuel.services.users import get_user_by_uid

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHARGE_REFUNDED = "charge.refunded"
DISPUTE_CREATED = "charge.dispute.created"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"


@dataclass
class WebhookOutcome:
    event_type: str
    handled: bool
    order_id: int | None = None


@dataclass
class ConfirmationOutcome:
    status: str
    status_code: int
    order: Order | None = None
    session: GatewaySession | None = None
    created: bool = False
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "paid"


class ReconciliationService:
    """Turns a completed checkout session into exactly one order.

    Two entry points feed the same path: ``handle_webhook`` for gateway
    notifications and ``confirm_session`` for the storefront polling after the
    redirect. Both end in ``create_order_once``, so retries and races between
    them collapse onto a single row.
    """

    def __init__(self, db: Session, gateway: PaymentGateway, *, fallback_currency: str = STRIPE_CURRENCY) -> None:
        self.db = db
        self.gateway = gateway
        self.fallback_currency = (fallback_currency or "aud").lower()

    @staticmethod
    def resolve_purchaser(session: GatewaySession) -> tuple[str | None, str | None]:
        uid = (session.metadata or {}).get("uid") or session.client_reference_id or None
        email = session.customer_email or None
        return uid, email

    def resolve_display_name(self, uid: str | None, session: GatewaySession) -> str | None:
        if uid:
            user = get_user_by_uid(self.db, uid)
            if user and user.display_name:
                return user.display_name
        return session.customer_name or None

    @staticmethod
    def map_line_items(gateway_items: Iterable[GatewayLineItem]) -> list[LineItem]:
        items = []
        for line in gateway_items:
            unit_amount = line.unit_amount or 0
            items.append(
                LineItem(
                    menu_item_id=line.product_id or "",
                    name=line.description or line.nickname or "Item",
                    unit_price=Decimal(int(unit_amount)) / 100,
                    quantity=int(line.quantity) if line.quantity is not None else 1,
                )
            )
        return items

    def materialize(self, session: GatewaySession) -> tuple[Order, bool]:
        uid, email = self.resolve_purchaser(session)
        items = self.map_line_items(self.gateway.list_line_items(session.id, limit=100))

        order, created = create_order_once(
            self.db,
            stripe_session_id=session.id,
            items=items,
            currency=session.currency or self.fallback_currency,
            user_id=uid,
            user_name=self.resolve_display_name(uid, session),
            email=email,
            payment_status="paid" if session.payment_status == "paid" else "unpaid",
            payment_intent_id=session.payment_intent_id,
        )

        if uid and created:
            try:
                clear_cart_by_uid(self.db, uid)
            except Exception:
                # the order exists; a stale cart is left behind
                logger.exception("failed to clear cart", extra={"session_id": session.id, "user_id": uid})
        return order, created

    def handle_webhook(self, raw_body: bytes, signature_header: str | None) -> WebhookOutcome:
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        event = self.gateway.construct_event(raw_body, signature_header)
        logger.info("webhook received", extra={"event_type": event.type})

        if event.type == CHECKOUT_COMPLETED:
            session = session_from_payload(event.object)
            if not session.id:
                raise ValueError("checkout.session.completed event without a session id")
            order, created = self.materialize(session)
            request_metrics.increment("webhook_orders_created" if created else "webhook_orders_duplicate")
            return WebhookOutcome(event_type=event.type, handled=True, order_id=order.id)

        if event.type == ASYNC_PAYMENT_SUCCEEDED:
            session = session_from_payload(event.object)
            if not session.id:
                raise ValueError(f"{event.type} event without a session id")
            session.payment_status = "paid"
            order = find_by_session_id(self.db, session.id)
            if order is None:
                order, _ = self.materialize(session)
            else:
                order = self.promote_to_paid(order, session)
            return WebhookOutcome(event_type=event.type, handled=True, order_id=order.id)

        if event.type == CHARGE_REFUNDED:
            if event.object.get("refunded") is False:
                logger.info("partial refund ignored", extra={"event_type": event.type})
                return WebhookOutcome(event_type=event.type, handled=False)
            return self._apply_payment_status(event.type, event.object, "refunded")

        if event.type == DISPUTE_CREATED:
            return self._apply_payment_status(event.type, event.object, "disputed")

        logger.debug("unhandled webhook event %s", event.type)
        return WebhookOutcome(event_type=event.type, handled=False)

    def promote_to_paid(self, order: Order, session: GatewaySession) -> Order:
        """Mark an order created from a still-unpaid session as paid."""
        if order.payment_status != "unpaid":
            return order
        if not order.payment_intent_id and session.payment_intent_id:
            order.payment_intent_id = session.payment_intent_id
        return update_payment_status(self.db, order.id, "paid")

    def _apply_payment_status(self, event_type: str, data_object: dict, payment_status: str) -> WebhookOutcome:
        payment_intent_id = data_object.get("payment_intent")
        order = find_by_payment_intent(self.db, payment_intent_id) if payment_intent_id else None
        if not order:
            logger.warning(
                "no order matches payment intent %s",
                payment_intent_id,
                extra={"event_type": event_type},
            )
            return WebhookOutcome(event_type=event_type, handled=False)

        update_payment_status(self.db, order.id, payment_status)
        return WebhookOutcome(event_type=event_type, handled=True, order_id=order.id)

    def confirm_session(self, session_id: str | None) -> ConfirmationOutcome:
        session_id = (session_id or "").strip()
        if not session_id:
            return ConfirmationOutcome(status="invalid", status_code=400, message="Missing session id")

        try:
            session = self.gateway.retrieve_session(session_id)
        except GatewaySessionNotFound:
            return ConfirmationOutcome(status="not_found", status_code=404, message="Payment session not found")
        except GatewayError:
            logger.exception("payment gateway unavailable", extra={"session_id": session_id})
            return ConfirmationOutcome(status="error", status_code=502, message="Failed to verify payment")

        if session.payment_status != "paid":
            return ConfirmationOutcome(
                status="pending",
                status_code=202,
                session=session,
                message="Payment not completed",
            )

        try:
            existing = find_by_session_id(self.db, session_id)
            if existing:
                existing = self.promote_to_paid(existing, session)
                return ConfirmationOutcome(status="paid", status_code=200, order=existing, session=session)
            order, created = self.materialize(session)
        except GatewayError:
            logger.exception("payment gateway unavailable", extra={"session_id": session_id})
            return ConfirmationOutcome(status="error", status_code=502, session=session, message="Failed to verify payment")
        except Exception:
            self.db.rollback()
            logger.exception("order confirmation failed", extra={"session_id": session_id})
            return ConfirmationOutcome(status="error", status_code=500, session=session, message="Failed to verify payment")

        return ConfirmationOutcome(status="paid", status_code=200, order=order, session=session, created=created)
