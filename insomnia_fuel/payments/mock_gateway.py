from __future__ import annotations

import hashlib
import hmac
import json
import threading
import time
import uuid
from typing import Any

from insomnia_fuel.core.config import MOCK_WEBHOOK_SECRET
from insomnia_fuel.payments.base import (
    CheckoutLineItem,
    CheckoutSessionRef,
    GatewayEvent,
    GatewayLineItem,
    GatewaySession,
    PaymentGateway,
)
from insomnia_fuel.services.errors import GatewaySessionNotFound, WebhookSignatureError

SIGNATURE_TOLERANCE_SECONDS = 300


class MockGateway(PaymentGateway):
    """In-memory checkout sessions with Stripe-style signed webhook bodies."""

    def __init__(self, webhook_secret: str = MOCK_WEBHOOK_SECRET, *, currency: str = "aud") -> None:
        self.webhook_secret = webhook_secret
        self.currency = currency
        self._sessions: dict[str, GatewaySession] = {}
        self._line_items: dict[str, list[GatewayLineItem]] = {}
        self._lock = threading.Lock()

    def add_session(
        self,
        session_id: str,
        *,
        payment_status: str = "unpaid",
        line_items: list[GatewayLineItem] | None = None,
        uid: str | None = None,
        customer_email: str | None = None,
        customer_name: str | None = None,
        currency: str | None = None,
        client_reference_id: str | None = None,
        payment_intent_id: str | None = None,
    ) -> GatewaySession:
        session = GatewaySession(
            id=session_id,
            payment_status=payment_status,
            currency=currency or self.currency,
            customer_email=customer_email,
            customer_name=customer_name,
            metadata={"uid": uid} if uid else {},
            client_reference_id=client_reference_id,
            payment_intent_id=payment_intent_id,
        )
        with self._lock:
            self._sessions[session_id] = session
            self._line_items[session_id] = list(line_items or [])
        return session

    def mark_paid(self, session_id: str, payment_intent_id: str | None = None) -> GatewaySession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise GatewaySessionNotFound(session_id)
            session.payment_status = "paid"
            session.payment_intent_id = payment_intent_id or session.payment_intent_id or f"pi_mock_{uuid.uuid4().hex[:12]}"
            return session

    def create_checkout_session(
        self,
        *,
        line_items: list[CheckoutLineItem],
        customer_email: str | None,
        uid: str,
        success_url: str,
        cancel_url: str,
        currency: str,
    ) -> CheckoutSessionRef:
        session_id = f"cs_test_{uuid.uuid4().hex}"
        self.add_session(
            session_id,
            line_items=[
                GatewayLineItem(
                    description=item.name,
                    quantity=item.quantity,
                    unit_amount=item.unit_amount,
                    product_id=item.menu_item_id,
                )
                for item in line_items
            ],
            uid=uid,
            customer_email=customer_email,
            currency=currency,
            client_reference_id=uid,
        )
        return CheckoutSessionRef(id=session_id, url=f"https://checkout.mock.local/pay/{session_id}")

    def retrieve_session(self, session_id: str) -> GatewaySession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise GatewaySessionNotFound(session_id)
        return session

    def list_line_items(self, session_id: str, limit: int = 100) -> list[GatewayLineItem]:
        with self._lock:
            if session_id not in self._sessions:
                raise GatewaySessionNotFound(session_id)
            return list(self._line_items.get(session_id, []))[:limit]

    def session_payload(self, session_id: str) -> dict[str, Any]:
        session = self.retrieve_session(session_id)
        return {
            "id": session.id,
            "object": "checkout.session",
            "payment_status": session.payment_status,
            "currency": session.currency,
            "customer_email": session.customer_email,
            "customer_details": {"email": session.customer_email, "name": session.customer_name},
            "metadata": dict(session.metadata),
            "client_reference_id": session.client_reference_id,
            "payment_intent": session.payment_intent_id,
        }

    def build_event(self, event_type: str, data_object: dict[str, Any]) -> bytes:
        event = {
            "id": f"evt_mock_{uuid.uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
        return json.dumps(event).encode("utf-8")

    def sign(self, raw_body: bytes, timestamp: int | None = None) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
        signature = hmac.new(self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    def construct_event(self, raw_body: bytes, signature_header: str | None) -> GatewayEvent:
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        parts = {}
        for chunk in signature_header.split(","):
            key, _, value = chunk.strip().partition("=")
            parts.setdefault(key, []).append(value)
        try:
            timestamp = int(parts["t"][0])
        except (KeyError, ValueError) as exc:
            raise WebhookSignatureError("Invalid webhook signature") from exc

        if abs(time.time() - timestamp) > SIGNATURE_TOLERANCE_SECONDS:
            raise WebhookSignatureError("Webhook timestamp outside tolerance")

        signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
        expected = hmac.new(self.webhook_secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest().encode("utf-8")
        candidates = [value.encode("utf-8") for value in parts.get("v1", [])]
        if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
            raise WebhookSignatureError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise WebhookSignatureError("Invalid webhook payload") from exc
        return GatewayEvent(
            id=str(payload.get("id") or ""),
            type=str(payload.get("type") or ""),
            data=payload.get("data") or {},
        )
