from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class CheckoutLineItem:
    name: str
    unit_amount: int
    quantity: int
    menu_item_id: str = ""


@dataclass(frozen=True)
class CheckoutSessionRef:
    id: str
    url: str | None = None


@dataclass
class GatewaySession:
    id: str
    payment_status: str
    currency: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    client_reference_id: str | None = None
    payment_intent_id: str | None = None


@dataclass(frozen=True)
class GatewayLineItem:
    description: str | None
    quantity: int | None
    unit_amount: int | None
    nickname: str | None = None
    product_id: str | None = None


@dataclass(frozen=True)
class GatewayEvent:
    id: str
    type: str
    data: dict[str, Any]

    @property
    def object(self) -> dict[str, Any]:
        return self.data.get("object") or {}


class PaymentGateway(Protocol):
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
        ...

    def retrieve_session(self, session_id: str) -> GatewaySession:
        ...

    def list_line_items(self, session_id: str, limit: int = 100) -> list[GatewayLineItem]:
        ...

    def construct_event(self, raw_body: bytes, signature_header: str | None) -> GatewayEvent:
        ...


def session_from_payload(payload: dict[str, Any]) -> GatewaySession:
    """Build a GatewaySession from a checkout session object as found in a webhook body."""
    customer_details = payload.get("customer_details") or {}
    payment_intent = payload.get("payment_intent")
    if isinstance(payment_intent, dict):
        payment_intent = payment_intent.get("id")
    return GatewaySession(
        id=str(payload.get("id") or ""),
        payment_status=str(payload.get("payment_status") or "unpaid"),
        currency=payload.get("currency"),
        customer_email=customer_details.get("email") or payload.get("customer_email"),
        customer_name=customer_details.get("name"),
        metadata=dict(payload.get("metadata") or {}),
        client_reference_id=payload.get("client_reference_id"),
        payment_intent_id=payment_intent,
    )
