from __future__ import annotations

import json
import logging
from typing import Any

import stripe

from insomnia_fuel.core.config import STRIPE_API_VERSION, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from insomnia_fuel.payments.base import (
    CheckoutLineItem,
    CheckoutSessionRef,
    GatewayEvent,
    GatewayLineItem,
    GatewaySession,
    PaymentGateway,
)
from insomnia_fuel.services.errors import GatewayError, GatewaySessionNotFound, WebhookSignatureError

logger = logging.getLogger(__name__)


def _attr(obj: Any, *path: str, default: Any = None) -> Any:
    current = obj
    for name in path:
        if current is None:
            return default
        if isinstance(current, dict):
            current = current.get(name)
        else:
            current = getattr(current, name, None)
    return default if current is None else current


def _plain_dict(obj: Any) -> dict[str, str]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return {str(key): str(value) for key, value in obj.items()}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return {str(key): str(value) for key, value in to_dict().items()}
    return {}


class StripeGateway(PaymentGateway):
    def __init__(
        self,
        *,
        api_key: str | None = STRIPE_SECRET_KEY,
        webhook_secret: str | None = STRIPE_WEBHOOK_SECRET,
        api_version: str | None = STRIPE_API_VERSION,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._api_version = api_version

    def _request_options(self) -> dict[str, Any]:
        if not self._api_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured")
        options: dict[str, Any] = {"api_key": self._api_key}
        if self._api_version:
            options["stripe_version"] = self._api_version
        return options

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
        stripe_line_items = [
            {
                "price_data": {
                    "currency": currency,
                    "unit_amount": item.unit_amount,
                    "product_data": {
                        "name": item.name,
                        "metadata": {"menuItemId": item.menu_item_id},
                    },
                },
                "quantity": item.quantity,
            }
            for item in line_items
        ]
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": stripe_line_items,
            "metadata": {"uid": uid},
            "client_reference_id": uid,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params, **self._request_options())
        except stripe.StripeError as exc:
            logger.error("stripe checkout session create failed: %s", exc)
            raise GatewayError("Failed to create checkout session") from exc
        return CheckoutSessionRef(id=_attr(session, "id"), url=_attr(session, "url"))

    def retrieve_session(self, session_id: str) -> GatewaySession:
        try:
            session = stripe.checkout.Session.retrieve(session_id, **self._request_options())
        except stripe.InvalidRequestError as exc:
            if _attr(exc, "code") == "resource_missing" or _attr(exc, "http_status") == 404:
                raise GatewaySessionNotFound(session_id) from exc
            raise GatewayError("Failed to retrieve checkout session") from exc
        except stripe.StripeError as exc:
            logger.error("stripe session retrieve failed: %s", exc, extra={"session_id": session_id})
            raise GatewayError("Failed to retrieve checkout session") from exc

        return GatewaySession(
            id=_attr(session, "id", default=session_id),
            payment_status=_attr(session, "payment_status", default="unpaid"),
            currency=_attr(session, "currency"),
            customer_email=_attr(session, "customer_details", "email") or _attr(session, "customer_email"),
            customer_name=_attr(session, "customer_details", "name"),
            metadata=_plain_dict(_attr(session, "metadata")),
            client_reference_id=_attr(session, "client_reference_id"),
            payment_intent_id=_attr(session, "payment_intent"),
        )

    def list_line_items(self, session_id: str, limit: int = 100) -> list[GatewayLineItem]:
        try:
            result = stripe.checkout.Session.list_line_items(
                session_id,
                limit=limit,
                expand=["data.price.product"],
                **self._request_options(),
            )
        except stripe.StripeError as exc:
            logger.error("stripe line item listing failed: %s", exc, extra={"session_id": session_id})
            raise GatewayError("Failed to list checkout line items") from exc

        items: list[GatewayLineItem] = []
        for line in _attr(result, "data", default=[]):
            product_id = (
                _attr(line, "price", "product", "metadata", "menuItemId")
                or _attr(line, "price", "metadata", "productId")
                or _attr(line, "metadata", "menuItemId")
            )
            items.append(
                GatewayLineItem(
                    description=_attr(line, "description"),
                    quantity=_attr(line, "quantity"),
                    unit_amount=_attr(line, "price", "unit_amount"),
                    nickname=_attr(line, "price", "nickname"),
                    product_id=product_id,
                )
            )
        return items

    def construct_event(self, raw_body: bytes, signature_header: str | None) -> GatewayEvent:
        if not signature_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        if not self._webhook_secret:
            raise GatewayError("STRIPE_WEBHOOK_SECRET is not configured")
        try:
            stripe.Webhook.construct_event(raw_body, signature_header, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError("Invalid webhook signature") from exc
        except ValueError as exc:
            raise WebhookSignatureError("Invalid webhook payload") from exc

        payload = json.loads(raw_body)
        return GatewayEvent(
            id=str(payload.get("id") or ""),
            type=str(payload.get("type") or ""),
            data=payload.get("data") or {},
        )
