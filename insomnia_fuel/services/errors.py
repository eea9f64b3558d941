from __future__ import annotations


class OrderNotFoundError(LookupError):
    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidStatusTransitionError(ValueError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move order from {current!r} to {requested!r}")
        self.current = current
        self.requested = requested


class GatewayError(RuntimeError):
    """The payment gateway failed or could not be reached."""


class GatewaySessionNotFound(GatewayError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Checkout session {session_id} not found")
        self.session_id = session_id


class WebhookSignatureError(ValueError):
    """Missing or invalid webhook signature."""


class IdentityError(ValueError):
    """Bearer token could not be verified."""


class MediaStorageError(RuntimeError):
    """The media bucket is not configured or rejected the request."""
