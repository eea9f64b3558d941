import logging
from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from insomnia_fuel.core.config import CLIENT_URL, STRIPE_CURRENCY
from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_current_principal, get_payment_gateway
from insomnia_fuel.payments.base import CheckoutLineItem, PaymentGateway
from insomnia_fuel.services.carts import get_cart_by_uid
from insomnia_fuel.services.errors import GatewayError
from insomnia_fuel.services.identity import Principal

router = APIRouter(prefix="/api/checkout", tags=["checkout"])
logger = logging.getLogger(__name__)


def to_minor_units(price) -> int:
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@router.post("/create-session")
def create_checkout_session(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    principal: Principal = Depends(get_current_principal),
):
    cart = get_cart_by_uid(db, principal.uid)
    if not cart or not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    line_items = [
        CheckoutLineItem(
            name=item["name"],
            unit_amount=to_minor_units(item["price"]),
            quantity=int(item["quantity"]),
            menu_item_id=str(item.get("menuItemId") or ""),
        )
        for item in cart.items
    ]

    try:
        session = gateway.create_checkout_session(
            line_items=line_items,
            customer_email=principal.email,
            uid=principal.uid,
            success_url=f"{CLIENT_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{CLIENT_URL}/order",
            currency=STRIPE_CURRENCY,
        )
    except GatewayError:
        logger.exception("checkout session creation failed")
        raise HTTPException(status_code=502, detail="Failed to create checkout session")

    return {"url": session.url, "sessionId": session.id}
