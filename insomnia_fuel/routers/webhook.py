import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_payment_gateway
from insomnia_fuel.payments.base import PaymentGateway
from insomnia_fuel.services.errors import WebhookSignatureError
from insomnia_fuel.services.reconciliation import ReconciliationService

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    # the signature covers the exact bytes, so never parse before verifying
    raw_body = await request.body()
    signature_header = request.headers.get("stripe-signature")
    service = ReconciliationService(db, gateway)

    try:
        outcome = await run_in_threadpool(service.handle_webhook, raw_body, signature_header)
    except WebhookSignatureError as exc:
        logger.warning("webhook rejected: %s", exc)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {exc}")
    except Exception:
        db.rollback()
        logger.exception("webhook handler failed")
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    return {
        "received": True,
        "eventType": outcome.event_type,
        "handled": outcome.handled,
        "orderId": outcome.order_id,
    }
