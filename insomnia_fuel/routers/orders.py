import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_current_principal, get_payment_gateway, require_admin
from insomnia_fuel.payments.base import PaymentGateway
from insomnia_fuel.services.errors import InvalidStatusTransitionError, OrderNotFoundError
from insomnia_fuel.services.identity import Principal
from insomnia_fuel.services.orders import (
    list_orders_for_user,
    list_orders_paginated,
    order_to_dict,
    update_order_status,
    update_payment_status,
)
from insomnia_fuel.services.reconciliation import ReconciliationService

router = APIRouter(prefix="/api/orders", tags=["orders"])
logger = logging.getLogger(__name__)


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class PaymentStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_status: str = Field(..., min_length=1, alias="paymentStatus")


@router.get("")
def list_orders(
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    page, limit = max(page, 1), max(limit, 1)
    result = list_orders_paginated(db, page, limit)
    return {
        "items": [order_to_dict(order) for order in result["items"]],
        "total": result["total"],
        "page": page,
        "limit": limit,
    }


@router.get("/my")
def my_orders(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    orders = list_orders_for_user(db, principal.uid)
    return {"ok": True, "orders": [order_to_dict(order) for order in orders]}


@router.get("/confirm/{session_id}")
def confirm_order(
    session_id: str,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Called by the checkout success page; safe to repeat."""
    outcome = ReconciliationService(db, gateway).confirm_session(session_id)

    if outcome.status == "pending":
        return JSONResponse(
            status_code=202,
            content={"ok": False, "status": "pending", "message": outcome.message},
        )
    if not outcome.ok:
        raise HTTPException(status_code=outcome.status_code, detail=outcome.message)

    return {
        "ok": True,
        "status": outcome.status,
        "created": outcome.created,
        "order": order_to_dict(outcome.order),
    }


@router.put("/{order_id}")
def change_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    try:
        order = update_order_status(db, order_id, payload.status)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidStatusTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return {"message": "Status updated", "order": order_to_dict(order)}


@router.put("/{order_id}/payment-status")
def change_payment_status(
    order_id: int,
    payload: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    try:
        order = update_payment_status(db, order_id, payload.payment_status)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return {"message": "Payment status updated", "order": order_to_dict(order)}
