from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from insomnia_fuel.models.cart import Cart
from insomnia_fuel.services.orders import to_money, utcnow

logger = logging.getLogger(__name__)


def get_cart_by_uid(db: Session, uid: str) -> Cart | None:
    return db.query(Cart).filter(Cart.uid == uid).first()


def create_empty_cart(db: Session, uid: str) -> Cart:
    now = utcnow()
    cart = Cart(uid=uid, items=[], created_at=now, updated_at=now)
    db.add(cart)
    try:
        db.commit()
    except IntegrityError:
        # another request created it first
        db.rollback()
        existing = get_cart_by_uid(db, uid)
        if existing is None:
            raise
        return existing
    db.refresh(cart)
    return cart


def get_or_create_cart(db: Session, uid: str) -> Cart:
    return get_cart_by_uid(db, uid) or create_empty_cart(db, uid)


def _save_items(db: Session, cart: Cart, items: list[dict]) -> Cart:
    cart.items = items
    cart.updated_at = utcnow()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(cart)
    return cart


def upsert_cart_item(
    db: Session,
    *,
    uid: str,
    menu_item_id: str,
    name: str,
    price: float,
    quantity: int,
) -> Cart:
    """Set the quantity of one item; zero or less removes it."""
    cart = get_or_create_cart(db, uid)
    items = [dict(item) for item in cart.items or []]
    index = next((i for i, item in enumerate(items) if item.get("menuItemId") == menu_item_id), None)

    if quantity <= 0:
        if index is not None:
            items.pop(index)
    elif index is None:
        items.append({"menuItemId": menu_item_id, "name": name, "price": price, "quantity": quantity})
    else:
        items[index] = {**items[index], "name": name, "price": price, "quantity": quantity}

    return _save_items(db, cart, items)


def remove_cart_item(db: Session, uid: str, menu_item_id: str) -> Cart | None:
    cart = get_cart_by_uid(db, uid)
    if not cart:
        return None
    items = [dict(item) for item in cart.items or [] if item.get("menuItemId") != menu_item_id]
    return _save_items(db, cart, items)


def clear_cart(db: Session, uid: str) -> Cart | None:
    cart = get_cart_by_uid(db, uid)
    if not cart:
        return None
    return _save_items(db, cart, [])


def clear_cart_by_uid(db: Session, uid: str) -> None:
    deleted = db.query(Cart).filter(Cart.uid == uid).delete(synchronize_session=False)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    if deleted:
        logger.info("cart cleared after checkout", extra={"user_id": uid})


def cart_subtotal(cart: Cart | None) -> Decimal:
    if not cart:
        return Decimal("0.00")
    return to_money(
        sum(
            (Decimal(str(item.get("price") or 0)) * int(item.get("quantity") or 0) for item in cart.items or []),
            Decimal("0"),
        )
    )


def cart_to_dict(cart: Cart | None) -> dict:
    if not cart:
        return {"items": [], "subtotal": 0.0}
    return {
        "uid": cart.uid,
        "items": list(cart.items or []),
        "subtotal": float(cart_subtotal(cart)),
        "createdAt": cart.created_at.isoformat() if cart.created_at else None,
        "updatedAt": cart.updated_at.isoformat() if cart.updated_at else None,
    }
