from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import desc
from sqlalchemy.orm import Session

from insomnia_fuel.models.menu_item import MenuItem
from insomnia_fuel.services.orders import to_money, utcnow

MENU_FIELDS = ("name", "description", "category", "section", "price", "is_available", "is_featured", "sub_items")


def normalize_sub_items(raw: Any) -> list[dict[str, Any]]:
    """Keep only ``{"name", "price"}`` entries with a non-empty name and a numeric price."""
    if not isinstance(raw, list):
        return []

    normalized = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        name = name.strip() if isinstance(name, str) else ""
        try:
            price = float(entry.get("price") if entry.get("price") is not None else 0)
        except (TypeError, ValueError):
            continue
        if not name or math.isnan(price):
            continue
        normalized.append({"name": name, "price": price})
    return normalized


def _coerce_price(value: Any) -> Decimal:
    try:
        price = to_money(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError("Invalid price") from exc
    if price < 0:
        raise ValueError("Price must not be negative")
    return price


def list_menu_items(db: Session) -> list[MenuItem]:
    return db.query(MenuItem).order_by(desc(MenuItem.created_at), desc(MenuItem.id)).all()


def get_menu_item(db: Session, item_id: int) -> MenuItem | None:
    return db.query(MenuItem).filter(MenuItem.id == item_id).first()


def create_menu_item(db: Session, data: dict[str, Any]) -> MenuItem:
    if not data.get("name") or not data.get("category") or data.get("price") is None:
        raise ValueError("Missing required fields")

    now = utcnow()
    item = MenuItem(
        name=data["name"],
        description=data.get("description") or "",
        category=data["category"],
        section=data.get("section") or "",
        price=_coerce_price(data["price"]),
        is_available=bool(data.get("is_available", True)),
        is_featured=bool(data.get("is_featured", False)),
        sub_items=normalize_sub_items(data.get("sub_items")),
        created_at=now,
        updated_at=now,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_menu_item(db: Session, item: MenuItem, changes: dict[str, Any]) -> MenuItem:
    for field in MENU_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "price":
            value = _coerce_price(value)
        elif field == "sub_items":
            value = normalize_sub_items(value)
        elif field in {"is_available", "is_featured"}:
            value = bool(value)
        elif field in {"description", "section"}:
            value = value or ""
        elif not value:
            raise ValueError(f"{field} must not be empty")
        setattr(item, field, value)

    item.updated_at = utcnow()
    db.commit()
    db.refresh(item)
    return item


def delete_menu_item(db: Session, item: MenuItem) -> None:
    db.delete(item)
    db.commit()


def menu_item_to_dict(item: MenuItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "section": item.section,
        "price": float(item.price),
        "isAvailable": item.is_available,
        "isFeatured": item.is_featured,
        "subItems": item.sub_items or [],
        "createdAt": item.created_at.isoformat() if item.created_at else None,
        "updatedAt": item.updated_at.isoformat() if item.updated_at else None,
    }


def upsert_menu_item(
    db: Session,
    *,
    category: str,
    section: str,
    name: str,
    price: Any,
    description: str = "",
) -> bool:
    """Insert or refresh an item keyed by (category, section, name). Returns True when inserted."""
    now = utcnow()
    item = (
        db.query(MenuItem)
        .filter(MenuItem.category == category, MenuItem.section == section, MenuItem.name == name)
        .first()
    )
    created = item is None
    if created:
        item = MenuItem(category=category, section=section, name=name, sub_items=[], created_at=now)
        db.add(item)

    item.description = description or ""
    item.price = _coerce_price(price)
    item.is_available = True
    item.is_featured = False
    item.updated_at = now
    db.commit()
    return created
