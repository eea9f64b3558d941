from __future__ import annotations

from sqlalchemy import desc
from sqlalchemy.orm import Session

from insomnia_fuel.models.contact_message import ContactMessage
from insomnia_fuel.services.orders import utcnow


def create_contact_message(db: Session, *, name: str, email: str, message: str, user_id: str | None = None) -> ContactMessage:
    name, email, message = (name or "").strip(), (email or "").strip(), (message or "").strip()
    if not name or not email or not message:
        raise ValueError("Name, email and message are required.")

    contact = ContactMessage(
        user_id=user_id,
        name=name,
        email=email,
        message=message,
        handled=False,
        created_at=utcnow(),
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def list_contact_messages_paginated(db: Session, page: int = 1, limit: int = 20) -> dict:
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    query = db.query(ContactMessage)
    total = query.count()
    items = (
        query.order_by(desc(ContactMessage.created_at), desc(ContactMessage.id))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total}


def mark_contact_handled(db: Session, message_id: int, handled: bool) -> ContactMessage | None:
    contact = db.query(ContactMessage).filter(ContactMessage.id == message_id).first()
    if not contact:
        return None
    contact.handled = handled
    db.commit()
    db.refresh(contact)
    return contact


def contact_to_dict(contact: ContactMessage) -> dict:
    return {
        "id": contact.id,
        "userId": contact.user_id,
        "name": contact.name,
        "email": contact.email,
        "message": contact.message,
        "handled": contact.handled,
        "createdAt": contact.created_at.isoformat() if contact.created_at else None,
    }
