from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_optional_principal, require_admin
from insomnia_fuel.services.contact import (
    contact_to_dict,
    create_contact_message,
    list_contact_messages_paginated,
    mark_contact_handled,
)
from insomnia_fuel.services.identity import Principal

router = APIRouter(prefix="/api/contact", tags=["contact"])


class ContactIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None


class ContactHandledIn(BaseModel):
    handled: bool


@router.post("", status_code=201)
def send_contact_message(
    payload: ContactIn,
    db: Session = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    try:
        contact = create_contact_message(
            db,
            name=payload.name or "",
            email=payload.email or "",
            message=payload.message or "",
            user_id=principal.uid if principal else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"ok": True, "message": "Saved", "contact": contact_to_dict(contact)}


@router.get("")
def list_contact_messages(
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    result = list_contact_messages_paginated(db, page, limit)
    return {"items": [contact_to_dict(contact) for contact in result["items"]], "total": result["total"]}


@router.patch("/{message_id}")
def set_contact_handled(
    message_id: int,
    payload: ContactHandledIn,
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    contact = mark_contact_handled(db, message_id, payload.handled)
    if not contact:
        raise HTTPException(status_code=404, detail="Not found")
    return {"message": "Updated", "contact": contact_to_dict(contact)}
