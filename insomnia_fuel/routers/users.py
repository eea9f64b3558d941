from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_current_principal, require_admin
from insomnia_fuel.services.identity import Principal
from insomnia_fuel.services.users import (
    delete_user,
    get_or_create_user,
    get_user_by_uid,
    list_users_paginated,
    user_to_dict,
)

router = APIRouter(prefix="/api/users", tags=["users"])


class UserProfileIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="displayName")
    name: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    phone: Optional[str] = None


@router.get("")
def list_users(
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    page, limit = max(page, 1), max(limit, 1)
    result = list_users_paginated(db, page, limit)
    return {
        "items": [user_to_dict(user) for user in result["items"]],
        "total": result["total"],
        "page": page,
        "limit": limit,
    }


@router.get("/me")
def get_me(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    user = get_user_by_uid(db, principal.uid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user_to_dict(user)


def _sync_user(db: Session, principal: Principal, payload: UserProfileIn | None):
    if not principal.email:
        raise HTTPException(status_code=400, detail="Missing uid or email")

    payload = payload or UserProfileIn()
    user, created = get_or_create_user(
        db,
        uid=principal.uid,
        email=principal.email,
        display_name=payload.display_name or payload.name or principal.name or "",
        photo_url=payload.photo_url or "",
        phone=payload.phone or "",
    )
    return JSONResponse(status_code=201 if created else 200, content=user_to_dict(user))


@router.post("")
def create_me(
    payload: Optional[UserProfileIn] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Called right after signup; returns the existing record when already present."""
    return _sync_user(db, principal, payload)


@router.post("/sync")
def sync_me(
    payload: Optional[UserProfileIn] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return _sync_user(db, principal, payload)


@router.delete("/{uid}")
def remove_user(uid: str, db: Session = Depends(get_db), _admin: Principal = Depends(require_admin)):
    if not delete_user(db, uid):
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted"}
