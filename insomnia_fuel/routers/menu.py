from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import require_admin
from insomnia_fuel.services.identity import Principal
from insomnia_fuel.services.menu import (
    create_menu_item,
    delete_menu_item,
    get_menu_item,
    list_menu_items,
    menu_item_to_dict,
    update_menu_item,
)

router = APIRouter(prefix="/api/menu", tags=["menu"])


class MenuItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = ""
    category: str = Field(..., min_length=1)
    section: Optional[str] = ""
    price: float = Field(..., ge=0)
    is_available: bool = Field(True, alias="isAvailable")
    is_featured: bool = Field(False, alias="isFeatured")
    sub_items: Optional[List[Dict[str, Any]]] = Field(None, alias="subItems")


class MenuItemUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    section: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    is_available: Optional[bool] = Field(None, alias="isAvailable")
    is_featured: Optional[bool] = Field(None, alias="isFeatured")
    sub_items: Optional[List[Any]] = Field(None, alias="subItems")


@router.get("")
def list_menu(db: Session = Depends(get_db)):
    return {"items": [menu_item_to_dict(item) for item in list_menu_items(db)]}


@router.get("/{item_id}")
def get_menu(item_id: int, db: Session = Depends(get_db)):
    item = get_menu_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Not found")
    return menu_item_to_dict(item)


@router.post("", status_code=201)
def create_menu(payload: MenuItemCreate, db: Session = Depends(get_db), _admin: Principal = Depends(require_admin)):
    try:
        item = create_menu_item(db, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return menu_item_to_dict(item)


@router.put("/{item_id}")
def update_menu(
    item_id: int,
    payload: MenuItemUpdate,
    db: Session = Depends(get_db),
    _admin: Principal = Depends(require_admin),
):
    item = get_menu_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Not found")
    try:
        item = update_menu_item(db, item, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    return menu_item_to_dict(item)


@router.delete("/{item_id}")
def delete_menu(item_id: int, db: Session = Depends(get_db), _admin: Principal = Depends(require_admin)):
    item = get_menu_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Not found")
    delete_menu_item(db, item)
    return {"message": "Menu item deleted"}
