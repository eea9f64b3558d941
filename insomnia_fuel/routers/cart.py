from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from insomnia_fuel.core.database import get_db
from insomnia_fuel.deps import get_current_principal
from insomnia_fuel.services.carts import (
    cart_to_dict,
    clear_cart,
    get_or_create_cart,
    remove_cart_item,
    upsert_cart_item,
)
from insomnia_fuel.services.identity import Principal

router = APIRouter(prefix="/api/cart", tags=["cart"])


class CartItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    menu_item_id: str = Field(..., alias="menuItemId")
    name: str
    price: float = Field(..., ge=0)
    quantity: int  # 0 or less removes the item


@router.get("")
def get_cart(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return cart_to_dict(get_or_create_cart(db, principal.uid))


@router.post("")
def set_cart_item(
    payload: CartItemIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if not payload.menu_item_id.strip() or not payload.name.strip():
        raise HTTPException(status_code=400, detail="Missing or invalid cart item data")

    cart = upsert_cart_item(
        db,
        uid=principal.uid,
        menu_item_id=payload.menu_item_id.strip(),
        name=payload.name.strip(),
        price=payload.price,
        quantity=payload.quantity,
    )
    return cart_to_dict(cart)


@router.delete("/{menu_item_id}")
def delete_cart_item(
    menu_item_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return cart_to_dict(remove_cart_item(db, principal.uid, menu_item_id))


@router.delete("")
def empty_cart(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return cart_to_dict(clear_cart(db, principal.uid))
