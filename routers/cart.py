from typing import List

from fastapi import APIRouter, HTTPException, Response

from logger import get_logger
from models import CartItem
from schemas import CartItemCreate, CartItemRead, CartItemUpdate, GiftRead
from storage import StorageDep
from .auth import HRUserDep

router = APIRouter(prefix="/api/cart", tags=["cart"])
logger = get_logger(__name__)


def _with_gift(storage: StorageDep, item: CartItem) -> CartItemRead:
    gift = storage.get_gift(item.gift_id)
    return CartItemRead(
        id=item.id,
        user_id=item.user_id,
        gift_id=item.gift_id,
        quantity=item.quantity,
        gift=GiftRead.model_validate(gift) if gift else None,
    )


def _load_own_item(storage: StorageDep, item_id: int, user, action: str) -> CartItem:
    """
    Only the owner may touch a cart row. Admins pass the role check on
    these routes but get no override here.
    """
    item = storage.get_cart_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Cart item not found")

    if item.user_id != user.id:
        raise HTTPException(
            status_code=403,
            detail=f"You don't have permission to {action} this cart item",
        )
    return item


@router.get("", response_model=List[CartItemRead])
def get_cart(storage: StorageDep, user: HRUserDep):
    return [_with_gift(storage, item) for item in storage.get_cart_items(user.id)]


@router.post("", response_model=CartItemRead, status_code=201)
def add_to_cart(item_in: CartItemCreate, storage: StorageDep, user: HRUserDep):
    gift = storage.get_gift(item_in.gift_id)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")

    if not gift.approved:
        raise HTTPException(
            status_code=400,
            detail="This gift is not available for purchase",
        )

    item = storage.add_to_cart(
        {"user_id": user.id, "gift_id": item_in.gift_id, "quantity": item_in.quantity}
    )
    logger.info(f"User {user.id} cart: gift {gift.id} now x{item.quantity}")
    return _with_gift(storage, item)


@router.put("/{item_id}", response_model=CartItemRead)
def update_cart_item(
    item_id: int,
    item_in: CartItemUpdate,
    storage: StorageDep,
    user: HRUserDep,
):
    _load_own_item(storage, item_id, user, "modify")

    if not item_in.quantity or item_in.quantity < 1:
        raise HTTPException(status_code=400, detail="Invalid quantity")

    item = storage.update_cart_item(item_id, item_in.quantity)
    return _with_gift(storage, item)


@router.delete("/{item_id}", status_code=204)
def remove_from_cart(item_id: int, storage: StorageDep, user: HRUserDep):
    _load_own_item(storage, item_id, user, "remove")

    storage.remove_from_cart(item_id)
    return Response(status_code=204)
