from typing import List, Optional

from fastapi import APIRouter, HTTPException

from logger import get_logger
from models import UserRole
from schemas import GiftRequestCreate, GiftRequestRead
from storage import StorageDep
from .auth import CurrentUserDep, HRUserDep

router = APIRouter(prefix="/api/gift-requests", tags=["gift-requests"])
logger = get_logger(__name__)


def snapshot_cart(storage: StorageDep, user_id: int):
    """
    Freeze the user's cart into request items using live gift prices.

    Everything is resolved before anything is written, so a gift that
    vanished in the meantime fails the whole submission and leaves the
    cart as it was.
    """
    items = []
    total_price = 0
    for cart_item in storage.get_cart_items(user_id):
        gift = storage.get_gift(cart_item.gift_id)
        if gift is None:
            raise HTTPException(
                status_code=404,
                detail=f"Gift with ID {cart_item.gift_id} not found",
            )
        total_price += gift.price * cart_item.quantity
        items.append(
            {
                "gift_id": gift.id,
                "quantity": cart_item.quantity,
                "price": gift.price,
                "name": gift.name,
            }
        )
    return items, total_price


@router.post("", response_model=GiftRequestRead, status_code=201)
def create_gift_request(
    storage: StorageDep,
    user: HRUserDep,
    payload: Optional[GiftRequestCreate] = None,
):
    if not storage.get_cart_items(user.id):
        raise HTTPException(status_code=400, detail="Your cart is empty")

    items, total_price = snapshot_cart(storage, user.id)

    gift_request = storage.create_gift_request(
        {
            "user_id": user.id,
            "items": items,
            "total_price": total_price,
            "notes": (payload.notes if payload else None) or "",
        }
    )
    storage.clear_cart(user.id)

    logger.info(
        f"User {user.id} submitted gift request {gift_request.id} "
        f"({len(items)} items, total {total_price})"
    )
    return gift_request


@router.get("", response_model=List[GiftRequestRead])
def list_gift_requests(storage: StorageDep, user: CurrentUserDep):
    """HR users see their own requests, admins see all, vendors none."""
    if user.role == UserRole.HR.value:
        return storage.get_gift_requests(user.id)

    if user.role == UserRole.ADMIN.value:
        return storage.get_gift_requests()

    raise HTTPException(status_code=403, detail="Forbidden")
