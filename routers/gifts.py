from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response

from logger import get_logger
from models import Gift
from schemas import GiftCreate, GiftRead, GiftUpdate
from storage import StorageDep
from .auth import VendorUserDep, is_admin

router = APIRouter(prefix="/api", tags=["gifts"])
logger = get_logger(__name__)


def _parse_flag(value: Optional[str]) -> Optional[bool]:
    """'true' / 'false' become booleans; anything else means no filter."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def filter_gifts(
    gifts: List[Gift],
    category: Optional[str] = None,
    brandable: Optional[bool] = None,
    eco_friendly: Optional[bool] = None,
    search: Optional[str] = None,
    min_price: Optional[int] = None,
    max_price: Optional[int] = None,
) -> List[Gift]:
    if category:
        gifts = [g for g in gifts if g.category == category]

    if brandable is not None:
        gifts = [g for g in gifts if g.brandable == brandable]

    if eco_friendly is not None:
        gifts = [g for g in gifts if g.eco_friendly == eco_friendly]

    if search:
        needle = search.lower()
        gifts = [
            g for g in gifts
            if needle in g.name.lower() or needle in g.description.lower()
        ]

    if min_price is not None:
        gifts = [g for g in gifts if g.price >= min_price]

    if max_price is not None:
        gifts = [g for g in gifts if g.price <= max_price]

    return gifts


@router.get("/gifts", response_model=List[GiftRead])
def list_gifts(
    storage: StorageDep,
    approved: Optional[str] = None,
    category: Optional[str] = None,
    brandable: Optional[str] = None,
    eco_friendly: Optional[str] = Query(default=None, alias="ecoFriendly"),
    search: Optional[str] = None,
    min_price: Optional[int] = Query(default=None, alias="minPrice", ge=0),
    max_price: Optional[int] = Query(default=None, alias="maxPrice", ge=0),
):
    """
    List gifts, optionally filtered by approval, category, brandable,
    ecoFriendly, free-text search and price range (cents, inclusive).
    brandable and ecoFriendly only ever narrow to gifts that have the flag.
    """
    gifts = storage.get_all_gifts(_parse_flag(approved))
    return filter_gifts(
        gifts,
        category=category,
        brandable=True if _parse_flag(brandable) else None,
        eco_friendly=True if _parse_flag(eco_friendly) else None,
        search=search,
        min_price=min_price,
        max_price=max_price,
    )


@router.get("/gifts/{gift_id}", response_model=GiftRead)
def get_gift(gift_id: int, storage: StorageDep):
    gift = storage.get_gift(gift_id)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")
    return gift


# ---------- vendor gift management ----------

@router.get("/vendor/gifts", response_model=List[GiftRead])
def list_vendor_gifts(storage: StorageDep, user: VendorUserDep):
    """The caller's own gifts, approved or not. Admins see only their own too."""
    return storage.get_gifts_by_vendor(user.id)


@router.post("/vendor/gifts", response_model=GiftRead, status_code=201)
def create_gift(gift_in: GiftCreate, storage: StorageDep, user: VendorUserDep):
    data = gift_in.model_dump(mode="json")
    data["vendor_id"] = user.id
    gift = storage.create_gift(data)

    logger.info(f"Vendor {user.id} submitted gift {gift.id} for approval")
    return gift


def _load_owned_gift(storage: StorageDep, gift_id: int, user, action: str) -> Gift:
    gift = storage.get_gift(gift_id)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")

    if gift.vendor_id != user.id and not is_admin(user):
        raise HTTPException(
            status_code=403,
            detail=f"You don't have permission to {action} this gift",
        )
    return gift


@router.put("/vendor/gifts/{gift_id}", response_model=GiftRead)
def update_gift(
    gift_id: int,
    gift_in: GiftUpdate,
    storage: StorageDep,
    user: VendorUserDep,
):
    gift = _load_owned_gift(storage, gift_id, user, "edit")

    changes = gift_in.model_dump(mode="json", exclude_unset=True, exclude_none=True)

    # An approved gift edited by its vendor goes back to review
    if gift.approved and not is_admin(user):
        changes["approved"] = False
        logger.info(f"Gift {gift_id} edited by vendor {user.id}, approval reset")

    return storage.update_gift(gift_id, changes)


@router.delete("/vendor/gifts/{gift_id}", status_code=204)
def delete_gift(gift_id: int, storage: StorageDep, user: VendorUserDep):
    _load_owned_gift(storage, gift_id, user, "delete")

    storage.delete_gift(gift_id)
    logger.info(f"Gift {gift_id} deleted by user {user.id}")
    return Response(status_code=204)
