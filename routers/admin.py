from typing import List

from fastapi import APIRouter, HTTPException

from logger import get_logger
from models import RequestStatus, UserRole
from schemas import (
    GiftApproval,
    GiftRead,
    GiftRequestRead,
    RequestStatusUpdate,
    RoleUpdate,
    StatsRead,
    UserRead,
)
from storage import StorageDep
from .auth import AdminUserDep

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_logger(__name__)

ROLES = {role.value for role in UserRole}
STATUSES = {status.value for status in RequestStatus}


@router.get("/pending-gifts", response_model=List[GiftRead])
def list_pending_gifts(storage: StorageDep, admin: AdminUserDep):
    return storage.get_all_gifts(False)


@router.put("/gifts/{gift_id}/approve", response_model=GiftRead)
def approve_gift(
    gift_id: int,
    update: GiftApproval,
    storage: StorageDep,
    admin: AdminUserDep,
):
    gift = storage.approve_gift(gift_id, update.approved)
    if gift is None:
        raise HTTPException(status_code=404, detail="Gift not found")

    logger.info(f"Admin {admin.id} set gift {gift_id} approved={update.approved}")
    return gift


@router.get("/users", response_model=List[UserRead])
def list_users(storage: StorageDep, admin: AdminUserDep):
    """All users. UserRead has no password field, so hashes never leave."""
    return storage.get_all_users()


@router.put("/users/{user_id}/role", response_model=UserRead)
def update_user_role(
    user_id: int,
    update: RoleUpdate,
    storage: StorageDep,
    admin: AdminUserDep,
):
    if update.role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")

    user = storage.update_user_role(user_id, update.role)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info(f"Admin {admin.id} changed role of user {user_id} to {update.role}")
    return user


@router.get("/stats", response_model=StatsRead)
def get_stats(storage: StorageDep, admin: AdminUserDep):
    return storage.get_stats()


@router.put("/gift-requests/{request_id}/status", response_model=GiftRequestRead)
def update_gift_request_status(
    request_id: int,
    update: RequestStatusUpdate,
    storage: StorageDep,
    admin: AdminUserDep,
):
    if update.status not in STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")

    gift_request = storage.update_gift_request_status(request_id, update.status)
    if gift_request is None:
        raise HTTPException(status_code=404, detail="Gift request not found")

    logger.info(
        f"Admin {admin.id} moved gift request {request_id} to {update.status}"
    )
    return gift_request
