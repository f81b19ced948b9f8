from abc import ABC, abstractmethod
import threading
from typing import Annotated, Dict, List, Optional

from fastapi import Depends, Request
from sqlalchemy import func
from sqlmodel import select

import settings
from db import build_engine, create_db_and_tables, open_session
from logger import get_logger
from models import CartItem, Gift, GiftRequest, RequestStatus, User, utcnow

logger = get_logger(__name__)


class Storage(ABC):
    """
    Repository for every entity of the marketplace.

    Pure CRUD and filtered reads. No authorization happens here, and a
    missing row is reported as None (or False), never as an exception.
    """

    # users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, data: dict) -> User: ...

    @abstractmethod
    def get_all_users(self) -> List[User]: ...

    @abstractmethod
    def update_user_role(self, user_id: int, role: str) -> Optional[User]: ...

    # gifts
    @abstractmethod
    def get_gift(self, gift_id: int) -> Optional[Gift]: ...

    @abstractmethod
    def get_all_gifts(self, approved: Optional[bool] = None) -> List[Gift]: ...

    @abstractmethod
    def get_gifts_by_vendor(self, vendor_id: int) -> List[Gift]: ...

    @abstractmethod
    def create_gift(self, data: dict) -> Gift: ...

    @abstractmethod
    def update_gift(self, gift_id: int, changes: dict) -> Optional[Gift]: ...

    @abstractmethod
    def delete_gift(self, gift_id: int) -> bool: ...

    @abstractmethod
    def approve_gift(self, gift_id: int, approved: bool) -> Optional[Gift]: ...

    # cart
    @abstractmethod
    def get_cart_items(self, user_id: int) -> List[CartItem]: ...

    @abstractmethod
    def get_cart_item(self, item_id: int) -> Optional[CartItem]: ...

    @abstractmethod
    def add_to_cart(self, data: dict) -> CartItem: ...

    @abstractmethod
    def update_cart_item(self, item_id: int, quantity: int) -> Optional[CartItem]: ...

    @abstractmethod
    def remove_from_cart(self, item_id: int) -> bool: ...

    @abstractmethod
    def clear_cart(self, user_id: int) -> bool: ...

    # gift requests
    @abstractmethod
    def create_gift_request(self, data: dict) -> GiftRequest: ...

    @abstractmethod
    def get_gift_requests(self, user_id: Optional[int] = None) -> List[GiftRequest]: ...

    @abstractmethod
    def update_gift_request_status(self, request_id: int, status: str) -> Optional[GiftRequest]: ...

    # admin
    @abstractmethod
    def get_stats(self) -> Dict[str, int]: ...


def _without(data: dict, *keys: str) -> dict:
    return {k: v for k, v in data.items() if k not in keys}


class MemStorage(Storage):
    """
    Dict-per-entity store with its own id counters. Nothing survives a restart.

    Sync route handlers run in a threadpool, so every method holds the
    instance lock while it touches the dicts or the counters.
    """

    def __init__(self):
        self._lock = threading.RLock()

        self.users: Dict[int, User] = {}
        self.gifts: Dict[int, Gift] = {}
        self.cart_items: Dict[int, CartItem] = {}
        self.gift_requests: Dict[int, GiftRequest] = {}

        self._next_user_id = 1
        self._next_gift_id = 1
        self._next_cart_item_id = 1
        self._next_gift_request_id = 1

    # ---------- users ----------

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        wanted = username.lower()
        with self._lock:
            return next((u for u in self.users.values() if u.username.lower() == wanted), None)

    def get_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.lower()
        with self._lock:
            return next((u for u in self.users.values() if u.email.lower() == wanted), None)

    def create_user(self, data: dict) -> User:
        user = User(**_without(data, "id"))
        with self._lock:
            user.id = self._next_user_id
            self._next_user_id += 1
            self.users[user.id] = user
        return user

    def get_all_users(self) -> List[User]:
        with self._lock:
            return list(self.users.values())

    def update_user_role(self, user_id: int, role: str) -> Optional[User]:
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            user.role = role
            return user

    # ---------- gifts ----------

    def get_gift(self, gift_id: int) -> Optional[Gift]:
        with self._lock:
            return self.gifts.get(gift_id)

    def get_all_gifts(self, approved: Optional[bool] = None) -> List[Gift]:
        with self._lock:
            gifts = list(self.gifts.values())
        if approved is not None:
            return [g for g in gifts if g.approved == approved]
        return gifts

    def get_gifts_by_vendor(self, vendor_id: int) -> List[Gift]:
        with self._lock:
            return [g for g in self.gifts.values() if g.vendor_id == vendor_id]

    def create_gift(self, data: dict) -> Gift:
        gift = Gift(**_without(data, "id", "approved", "created_at"))
        gift.approved = False
        gift.created_at = utcnow()
        with self._lock:
            gift.id = self._next_gift_id
            self._next_gift_id += 1
            self.gifts[gift.id] = gift
        return gift

    def update_gift(self, gift_id: int, changes: dict) -> Optional[Gift]:
        with self._lock:
            gift = self.gifts.get(gift_id)
            if gift is None:
                return None
            for key, value in _without(changes, "id").items():
                setattr(gift, key, value)
            return gift

    def delete_gift(self, gift_id: int) -> bool:
        with self._lock:
            if self.gifts.pop(gift_id, None) is None:
                return False
            for item in [i for i in self.cart_items.values() if i.gift_id == gift_id]:
                del self.cart_items[item.id]
            return True

    def approve_gift(self, gift_id: int, approved: bool) -> Optional[Gift]:
        with self._lock:
            gift = self.gifts.get(gift_id)
            if gift is None:
                return None
            gift.approved = approved
            return gift

    # ---------- cart ----------

    def get_cart_items(self, user_id: int) -> List[CartItem]:
        with self._lock:
            return [i for i in self.cart_items.values() if i.user_id == user_id]

    def get_cart_item(self, item_id: int) -> Optional[CartItem]:
        with self._lock:
            return self.cart_items.get(item_id)

    def add_to_cart(self, data: dict) -> CartItem:
        quantity = data.get("quantity", 1)
        with self._lock:
            existing = next(
                (
                    i
                    for i in self.cart_items.values()
                    if i.user_id == data["user_id"] and i.gift_id == data["gift_id"]
                ),
                None,
            )
            if existing:
                existing.quantity += quantity
                return existing

            item = CartItem(user_id=data["user_id"], gift_id=data["gift_id"], quantity=quantity)
            item.id = self._next_cart_item_id
            self._next_cart_item_id += 1
            self.cart_items[item.id] = item
            return item

    def update_cart_item(self, item_id: int, quantity: int) -> Optional[CartItem]:
        with self._lock:
            item = self.cart_items.get(item_id)
            if item is None:
                return None
            item.quantity = quantity
            return item

    def remove_from_cart(self, item_id: int) -> bool:
        with self._lock:
            return self.cart_items.pop(item_id, None) is not None

    def clear_cart(self, user_id: int) -> bool:
        with self._lock:
            for item in [i for i in self.cart_items.values() if i.user_id == user_id]:
                del self.cart_items[item.id]
        return True

    # ---------- gift requests ----------

    def create_gift_request(self, data: dict) -> GiftRequest:
        now = utcnow()
        request = GiftRequest(**_without(data, "id", "status", "created_at", "updated_at"))
        request.status = RequestStatus.PENDING.value
        request.created_at = now
        request.updated_at = now
        with self._lock:
            request.id = self._next_gift_request_id
            self._next_gift_request_id += 1
            self.gift_requests[request.id] = request
        return request

    def get_gift_requests(self, user_id: Optional[int] = None) -> List[GiftRequest]:
        with self._lock:
            requests = list(self.gift_requests.values())
        if user_id is not None:
            return [r for r in requests if r.user_id == user_id]
        return requests

    def update_gift_request_status(self, request_id: int, status: str) -> Optional[GiftRequest]:
        with self._lock:
            request = self.gift_requests.get(request_id)
            if request is None:
                return None
            request.status = status
            request.updated_at = utcnow()
            return request

    # ---------- admin ----------

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "total_users": len(self.users),
                "total_gifts": len(self.gifts),
                "total_approved_gifts": sum(1 for g in self.gifts.values() if g.approved),
                "total_requests": len(self.gift_requests),
            }


class DatabaseStorage(Storage):
    """
    Same contract as MemStorage, backed by the SQLModel tables.
    Every call runs in its own short-lived session.
    """

    def __init__(self, engine):
        self.engine = engine

    def _save(self, obj):
        with open_session(self.engine) as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
            return obj

    def _get(self, model, obj_id: int):
        with open_session(self.engine) as session:
            return session.get(model, obj_id)

    def _all(self, statement) -> list:
        with open_session(self.engine) as session:
            return list(session.exec(statement).all())

    def _count(self, statement) -> int:
        with open_session(self.engine) as session:
            return session.exec(statement).one()

    # ---------- users ----------

    def get_user(self, user_id: int) -> Optional[User]:
        return self._get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with open_session(self.engine) as session:
            return session.exec(
                select(User).where(func.lower(User.username) == username.lower())
            ).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        with open_session(self.engine) as session:
            return session.exec(
                select(User).where(func.lower(User.email) == email.lower())
            ).first()

    def create_user(self, data: dict) -> User:
        return self._save(User(**_without(data, "id")))

    def get_all_users(self) -> List[User]:
        return self._all(select(User).order_by(User.id))

    def update_user_role(self, user_id: int, role: str) -> Optional[User]:
        with open_session(self.engine) as session:
            user = session.get(User, user_id)
            if user is None:
                return None
            user.role = role
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    # ---------- gifts ----------

    def get_gift(self, gift_id: int) -> Optional[Gift]:
        return self._get(Gift, gift_id)

    def get_all_gifts(self, approved: Optional[bool] = None) -> List[Gift]:
        query = select(Gift)
        if approved is not None:
            query = query.where(Gift.approved == approved)
        return self._all(query.order_by(Gift.id))

    def get_gifts_by_vendor(self, vendor_id: int) -> List[Gift]:
        return self._all(select(Gift).where(Gift.vendor_id == vendor_id).order_by(Gift.id))

    def create_gift(self, data: dict) -> Gift:
        gift = Gift(**_without(data, "id", "approved", "created_at"))
        gift.approved = False
        gift.created_at = utcnow()
        return self._save(gift)

    def update_gift(self, gift_id: int, changes: dict) -> Optional[Gift]:
        with open_session(self.engine) as session:
            gift = session.get(Gift, gift_id)
            if gift is None:
                return None
            for key, value in _without(changes, "id").items():
                setattr(gift, key, value)
            session.add(gift)
            session.commit()
            session.refresh(gift)
            return gift

    def delete_gift(self, gift_id: int) -> bool:
        with open_session(self.engine) as session:
            gift = session.get(Gift, gift_id)
            if gift is None:
                return False
            for item in session.exec(select(CartItem).where(CartItem.gift_id == gift_id)).all():
                session.delete(item)
            session.delete(gift)
            session.commit()
            return True

    def approve_gift(self, gift_id: int, approved: bool) -> Optional[Gift]:
        return self.update_gift(gift_id, {"approved": approved})

    # ---------- cart ----------

    def get_cart_items(self, user_id: int) -> List[CartItem]:
        return self._all(select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id))

    def get_cart_item(self, item_id: int) -> Optional[CartItem]:
        return self._get(CartItem, item_id)

    def add_to_cart(self, data: dict) -> CartItem:
        quantity = data.get("quantity", 1)
        with open_session(self.engine) as session:
            existing = session.exec(
                select(CartItem).where(
                    CartItem.user_id == data["user_id"],
                    CartItem.gift_id == data["gift_id"],
                )
            ).first()
            if existing:
                existing.quantity += quantity
                item = existing
            else:
                item = CartItem(user_id=data["user_id"], gift_id=data["gift_id"], quantity=quantity)
            session.add(item)
            session.commit()
            session.refresh(item)
            return item

    def update_cart_item(self, item_id: int, quantity: int) -> Optional[CartItem]:
        with open_session(self.engine) as session:
            item = session.get(CartItem, item_id)
            if item is None:
                return None
            item.quantity = quantity
            session.add(item)
            session.commit()
            session.refresh(item)
            return item

    def remove_from_cart(self, item_id: int) -> bool:
        with open_session(self.engine) as session:
            item = session.get(CartItem, item_id)
            if item is None:
                return False
            session.delete(item)
            session.commit()
            return True

    def clear_cart(self, user_id: int) -> bool:
        with open_session(self.engine) as session:
            for item in session.exec(select(CartItem).where(CartItem.user_id == user_id)).all():
                session.delete(item)
            session.commit()
        return True

    # ---------- gift requests ----------

    def create_gift_request(self, data: dict) -> GiftRequest:
        now = utcnow()
        request = GiftRequest(**_without(data, "id", "status", "created_at", "updated_at"))
        request.status = RequestStatus.PENDING.value
        request.created_at = now
        request.updated_at = now
        return self._save(request)

    def get_gift_requests(self, user_id: Optional[int] = None) -> List[GiftRequest]:
        query = select(GiftRequest)
        if user_id is not None:
            query = query.where(GiftRequest.user_id == user_id)
        return self._all(query.order_by(GiftRequest.id))

    def update_gift_request_status(self, request_id: int, status: str) -> Optional[GiftRequest]:
        with open_session(self.engine) as session:
            request = session.get(GiftRequest, request_id)
            if request is None:
                return None
            request.status = status
            request.updated_at = utcnow()
            session.add(request)
            session.commit()
            session.refresh(request)
            return request

    # ---------- admin ----------

    def get_stats(self) -> Dict[str, int]:
        return {
            "total_users": self._count(select(func.count()).select_from(User)),
            "total_gifts": self._count(select(func.count()).select_from(Gift)),
            "total_approved_gifts": self._count(
                select(func.count()).select_from(Gift).where(Gift.approved == True)  # noqa: E712
            ),
            "total_requests": self._count(select(func.count()).select_from(GiftRequest)),
        }


def build_storage(backend: str = settings.STORAGE_BACKEND) -> Storage:
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemStorage()
    if backend == "database":
        engine = build_engine()
        create_db_and_tables(engine)
        logger.info("Using database storage")
        return DatabaseStorage(engine)
    raise ValueError(f"Unknown storage backend: {backend!r}")


def get_storage(request: Request) -> Storage:
    """The storage instance the running app was created with."""
    return request.app.state.storage


StorageDep = Annotated[Storage, Depends(get_storage)]
