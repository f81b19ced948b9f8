from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    HR = "HR"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class GiftCategory(str, Enum):
    DRINKWARE = "Drinkware"
    APPAREL = "Apparel"
    TECH = "Tech Accessories"
    ECO = "Eco-Friendly"
    OFFICE = "Office Supplies"
    WELLNESS = "Wellness"
    FOOD = "Food & Beverage"
    TRAVEL = "Travel"


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True)
    password: str  # always a hash
    email: str = Field(index=True)
    name: str
    company: Optional[str] = None
    role: str = UserRole.HR.value


class Gift(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    vendor_id: int = Field(foreign_key="user.id", index=True)

    name: str
    description: str
    price: int  # cents
    category: str
    image_url: str
    brandable: bool = False
    eco_friendly: bool = False
    approved: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    gift_id: int = Field(foreign_key="gift.id")

    quantity: int = 1


class GiftRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # snapshot taken at submission: [{"gift_id", "quantity", "price", "name"}]
    items: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_price: int
    status: str = RequestStatus.PENDING.value  # Pending | Approved | Rejected | Completed
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
