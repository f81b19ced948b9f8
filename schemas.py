from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool
from pydantic.alias_generators import to_camel

from models import GiftCategory, UserRole


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------- users / auth ----------

class UserCreate(APIModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    email: EmailStr
    name: str = Field(min_length=1)
    company: Optional[str] = None
    role: UserRole = UserRole.HR


class UserRead(APIModel):
    id: int
    username: str
    email: str
    name: str
    company: Optional[str] = None
    role: str


class LoginData(APIModel):
    username: str
    password: str


class RoleUpdate(APIModel):
    role: str


# ---------- gifts ----------

class GiftCreate(APIModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: int = Field(ge=0, description="Price in cents")
    category: GiftCategory
    image_url: str = Field(min_length=1)
    brandable: bool = False
    eco_friendly: bool = False


class GiftUpdate(APIModel):
    """Partial update. Approval is not part of it: only admins approve."""

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[int] = Field(default=None, ge=0)
    category: Optional[GiftCategory] = None
    image_url: Optional[str] = Field(default=None, min_length=1)
    brandable: Optional[bool] = None
    eco_friendly: Optional[bool] = None


class GiftRead(APIModel):
    id: int
    name: str
    description: str
    price: int
    vendor_id: int
    category: str
    image_url: str
    brandable: bool
    eco_friendly: bool
    approved: bool
    created_at: datetime


class GiftApproval(APIModel):
    approved: StrictBool


# ---------- cart ----------

class CartItemCreate(APIModel):
    gift_id: int
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(APIModel):
    quantity: Optional[int] = None


class CartItemRead(APIModel):
    id: int
    user_id: int
    gift_id: int
    quantity: int
    gift: Optional[GiftRead] = None


# ---------- gift requests ----------

class GiftRequestCreate(APIModel):
    notes: Optional[str] = None


class GiftRequestItem(APIModel):
    gift_id: int
    quantity: int
    price: int
    name: str


class GiftRequestRead(APIModel):
    id: int
    user_id: int
    items: List[GiftRequestItem]
    total_price: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RequestStatusUpdate(APIModel):
    status: str


# ---------- admin ----------

class StatsRead(APIModel):
    total_users: int
    total_gifts: int
    total_approved_gifts: int
    total_requests: int
