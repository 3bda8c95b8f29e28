import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


Role = Literal["farmer", "retailer"]
OrderStatus = Literal["pending", "accepted", "rejected", "completed"]
PaymentMethod = Literal["online", "cash_on_delivery"]


# Auth
class RequestOtpIn(BaseModel):
    phone: str = Field(..., min_length=4, max_length=32)


class VerifyOtpIn(BaseModel):
    phone: str = Field(..., min_length=4, max_length=32)
    otp: str
    session_id: Optional[str] = Field(default=None, description="otp_session from request_otp; latest code for the phone when omitted")


class OtpSentOut(BaseModel):
    detail: str = "otp_sent"
    otp_session: str


class TokenOut(BaseModel):
    access_token: str
    user_id: str


# Profiles
class ProfileCreateIn(BaseModel):
    id: Optional[uuid.UUID] = Field(default=None, description="Defaults to the caller")
    role: Role
    full_name: str = Field(..., min_length=1, max_length=128)
    phone: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdateIn(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=128)
    phone: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    bio: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileOut(BaseModel):
    id: str
    role: str
    full_name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProfilesListOut(BaseModel):
    profiles: List[ProfileOut]


# Products
class ProductCreateIn(BaseModel):
    farmer_id: Optional[uuid.UUID] = Field(default=None, description="Defaults to the caller")
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=64)
    price: float = Field(..., ge=0)
    unit: str = Field("kg", min_length=1, max_length=16)
    quantity_available: float = Field(..., ge=0)
    image_url: Optional[str] = None
    location: Optional[str] = None
    is_available: bool = True


class ProductUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=64)
    price: Optional[float] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1, max_length=16)
    quantity_available: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    location: Optional[str] = None
    is_available: Optional[bool] = None


class PartySummary(BaseModel):
    id: str
    full_name: str
    location: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def of(cls, profile) -> Optional["PartySummary"]:
        if profile is None:
            return None
        return cls(id=str(profile.id), full_name=profile.full_name, location=profile.location, phone=profile.phone)


class ProductOut(BaseModel):
    id: str
    farmer_id: str
    name: str
    description: Optional[str] = None
    category: str
    price: float
    unit: str
    quantity_available: float
    image_url: Optional[str] = None
    location: Optional[str] = None
    is_available: bool
    created_at: datetime
    updated_at: datetime
    farmer: Optional[PartySummary] = None


class ProductsListOut(BaseModel):
    products: List[ProductOut]
    total: int


class CategoriesOut(BaseModel):
    categories: List[str]


# Orders
class OrderCreateIn(BaseModel):
    product_id: uuid.UUID
    retailer_id: Optional[uuid.UUID] = Field(default=None, description="Defaults to the caller")
    quantity: float = Field(..., gt=0)
    payment_method: PaymentMethod = "cash_on_delivery"
    delivery_address: str = Field(..., min_length=1)
    notes: Optional[str] = None


class OrderUpdateIn(BaseModel):
    delivery_address: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None


class OrderStatusIn(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    unit: Optional[str] = None
    retailer_id: str
    farmer_id: str
    quantity: float
    total_price: float
    status: str
    payment_method: str
    delivery_address: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    retailer: Optional[PartySummary] = None
    farmer: Optional[PartySummary] = None


class OrdersListOut(BaseModel):
    orders: List[OrderOut]


class TransitionsOut(BaseModel):
    status: str
    next: List[str]
    enforced: bool


# Messages
class MessageCreateIn(BaseModel):
    sender_id: Optional[uuid.UUID] = Field(default=None, description="Defaults to the caller")
    receiver_id: uuid.UUID
    product_id: Optional[uuid.UUID] = None
    message: str = Field(..., max_length=4000)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message must not be blank")
        return v


class MessageOut(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    product_id: Optional[str] = None
    message: str
    is_read: bool
    created_at: datetime


class MessagesListOut(BaseModel):
    messages: List[MessageOut]
    unread: int
