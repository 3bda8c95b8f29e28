import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, DateTime, Boolean, ForeignKey, Text, Numeric, CheckConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()

ROLES = ("farmer", "retailer")
ORDER_STATUSES = ("pending", "accepted", "rejected", "completed")
PAYMENT_METHODS = ("online", "cash_on_delivery")


def default_uuid():
    return uuid.uuid4()


def _in(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


class User(Base):
    """Authenticated principal. Issued by the auth flow, referenced by its profile."""

    __tablename__ = "auth_users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    phone = Column(String(32), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    profile = relationship("Profile", back_populates="user", uselist=False, passive_deletes=True)


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(_in("role", ROLES), name="ck_profiles_role"),
        Index("idx_profiles_role", "role"),
    )

    id = Column(UUID(as_uuid=True), ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(16), nullable=False)  # farmer|retailer
    full_name = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=True)
    location = Column(String(256), nullable=True)
    latitude = Column(Numeric(9, 6), nullable=True)
    longitude = Column(Numeric(9, 6), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="profile")
    products = relationship("Product", back_populates="farmer", passive_deletes=True)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price"),
        CheckConstraint("quantity_available >= 0", name="ck_products_quantity_available"),
        Index("idx_products_farmer_id", "farmer_id"),
        Index("idx_products_category", "category"),
        Index("idx_products_is_available", "is_available"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    farmer_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(64), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    unit = Column(String(16), nullable=False, default="kg")
    quantity_available = Column(Numeric(12, 2), nullable=False)
    image_url = Column(String(1024), nullable=True)
    location = Column(String(256), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    farmer = relationship("Profile", back_populates="products")
    orders = relationship("Order", back_populates="product", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="product")


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_orders_quantity"),
        CheckConstraint("total_price >= 0", name="ck_orders_total_price"),
        CheckConstraint(_in("status", ORDER_STATUSES), name="ck_orders_status"),
        CheckConstraint(_in("payment_method", PAYMENT_METHODS), name="ck_orders_payment_method"),
        Index("idx_orders_retailer_id", "retailer_id"),
        Index("idx_orders_farmer_id", "farmer_id"),
        Index("idx_orders_status", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    retailer_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    farmer_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(16), nullable=False, default="pending")  # pending|accepted|rejected|completed
    payment_method = Column(String(24), nullable=False)  # online|cash_on_delivery
    delivery_address = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="orders")
    retailer = relationship("Profile", foreign_keys=[retailer_id])
    farmer = relationship("Profile", foreign_keys=[farmer_id])


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_sender_receiver", "sender_id", "receiver_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=default_uuid)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    product = relationship("Product", back_populates="messages")
    sender = relationship("Profile", foreign_keys=[sender_id])
    receiver = relationship("Profile", foreign_keys=[receiver_id])


Index("idx_messages_created_at", Message.created_at.desc())
