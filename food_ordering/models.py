"""
SQLAlchemy Database Models

Users, restaurants with their menus, and orders.

Foreign keys use the store's default NO ACTION behaviour: deleting a row that
is still referenced fails instead of cascading.

Author: Khalil Bannouri
Version: 3.0.0
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from food_ordering.database import Base


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    # Persist enum values ("restaurant_owner"), not member names
    return [member.value for member in enum_cls]


class Role(str, enum.Enum):
    """User roles."""
    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class User(Base):
    """
    Registered account.

    ``password_hash`` is never part of any response.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(
        Enum(Role, name="user_role", values_callable=_values),
        default=Role.CUSTOMER,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role.value}>"


class Restaurant(Base):
    __tablename__ = "restaurants"
    __table_args__ = (
        CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 5)",
            name="ck_restaurants_rating_range",
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    cuisine = Column(String(50), nullable=True, index=True)
    rating = Column(Float, nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name} - owner {self.owner_id}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)
    price = Column(Float, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - ${self.price:.2f}>"


class Order(Base):
    """
    Customer order placed against one restaurant.

    ``items`` is a JSON snapshot of the ordered menu items, taken with the
    prices in effect when the order was placed.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(Text, nullable=False)  # JSON string of ordered items
    total_amount = Column(Float, nullable=False)
    delivery_address = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True, default="card")

    status = Column(
        Enum(OrderStatus, name="order_status", values_callable=_values),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Order #{self.id} - user {self.user_id} - {self.status.value}>"
