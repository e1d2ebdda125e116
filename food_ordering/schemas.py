"""
Pydantic Schemas for Request/Response Validation

Request models reject bad input before a handler runs (rendered as 400 by
the validation handler); response models define the public projection of
each table, so the password hash can never leak.

Author: Khalil Bannouri
Version: 3.0.0
"""

import json
import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from food_ordering.models import OrderStatus, Role

EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")


def _validate_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


# =============================================================================
# AUTH / USER REQUEST SCHEMAS
# =============================================================================

class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255, examples=["jane@example.com"])
    password: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=100, examples=["Jane Doe"])
    role: Role = Field(default=Role.CUSTOMER, examples=["customer"])

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _validate_email(v)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserUpdate(BaseModel):
    """All fields optional; only the ones sent are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[Role] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _validate_email(v)


# =============================================================================
# RESTAURANT / MENU REQUEST SCHEMAS
# =============================================================================

class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, examples=["Luigi's Trattoria"])
    cuisine: Optional[str] = Field(None, max_length=50, examples=["italian"])
    rating: Optional[float] = Field(None, ge=0, le=5, examples=[4.5])
    owner_id: Optional[int] = Field(None, ge=1)


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    cuisine: Optional[str] = Field(None, max_length=50)
    rating: Optional[float] = Field(None, ge=0, le=5)


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizza Margherita"])
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=50, examples=["pizza"])
    price: float = Field(..., gt=0, examples=[14.99])
    available: bool = True


# =============================================================================
# ORDER REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single item in an order."""
    menu_item_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1, le=99, examples=[2])


class OrderCreate(BaseModel):
    restaurant_id: int = Field(..., ge=1)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    delivery_address: Optional[str] = Field(None, max_length=255, examples=["350 Fifth Avenue"])
    payment_method: str = Field(default="card", max_length=50, examples=["card", "cash"])


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UserResponse(BaseModel):
    """Public projection of a user."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: Role
    created_at: Optional[datetime] = None


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    cuisine: Optional[str] = None
    rating: Optional[float] = None
    owner_id: int
    created_at: Optional[datetime] = None


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float
    available: bool
    created_at: Optional[datetime] = None


class OrderLine(BaseModel):
    menu_item_id: int
    name: str
    quantity: int
    unit_price: float


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    restaurant_id: int
    items: List[OrderLine]
    total_amount: float
    delivery_address: Optional[str] = None
    payment_method: Optional[str] = None
    status: OrderStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("items", mode="before")
    @classmethod
    def parse_items(cls, v: Any) -> Any:
        # Stored as a JSON string
        if isinstance(v, str):
            return json.loads(v)
        return v


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int


class MessageResponse(BaseModel):
    message: str


class UserEnvelope(MessageResponse):
    user: UserResponse


class UserListResponse(MessageResponse):
    users: List[UserResponse]


class LoginResponse(MessageResponse):
    token: str
    user: UserResponse


class RestaurantEnvelope(MessageResponse):
    restaurant: RestaurantResponse


class RestaurantListResponse(MessageResponse):
    restaurants: List[RestaurantResponse]
    pagination: Pagination


class MenuItemEnvelope(MessageResponse):
    menu_item: MenuItemResponse


class MenuResponse(MessageResponse):
    menu_items: List[MenuItemResponse]


class OrderEnvelope(MessageResponse):
    order: OrderResponse


class OrderListResponse(MessageResponse):
    orders: List[OrderResponse]
    pagination: Pagination


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    timestamp: datetime
