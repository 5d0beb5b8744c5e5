"""
Pydantic Schemas for Request/Response Validation

Covers accounts, restaurants and dishes (with options/choices),
order placement, status updates and the driver-facing order views.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
import re

from delivery_app.models import OrderStatus, UserRole


# =============================================================================
# MENU SCHEMAS
# =============================================================================

class DishChoice(BaseModel):
    """Named sub-choice of a dish option, optionally priced."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Large"])
    price: Optional[float] = Field(None, ge=0, examples=[2.0])


class DishOption(BaseModel):
    """Named customization; either a flat price or a list of choices."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Size"])
    price: Optional[float] = Field(None, ge=0)
    choices: Optional[List[DishChoice]] = None


class OrderItemOption(BaseModel):
    """Option selected by the customer for one ordered dish."""
    name: str = Field(..., examples=["Size"])
    choice: Optional[str] = Field(None, examples=["Large"])


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class UserCreate(BaseModel):
    """Request schema for creating an account."""
    email: str = Field(..., max_length=255, examples=["client@example.com"])
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = Field(..., examples=["client"])

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.match(r'^[\w\.\+-]+@[\w\.-]+\.\w+$', v):
            raise ValueError('Invalid email format')
        return v.lower()


class LoginRequest(BaseModel):
    """Request schema for checking account credentials."""
    email: str = Field(..., max_length=255, examples=["client@example.com"])
    password: str = Field(..., max_length=128)


class RestaurantCreate(BaseModel):
    """Request schema for registering a restaurant."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizza Palace"])
    address: str = Field(default="", max_length=255)
    cover_img: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90, examples=[37.4979])
    longitude: Optional[float] = Field(None, ge=-180, le=180, examples=[127.0276])


class DishCreate(BaseModel):
    """Request schema for adding a dish to a restaurant menu."""
    name: str = Field(..., min_length=1, max_length=100, examples=["Margherita"])
    price: float = Field(..., ge=0, examples=[10.0])
    description: Optional[str] = Field(None, max_length=500)
    photo: Optional[str] = Field(None, max_length=500)
    options: Optional[List[DishOption]] = None


class CreateOrderItem(BaseModel):
    """Single dish in an order request."""
    dish_id: int = Field(..., examples=[1])
    options: List[OrderItemOption] = Field(default_factory=list)


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    restaurant_id: int = Field(..., examples=[1])
    items: List[CreateOrderItem] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    """Request schema for moving an order to a new status."""
    status: OrderStatus = Field(..., examples=["cooking"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UserResponse(BaseModel):
    """Public view of an account."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: UserRole
    created_at: datetime


class DishResponse(BaseModel):
    """Response schema for a dish."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    price: float
    description: Optional[str]
    photo: Optional[str]
    options: Optional[List[DishOption]]


class RestaurantResponse(BaseModel):
    """Response schema for a restaurant."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str
    cover_img: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    owner_id: int


class OrderItemResponse(BaseModel):
    """Ordered dish with the options chosen and the frozen line total."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    dish_id: Optional[int]
    options: Optional[List[OrderItemOption]]
    total: float


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: OrderStatus
    total: float
    customer_id: Optional[int]
    driver_id: Optional[int]
    restaurant_id: Optional[int]
    items: List[OrderItemResponse] = []
    created_at: datetime
    updated_at: datetime
    distance: Optional[float] = None  # Meters from the driver, driver views only


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool
    order_id: int


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    notification_service: str
    timestamp: datetime
