"""
Database Schemas for the E-commerce App

Each Pydantic model that corresponds to a MongoDB collection is named after it:
collection name is the lowercase of the class name (User -> "user").
The *Body models validate incoming request payloads.
"""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["customer", "admin"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")


# ----------------------- Users -----------------------
class Profile(BaseModel):
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password")
    role: Role = "customer"
    profile: Profile = Field(default_factory=Profile)


class SignupBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    profile: Optional[Profile] = None


class CreateAdminBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateProfileBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    profile: Optional[Profile] = None


class ChangePasswordBody(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


# ----------------------- Products -----------------------
class Variant(BaseModel):
    type: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class Inventory(BaseModel):
    quantity: int = Field(..., ge=0)
    in_stock: bool


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(..., min_length=1)
    variants: List[Variant] = Field(..., min_length=1)
    inventory: Inventory
    category_data: Optional[Any] = None
    image: Optional[str] = None


class ProductUpdateBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    variants: Optional[List[Variant]] = None
    inventory: Optional[Inventory] = None
    category_data: Optional[Any] = None
    image: Optional[str] = None


# ----------------------- Orders -----------------------
class ShippingAddress(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: Optional[str] = None


class Order(BaseModel):
    user_id: str
    email: EmailStr
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: Optional[ShippingAddress] = None


class OrderLine(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class OrderCreateBody(BaseModel):
    items: List[OrderLine]
    shipping_address: Optional[ShippingAddress] = None


class OrderStatusBody(BaseModel):
    status: OrderStatus


def first_error_message(exc) -> str:
    """Human-readable message from a pydantic ValidationError."""
    errors = exc.errors()
    if not errors:
        return "Invalid request data"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    msg = err.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg
