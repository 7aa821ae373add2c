"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each Pydantic model represents a collection in the database.
Model name lowercased is the collection name (Admin -> "admin", Order -> "order").
Request bodies for the API live at the bottom of the file.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

UserStatus = Literal["active", "blocked"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered"]


class Admin(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: Literal["admin"] = "admin"


class CartItem(BaseModel):
    product: str = Field(..., description="Product ObjectId")
    quantity: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0)


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: Literal["user"] = "user"
    status: UserStatus = "active"
    is_deleted: bool = False
    phone: Optional[str] = None
    address: Optional[str] = None
    cart: List[CartItem] = Field(default_factory=list)
    cart_version: int = 0


class Product(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    in_stock: bool = True


class OrderProduct(BaseModel):
    product: str
    quantity: int = Field(..., ge=1)
    total_price: float = Field(..., ge=0)


class Order(BaseModel):
    order_id: str
    customer: str = Field(..., description="User ObjectId")
    email: EmailStr
    mobile_number: str
    products: List[OrderProduct] = Field(default_factory=list)
    house_number: Optional[str] = None
    street_address: Optional[str] = None
    district: str
    city: str
    order_note: Optional[str] = None
    payment_method: str
    shipping_method: str
    courier_address: Optional[str] = None
    status: OrderStatus = "pending"


class Coupon(BaseModel):
    code: str = Field(..., min_length=1)
    discount: float = Field(..., ge=0)
    expire_date: datetime


# Request bodies

class LoginInput(BaseModel):
    email: EmailStr
    password: str


class ChangePasswordInput(BaseModel):
    oldPassword: str
    newPassword: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    address: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[UserStatus] = None
    is_deleted: Optional[bool] = None


class AdminCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)


class AddToCartInput(BaseModel):
    product: str
    quantity: int = Field(1, ge=1)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    in_stock: Optional[bool] = None


class OrderProductInput(BaseModel):
    product: str
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    order_id: Optional[str] = None
    email: EmailStr
    mobile_number: str
    products: List[OrderProductInput] = Field(..., min_length=1)
    house_number: Optional[str] = None
    street_address: Optional[str] = None
    district: str
    city: str
    order_note: Optional[str] = None
    payment_method: str
    shipping_method: str
    courier_address: Optional[str] = None


class OrderUpdate(BaseModel):
    mobile_number: Optional[str] = None
    house_number: Optional[str] = None
    street_address: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    order_note: Optional[str] = None
    payment_method: Optional[str] = None
    shipping_method: Optional[str] = None
    courier_address: Optional[str] = None
    status: Optional[OrderStatus] = None


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1)
    discount: Optional[float] = Field(None, ge=0)
    expire_date: Optional[datetime] = None
