"""
Pydantic schemas for order request/response validation
"""
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import datetime

from storefront.models.order import OrderStatus


class CartItem(BaseModel):
    """One cart line as submitted at checkout"""
    product_id: int = Field(..., gt=0, description="Product ID")
    name: str = Field(..., min_length=1, max_length=255, description="Product name shown in the cart")
    price: float = Field(..., ge=0, description="Unit price shown in the cart")
    compare_price: Optional[float] = Field(None, ge=0, description="Compare-at price")
    quantity: int = Field(..., gt=0, description="Quantity to order")
    image: Optional[str] = Field(None, max_length=500)
    sku: Optional[str] = Field(None, max_length=100)


class ShippingAddress(BaseModel):
    """Postal and contact snapshot captured at checkout"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    email: EmailStr
    phone: str = Field("", max_length=30)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field("", max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("IN", max_length=100)


class OrderCreate(BaseModel):
    """Schema for creating a new order"""
    items: List[CartItem] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = Field("razorpay", max_length=50)
    shipping_method: str = Field("Standard", max_length=100)
    order_notes: str = Field("", max_length=2000)
    subtotal: float = Field(..., ge=0)
    shipping_cost: float = Field(0, ge=0)
    tax_amount: float = Field(0, ge=0)
    total_amount: float = Field(..., ge=0)
    savings: float = Field(0, ge=0)


class OrderCreatedResponse(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    total: float


class OrderItemResponse(BaseModel):
    product_id: int
    name: str
    price: float
    compare_price: Optional[float] = None
    quantity: int
    image: Optional[str] = None
    sku: str


class OrderResponse(BaseModel):
    """Schema for order response"""
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: str
    items: List[OrderItemResponse]
    shipping_address: dict
    payment_method: dict
    subtotal: float
    shipping_cost: float
    tax_amount: float
    total_amount: float
    savings: float
    shipping_method: str
    order_notes: str
    tracking_number: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    refund_id: Optional[str] = None
    refund_amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderListResponse(BaseModel):
    """Schema for list of orders response"""
    orders: List[OrderResponse]
    pagination: Pagination


class TrackingUpdate(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=100)


class TrackingResponse(BaseModel):
    id: int
    tracking_number: str
    status: OrderStatus
    message: str


class OrderAdminUpdate(BaseModel):
    """Admin edit; status changes go through the state machine, refunds use the refund endpoint"""
    status: Optional[Literal['PENDING', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED']] = None
    payment_status: Optional[str] = Field(None, max_length=50)
    tracking_number: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("status", mode="before")
    @classmethod
    def normalise_status(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


class RefundResponse(BaseModel):
    id: int
    status: OrderStatus
    refund_id: Optional[str] = None
    refund_amount: float
    message: str
