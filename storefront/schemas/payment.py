"""
Pydantic schemas for payment endpoints
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class PaymentIntentCreate(BaseModel):
    order_id: int = Field(..., gt=0, description="Local order ID")


class PaymentIntentResponse(BaseModel):
    gateway_order_id: str
    amount: int = Field(..., description="Amount in minor currency units")
    currency: str
    key: str = Field(..., description="Public key id for the client checkout widget")
    order_id: int
    customer_name: str
    customer_email: Optional[str] = None


class PaymentVerification(BaseModel):
    gateway_order_id: str = Field(..., min_length=1)
    gateway_payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    order_id: int = Field(..., gt=0)


class PaymentVerificationResponse(BaseModel):
    success: bool
    message: str
    order_id: int
    payment_id: str
    status: str
    amount: float = Field(..., description="Settled amount in major currency units")


class PaymentTransaction(BaseModel):
    """One order seen as a payment transaction (admin view)"""
    order_id: int
    order_number: str
    customer_id: int
    customer_name: Optional[str] = None
    customer_email: str
    amount: float
    currency: str
    payment_method: str
    payment_gateway: str = Field(..., description="'razorpay' when a gateway payment is attached, else 'manual'")
    status: str = Field(..., description="pending, completed, failed, cancelled or refunded")
    transaction_id: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    refund_id: Optional[str] = None
    refund_amount: Optional[float] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PaymentTransactionListResponse(BaseModel):
    transactions: List[PaymentTransaction]
    total: int
