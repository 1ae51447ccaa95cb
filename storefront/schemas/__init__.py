"""
Schemas package
"""
from storefront.schemas.order import (
    CartItem,
    ShippingAddress,
    OrderCreate,
    OrderCreatedResponse,
    OrderResponse,
    OrderListResponse,
    OrderAdminUpdate,
    TrackingUpdate,
    TrackingResponse,
    RefundResponse
)
from storefront.schemas.payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentVerification,
    PaymentVerificationResponse,
    PaymentTransaction,
    PaymentTransactionListResponse
)
from storefront.schemas.product import (
    ProductCreate,
    StockUpdate,
    ProductResponse,
    ProductListResponse
)

__all__ = [
    "CartItem",
    "ShippingAddress",
    "OrderCreate",
    "OrderCreatedResponse",
    "OrderResponse",
    "OrderListResponse",
    "OrderAdminUpdate",
    "TrackingUpdate",
    "TrackingResponse",
    "RefundResponse",
    "PaymentIntentCreate",
    "PaymentIntentResponse",
    "PaymentVerification",
    "PaymentVerificationResponse",
    "PaymentTransaction",
    "PaymentTransactionListResponse",
    "ProductCreate",
    "StockUpdate",
    "ProductResponse",
    "ProductListResponse"
]
