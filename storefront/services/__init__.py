"""
Services package
"""
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.services.refund_service import RefundService
from storefront.services.product_service import ProductService

__all__ = ["OrderService", "PaymentService", "RefundService", "ProductService"]
