"""
Domain exceptions

Every error raised on purpose by the service layer derives from
StorefrontError and carries the HTTP status it maps to.
"""


class StorefrontError(Exception):
    """Base exception for storefront errors"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductNotFoundError(StorefrontError):
    """Cart references a product that does not exist"""
    pass


class InsufficientStockError(StorefrontError):
    """Requested quantity exceeds available stock"""

    def __init__(self, product_name: str, available: int):
        super().__init__(f"Insufficient stock for {product_name}. Available: {available}")
        self.product_name = product_name
        self.available = available


class OrderTotalMismatchError(StorefrontError):
    """Client supplied totals disagree with catalogue prices"""
    pass


class OrderNotFoundError(StorefrontError):
    status_code = 404

    def __init__(self, order_id):
        super().__init__(f"Order with id={order_id} not found")
        self.order_id = order_id


class ForbiddenError(StorefrontError):
    """Caller may not access this resource"""
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class InvalidStatusTransitionError(StorefrontError):
    status_code = 409

    def __init__(self, current, target):
        super().__init__(f"Cannot transition order from {current} to {target}")
        self.current = current
        self.target = target


class AlreadyPaidError(StorefrontError):
    def __init__(self, message: str = "Order is already paid"):
        super().__init__(message)


class AlreadyRefundedError(StorefrontError):
    def __init__(self, message: str = "Order already refunded"):
        super().__init__(message)


class SignatureVerificationError(StorefrontError):
    def __init__(self, message: str = "Payment signature verification failed"):
        super().__init__(message)


class InvalidAmountError(StorefrontError):
    """Amount is non-positive or below the processor minimum"""
    pass


class PaymentProviderError(StorefrontError):
    """Payment processor rejected a request or could not be reached"""
    status_code = 502


class RefundProviderError(StorefrontError):
    """Payment processor failed to create a refund"""

    def __init__(self, message: str = "Failed to process refund with payment provider"):
        super().__init__(message)


class PaymentNotCapturedError(StorefrontError):
    """Gateway reports the payment as not (yet) successful"""

    def __init__(self, payment_status: str):
        super().__init__(f"Payment not completed. Gateway status: {payment_status}")
        self.payment_status = payment_status


class PaymentMismatchError(StorefrontError):
    """Gateway payment does not belong to this order or has a different amount"""
    pass


class StockAdjustmentError(StorefrontError):
    """Admin stock change would drive stock below zero"""
    status_code = 409
