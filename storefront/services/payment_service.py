"""
Payment Service - intent creation and settlement
"""
from datetime import datetime, timezone

import structlog
from sqlalchemy.orm import Session

from storefront.exceptions import (
    AlreadyPaidError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    PaymentMismatchError,
    PaymentNotCapturedError,
    SignatureVerificationError,
)
from storefront.models.order import Order, OrderStatus
from storefront.models.user import User
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.user_repository import UserRepository
from storefront.schemas.payment import (
    PaymentIntentResponse,
    PaymentTransaction,
    PaymentTransactionListResponse,
    PaymentVerification,
    PaymentVerificationResponse,
)
from storefront.services import order_status
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway, RemotePayment, format_amount, parse_amount

logger = structlog.get_logger(__name__)

# Gateway payment states that count as money received
SETTLED_PAYMENT_STATUSES = ("captured", "authorized")


class PaymentService:
    """Service layer for the remote payment flow"""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        notifications: NotificationService,
        currency: str = "INR",
    ):
        self.repository = OrderRepository(db)
        self.users = UserRepository(db)
        self.gateway = gateway
        self.notifications = notifications
        self.currency = currency

    async def create_payment_intent(self, user: User, order_id: int) -> PaymentIntentResponse:
        """
        Create a remote payment intent for one of the caller's orders

        Raises:
            OrderNotFoundError: If the order does not exist or is not the caller's
            AlreadyPaidError: If a gateway order or payment is already attached
            InvalidAmountError: If the order total is not payable
            PaymentProviderError: If the gateway call fails
        """
        order = self.repository.get_for_user(order_id, user.id)
        if not order:
            raise OrderNotFoundError(order_id)

        if order.gateway_order_id or order.gateway_payment_id:
            raise AlreadyPaidError()

        if order.status != OrderStatus.PENDING.value:
            raise InvalidStatusTransitionError(order.status, OrderStatus.PROCESSING.value)

        if not order.total_amount or order.total_amount <= 0:
            raise InvalidAmountError("Invalid order amount")

        intent = await self.gateway.create_remote_payment_intent(
            order.total_amount,
            self.currency,
            receipt=f"order_{order.id}",
            notes={
                "order_id": str(order.id),
                "user_id": str(user.id),
                "customer_email": user.email or "",
            },
        )

        payment_method = dict(order.payment_method or {})
        payment_method["type"] = "razorpay"
        attached = self.repository.compare_and_set(
            order.id,
            [OrderStatus.PENDING],
            {"gateway_order_id": intent.id, "payment_method": payment_method},
            conditions=[Order.gateway_order_id.is_(None), Order.gateway_payment_id.is_(None)],
        )
        if not attached:
            current = self.repository.get_by_id(order.id)
            logger.warning(
                "payment_intent_discarded",
                order_id=order.id,
                remote_order_id=intent.id,
                attached_remote_order_id=current.gateway_order_id,
            )
            if current.status != OrderStatus.PENDING.value:
                raise InvalidStatusTransitionError(current.status, OrderStatus.PROCESSING.value)
            raise AlreadyPaidError()

        logger.info("payment_intent_created", order_id=order.id, remote_order_id=intent.id)

        return PaymentIntentResponse(
            gateway_order_id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
            key=self.gateway.key_id,
            order_id=order.id,
            customer_name=user.name or "Customer",
            customer_email=user.email,
        )

    def _settled(self, order: Order, payment: RemotePayment) -> PaymentVerificationResponse:
        return PaymentVerificationResponse(
            success=True,
            message="Payment verified successfully",
            order_id=order.id,
            payment_id=payment.id,
            status=payment.status,
            amount=parse_amount(payment.amount),
        )

    def _check_payment(self, order: Order, data: PaymentVerification, payment: RemotePayment) -> None:
        """
        Reject payments the gateway does not report as successful for this
        order's full total

        Raises:
            PaymentNotCapturedError: If the gateway status is not settled
            PaymentMismatchError: If the payment is for another gateway
                order or a different amount
        """
        if payment.status not in SETTLED_PAYMENT_STATUSES:
            logger.warning("payment_not_captured", order_id=order.id, remote_payment_id=payment.id,
                           gateway_status=payment.status)
            raise PaymentNotCapturedError(payment.status)

        expected = format_amount(order.total_amount)
        if payment.order_id and payment.order_id != data.gateway_order_id:
            raise PaymentMismatchError("Payment does not belong to this order")
        if payment.amount != expected:
            logger.warning("payment_amount_mismatch", order_id=order.id, remote_payment_id=payment.id,
                           paid=payment.amount, expected=expected)
            raise PaymentMismatchError(
                f"Payment amount mismatch. Paid: {parse_amount(payment.amount):.2f}, "
                f"expected: {parse_amount(expected):.2f}"
            )

    async def verify_payment(self, user: User, data: PaymentVerification) -> PaymentVerificationResponse:
        """
        Settle a payment completed on the client

        Verifies the checkout signature, reads the authoritative payment
        back from the gateway and moves the order PENDING -> PROCESSING.
        Replaying the same verification for an already settled payment
        returns success without side effects.

        Raises:
            OrderNotFoundError: If the order is missing, not the caller's, or
                linked to a different gateway order
            SignatureVerificationError: If the signature does not match
            InvalidStatusTransitionError: If the order can no longer be paid
            PaymentNotCapturedError: If the gateway has not captured the payment
            PaymentMismatchError: If the payment is for another order or amount
        """
        order = self.repository.get_for_user(data.order_id, user.id)
        if not order or order.gateway_order_id != data.gateway_order_id:
            raise OrderNotFoundError(data.order_id)

        if not self.gateway.verify_signature(data.gateway_order_id, data.gateway_payment_id, data.signature):
            logger.warning(
                "payment_signature_mismatch",
                order_id=order.id,
                remote_order_id=data.gateway_order_id,
                remote_payment_id=data.gateway_payment_id,
            )
            raise SignatureVerificationError()

        payment = await self.gateway.fetch_remote_payment(data.gateway_payment_id)

        if order.gateway_payment_id == data.gateway_payment_id:
            return self._settled(order, payment)

        order_status.transition(order.status, OrderStatus.PROCESSING)
        self._check_payment(order, data, payment)

        payment_method = dict(order.payment_method or {})
        payment_method["type"] = "razorpay"
        if payment.method:
            payment_method["method"] = payment.method

        settled = self.repository.compare_and_set(
            order.id,
            [OrderStatus.PENDING],
            {
                "status": OrderStatus.PROCESSING.value,
                "payment_status": "PAID",
                "gateway_payment_id": data.gateway_payment_id,
                "paid_at": datetime.now(timezone.utc),
                "payment_method": payment_method,
            },
        )
        order = self.repository.get_by_id(order.id) if not settled else self.repository.refresh(order)

        if not settled:
            if order.gateway_payment_id == data.gateway_payment_id:
                return self._settled(order, payment)
            raise InvalidStatusTransitionError(order.status, OrderStatus.PROCESSING.value)

        amount = parse_amount(payment.amount)
        logger.info(
            "payment_verified",
            order_id=order.id,
            remote_payment_id=payment.id,
            amount=amount,
            gateway_status=payment.status,
        )

        self.notifications.payment_confirmed(
            order,
            to=user.email or order.customer_email,
            amount=amount,
            method=payment.method,
            payment_status=payment.status,
        )
        return self._settled(order, payment)

    @staticmethod
    def transaction_status(order: Order) -> str:
        """Collapse order and payment status into one transaction status"""
        if order.status == OrderStatus.REFUNDED.value:
            return "refunded"
        if order.status == OrderStatus.CANCELLED.value:
            return "cancelled"
        if order.payment_status == "PAID" or order.status in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value):
            return "completed"
        if order.payment_status == "FAILED":
            return "failed"
        return "pending"

    def list_transactions(self, page: int = 1, limit: int = 50) -> PaymentTransactionListResponse:
        """Every order as a payment transaction, newest first (admin)"""
        orders = self.repository.get_all(skip=(page - 1) * limit, limit=limit)
        customers = self.users.get_many(o.user_id for o in orders)

        transactions = []
        for order in orders:
            customer = customers.get(order.user_id)
            transactions.append(PaymentTransaction(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=order.user_id,
                customer_name=(customer.name if customer else None) or order.customer_name or None,
                customer_email=(customer.email if customer else None) or order.customer_email or "Unknown",
                amount=order.total_amount,
                currency=self.currency,
                payment_method=(order.payment_method or {}).get("method")
                or (order.payment_method or {}).get("type")
                or "razorpay",
                payment_gateway="razorpay" if order.gateway_payment_id else "manual",
                status=self.transaction_status(order),
                transaction_id=order.gateway_payment_id or order.order_number,
                gateway_order_id=order.gateway_order_id,
                gateway_payment_id=order.gateway_payment_id,
                refund_id=order.refund_id,
                refund_amount=order.refund_amount,
                refunded_at=order.refunded_at,
                created_at=order.created_at,
                updated_at=order.updated_at,
            ))

        return PaymentTransactionListResponse(transactions=transactions, total=self.repository.count())
