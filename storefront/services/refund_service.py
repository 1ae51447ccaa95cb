"""
Refund Service - refunds through the gateway or administratively
"""
from datetime import datetime, timezone

import structlog
from sqlalchemy.orm import Session

from storefront.exceptions import (
    AlreadyRefundedError,
    OrderNotFoundError,
    PaymentProviderError,
    RefundProviderError,
)
from storefront.models.order import OrderStatus
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.user_repository import UserRepository
from storefront.schemas.order import RefundResponse
from storefront.services import order_status
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import PaymentGateway, format_amount

logger = structlog.get_logger(__name__)


class RefundService:
    """Coordinates gateway refunds and the REFUNDED transition"""

    def __init__(self, db: Session, gateway: PaymentGateway, notifications: NotificationService):
        self.repository = OrderRepository(db)
        self.users = UserRepository(db)
        self.gateway = gateway
        self.notifications = notifications

    async def refund_order(self, order_id: int) -> RefundResponse:
        """
        Refund an order in full

        The gateway is called only when a payment id is attached; otherwise
        the refund is administrative. The status write only lands if the
        order is still not REFUNDED, so two concurrent refunds cannot both
        succeed.

        Raises:
            OrderNotFoundError: If the order does not exist
            AlreadyRefundedError: If the order is, or concurrently became, REFUNDED
            RefundProviderError: If the gateway refund fails (order untouched)
        """
        order = self.repository.get_by_id(order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        if order.status == OrderStatus.REFUNDED.value:
            raise AlreadyRefundedError()

        old_status = order.status
        order_status.transition(old_status, OrderStatus.REFUNDED)
        refund_amount = order.total_amount

        refund = None
        if order.gateway_payment_id:
            try:
                refund = await self.gateway.create_refund(
                    order.gateway_payment_id,
                    format_amount(refund_amount),
                    {
                        "order_id": str(order.id),
                        "refund_reason": "requested_by_customer",
                    },
                )
            except PaymentProviderError as e:
                logger.error("refund_provider_failed", order_id=order.id, error=e.message)
                raise RefundProviderError()

        refunded = self.repository.compare_and_set(
            order.id,
            order_status.sources_for(OrderStatus.REFUNDED),
            {
                "status": OrderStatus.REFUNDED.value,
                "payment_status": "REFUNDED",
                "refund_id": refund.id if refund else None,
                "refund_amount": refund_amount,
                "refunded_at": datetime.now(timezone.utc),
            },
        )
        if not refunded:
            logger.error(
                "refund_lost_race",
                order_id=order.id,
                gateway_refund_id=refund.id if refund else None,
            )
            raise AlreadyRefundedError()

        order = self.repository.refresh(order)
        logger.info(
            "order_refunded",
            order_id=order.id,
            refund_id=order.refund_id,
            amount=refund_amount,
            administrative=refund is None,
        )

        customer = self.users.get_by_id(order.user_id)
        recipient = customer.email if customer and customer.email else order.customer_email
        self.notifications.order_refunded(order, recipient, old_status)

        return RefundResponse(
            id=order.id,
            status=order.status,
            refund_id=order.refund_id,
            refund_amount=refund_amount,
            message="Refund processed successfully and customer notified",
        )
