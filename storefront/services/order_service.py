"""
Order Service - Business Logic Layer
"""
import math
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from storefront.exceptions import (
    ForbiddenError,
    InsufficientStockError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    OrderTotalMismatchError,
    ProductNotFoundError,
)
from storefront.models.order import Order, OrderStatus
from storefront.models.user import User
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.user_repository import UserRepository
from storefront.schemas.order import (
    OrderAdminUpdate,
    OrderCreate,
    OrderCreatedResponse,
    OrderListResponse,
    OrderResponse,
    Pagination,
    TrackingResponse,
)
from storefront.services import order_status
from storefront.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

# Largest rounding difference tolerated between client and server totals
TOTAL_TOLERANCE = 0.01


def format_order_number(sequence: int) -> str:
    return f"ORD-{sequence:06d}"


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session, notifications: NotificationService):
        self.db = db
        self.repository = OrderRepository(db)
        self.products = ProductRepository(db)
        self.users = UserRepository(db)
        self.notifications = notifications

    def _build_line_items(self, order_data: OrderCreate) -> list:
        """
        Validate every cart line against the catalogue and snapshot it

        Runs before any write. Name, price and SKU come from the product
        row, not the client.

        Raises:
            ProductNotFoundError: If a product does not exist
            InsufficientStockError: If a line asks for more than is in stock
        """
        lines = []
        for item in order_data.items:
            product = self.products.get_by_id(item.product_id)
            if not product:
                raise ProductNotFoundError(f"Product {item.name} not found")
            if product.stock < item.quantity:
                raise InsufficientStockError(item.name, product.stock)

            compare_price = product.compare_price if product.compare_price is not None else item.compare_price
            lines.append({
                "product_id": product.id,
                "name": product.name,
                "price": product.price,
                "compare_price": compare_price,
                "quantity": item.quantity,
                "image": product.image_url or item.image,
                "sku": product.sku or item.sku or "N/A",
            })
        return lines

    @staticmethod
    def _verify_totals(order_data: OrderCreate, lines: list) -> dict:
        """
        Recompute subtotal and savings from the snapshots and check the
        client's figures against them

        Raises:
            OrderTotalMismatchError: If subtotal or total disagree
        """
        subtotal = round(sum(line["price"] * line["quantity"] for line in lines), 2)
        savings = round(sum(
            (line["compare_price"] - line["price"]) * line["quantity"]
            for line in lines
            if line["compare_price"] and line["compare_price"] > line["price"]
        ), 2)

        if abs(order_data.subtotal - subtotal) > TOTAL_TOLERANCE:
            raise OrderTotalMismatchError(
                f"Subtotal mismatch. Submitted: {order_data.subtotal:.2f}, expected: {subtotal:.2f}"
            )

        total = round(subtotal + order_data.shipping_cost + order_data.tax_amount, 2)
        if abs(order_data.total_amount - total) > TOTAL_TOLERANCE:
            raise OrderTotalMismatchError(
                f"Total mismatch. Submitted: {order_data.total_amount:.2f}, expected: {total:.2f}"
            )

        return {
            "subtotal": subtotal,
            "shipping_cost": order_data.shipping_cost,
            "tax_amount": order_data.tax_amount,
            "total_amount": total,
            "savings": savings,
        }

    def create_order(self, user: User, order_data: OrderCreate) -> OrderCreatedResponse:
        """
        Create new order

        Steps:
        1. Validate every line against the catalogue (no writes yet)
        2. Recompute and check totals
        3. In one transaction: allocate the order number, persist the
           order, conditionally decrement stock per line
        4. Commit, then schedule confirmation email and OrderCreated event

        Raises:
            ProductNotFoundError: If a product is missing
            InsufficientStockError: If stock is short, including a lost
                race during the decrement (nothing is persisted)
            OrderTotalMismatchError: If submitted totals are wrong
        """
        lines = self._build_line_items(order_data)
        totals = self._verify_totals(order_data, lines)

        try:
            order_number = format_order_number(self.repository.next_order_number())

            order = self.repository.add({
                "user_id": user.id,
                "order_number": order_number,
                "status": OrderStatus.PENDING.value,
                "payment_status": "PENDING",
                "items": lines,
                "shipping_address": order_data.shipping_address.model_dump(),
                "payment_method": {
                    "type": order_data.payment_method or "razorpay",
                    "last_four_digits": "",
                },
                "shipping_method": order_data.shipping_method or "Standard",
                "order_notes": order_data.order_notes or "",
                **totals,
            })

            for line in lines:
                if not self.products.decrement_stock(line["product_id"], line["quantity"]):
                    available = self.products.get_stock(line["product_id"]) or 0
                    raise InsufficientStockError(line["name"], available)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            user_id=user.id,
            total=order.total_amount,
        )

        self.notifications.order_created(order)

        return OrderCreatedResponse(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            total=order.total_amount,
        )

    def get_order(self, user: User, order_id: int) -> OrderResponse:
        """Get order by ID; customers may only read their own orders"""
        order = self.repository.get_by_id(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        if not user.is_admin and order.user_id != user.id:
            raise ForbiddenError()
        return OrderResponse.model_validate(order)

    def list_orders(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
    ) -> OrderListResponse:
        """Get orders with pagination; scoped to the caller unless admin"""
        user_id = None if user.is_admin else user.id
        status = status.upper() if status and status.lower() != "all" else None

        orders = self.repository.get_all(
            skip=(page - 1) * limit,
            limit=limit,
            user_id=user_id,
            status=status,
        )
        total = self.repository.count(user_id=user_id, status=status)

        return OrderListResponse(
            orders=[OrderResponse.model_validate(o) for o in orders],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    def _get_or_404(self, order_id: int) -> Order:
        order = self.repository.get_by_id(order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        return order

    def recipient_for(self, order: Order) -> Optional[str]:
        """Customer email: account email first, then the shipping snapshot"""
        customer = self.users.get_by_id(order.user_id)
        if customer and customer.email:
            return customer.email
        return order.customer_email

    def _apply_transition(self, order: Order, target: OrderStatus, values: dict) -> Order:
        """Validate and apply a status change as a compare-and-set on the observed status"""
        observed = order.status
        order_status.transition(observed, target)

        values = {"status": target.value, **values}
        if not self.repository.compare_and_set(order.id, [observed], values):
            current = self._get_or_404(order.id)
            raise InvalidStatusTransitionError(current.status, target.value)

        return self.repository.refresh(order)

    def assign_tracking(self, order_id: int, tracking_number: str) -> TrackingResponse:
        """
        Attach a tracking number and move the order to SHIPPED

        An order that is already SHIPPED only has its tracking number replaced.
        """
        order = self._get_or_404(order_id)
        old_status = order.status

        if old_status == OrderStatus.SHIPPED.value:
            order = self.repository.update_fields(order.id, {"tracking_number": tracking_number})
        else:
            order = self._apply_transition(order, OrderStatus.SHIPPED, {
                "tracking_number": tracking_number,
                "shipped_at": datetime.now(timezone.utc),
            })

        logger.info("order_shipped", order_id=order.id, tracking_number=tracking_number)
        self.notifications.order_shipped(order, self.recipient_for(order), old_status)

        return TrackingResponse(
            id=order.id,
            tracking_number=order.tracking_number,
            status=order.status,
            message="Tracking number added and customer notified",
        )

    def update_order(self, order_id: int, update: OrderAdminUpdate) -> OrderResponse:
        """
        Admin edit of status, payment status and tracking number

        Status changes must be legal transitions.
        """
        order = self._get_or_404(order_id)
        old_status = order.status

        values = {}
        if update.payment_status:
            values["payment_status"] = update.payment_status.upper()
        if update.tracking_number:
            values["tracking_number"] = update.tracking_number

        if update.status and update.status != old_status:
            target = OrderStatus(update.status)
            if target == OrderStatus.SHIPPED:
                values["shipped_at"] = datetime.now(timezone.utc)
            order = self._apply_transition(order, target, values)
            logger.info("order_status_updated", order_id=order.id, old_status=old_status, new_status=order.status)
            self.notifications.status_changed(order, old_status)
        elif values:
            order = self.repository.update_fields(order.id, values)

        return OrderResponse.model_validate(order)
