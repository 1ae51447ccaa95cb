"""
Notification Service - customer emails and order events

Everything here runs after the primary transaction has committed. A
delivery is retried a bounded number of times and then dropped with a
log line; it never fails the request that triggered it.
"""
import smtplib
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Callable, Optional

import structlog
from fastapi import BackgroundTasks
from tenacity import Retrying, stop_after_attempt, wait_exponential, RetryError

from storefront.config import Settings
from storefront.models.order import Order
from storefront.publishers.event_publisher import EventPublisher

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Email:
    to: str
    subject: str
    body: str


class EmailSender:
    """Sends plain-text email through the configured transport"""

    def __init__(self, config: Settings):
        self.email_service = config.EMAIL_SERVICE
        self.sender = config.EMAIL_FROM
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_username = config.SMTP_USERNAME
        self.smtp_password = config.SMTP_PASSWORD
        self.smtp_use_tls = config.SMTP_USE_TLS

    def send(self, email: Email) -> bool:
        if self.email_service == "disabled":
            return False
        if self.email_service == "console":
            return self._send_console(email)
        if self.email_service == "smtp":
            return self._send_smtp(email)

        logger.warning("unknown_email_service", email_service=self.email_service)
        return False

    def _send_console(self, email: Email) -> bool:
        """Log the email instead of sending it (development)"""
        logger.info("email_console", to=email.to, subject=email.subject, body=email.body)
        return True

    def _send_smtp(self, email: Email) -> bool:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.body)

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as smtp:
            if self.smtp_use_tls:
                smtp.starttls()
            if self.smtp_username:
                smtp.login(self.smtp_username, self.smtp_password)
            smtp.send_message(message)

        logger.info("email_sent", to=email.to, subject=email.subject)
        return True


def _money(amount, currency: str = "INR") -> str:
    return f"{currency} {float(amount or 0):.2f}"


def order_confirmation_email(order: Order) -> Email:
    name = (order.shipping_address or {}).get("first_name") or "there"
    lines = "\n".join(
        f"  - {item['name']} x {item['quantity']} @ {_money(item['price'])}"
        for item in order.items
    )
    body = f"""
Hi {name},

Thank you for your order. We have received it and will process it shortly.

Order Number: {order.order_number}
{lines}

Subtotal: {_money(order.subtotal)}
Shipping: {_money(order.shipping_cost)}
Tax: {_money(order.tax_amount)}
Total Amount: {_money(order.total_amount)}
Status: Order Placed

You will receive another email with payment details shortly.

---
Storefront Team
"""
    return Email(
        to=order.customer_email,
        subject=f"Order Confirmation - Order #{order.order_number}",
        body=body,
    )


def payment_confirmation_email(order: Order, to: str, amount: float, method: Optional[str],
                               payment_status: str) -> Email:
    body = f"""
Hi {order.customer_name or 'Valued Customer'},

We have successfully received your payment for order #{order.order_number}.

Amount: {_money(amount)}
Payment ID: {order.gateway_payment_id}
Payment Method: {method or 'N/A'}
Status: {payment_status}

Your order is now being processed. You will receive another email with
tracking information once it is dispatched.

---
Storefront Team
"""
    return Email(to=to, subject=f"Payment Confirmed - Order #{order.order_number}", body=body)


def tracking_email(order: Order, to: str) -> Email:
    shipped_at = order.shipped_at or datetime.now(timezone.utc)
    body = f"""
Hi {order.customer_name or 'Valued Customer'},

Great news! Your order has been shipped and is on its way to you.

Order Number: #{order.order_number}
Tracking Number: {order.tracking_number}
Shipped Date: {shipped_at.date().isoformat()}

---
Storefront Team
"""
    return Email(to=to, subject=f"Your Order #{order.order_number} Has Shipped!", body=body)


def refund_email(order: Order, to: str) -> Email:
    refund_line = f"Refund ID: {order.refund_id}\n" if order.refund_id else ""
    refunded_at = order.refunded_at or datetime.now(timezone.utc)
    body = f"""
Hi {order.customer_name or 'Valued Customer'},

We have processed a refund for your order.

Order Number: #{order.order_number}
Refund Amount: {_money(order.refund_amount)}
Refund Date: {refunded_at.date().isoformat()}
{refund_line}
The refund will appear on your original payment method within 5-10 business days.

---
Storefront Team
"""
    return Email(to=to, subject=f"Refund Processed for Order #{order.order_number}", body=body)


def order_event_data(order: Order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "total_amount": order.total_amount,
        "items": [
            {"product_id": item["product_id"], "quantity": item["quantity"]}
            for item in order.items
        ],
    }


class NotificationService:
    """
    Schedules best-effort customer notifications

    With a BackgroundTasks instance deliveries run after the response has
    been sent; without one they run inline (scripts, tests).
    """

    def __init__(
        self,
        sender: EmailSender,
        publisher: EventPublisher,
        max_retries: int = 3,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.sender = sender
        self.publisher = publisher
        self.max_retries = max_retries
        self.background_tasks = background_tasks

    def _dispatch(self, label: str, func: Callable, *args) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self._deliver, label, func, *args)
        else:
            self._deliver(label, func, *args)

    def _deliver(self, label: str, func: Callable, *args) -> bool:
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=0.5, max=5),
                reraise=False,
            ):
                with attempt:
                    return bool(func(*args))
        except RetryError as e:
            logger.warning(
                "notification_failed",
                notification=label,
                attempts=self.max_retries,
                error=str(e.last_attempt.exception()),
            )
        return False

    def _email(self, label: str, email: Email) -> None:
        if not email.to:
            logger.info("notification_skipped_no_recipient", notification=label)
            return
        self._dispatch(label, self.sender.send, email)

    def order_created(self, order: Order) -> None:
        self._email("order_confirmation", order_confirmation_email(order))
        self._dispatch("order_created_event", self.publisher.publish_order_created, order_event_data(order))

    def payment_confirmed(self, order: Order, to: str, amount: float, method: Optional[str],
                          payment_status: str) -> None:
        self._email("payment_confirmation", payment_confirmation_email(order, to, amount, method, payment_status))
        self.status_changed(order, "PENDING")

    def order_shipped(self, order: Order, to: str, old_status: str) -> None:
        self._email("tracking", tracking_email(order, to))
        self.status_changed(order, old_status)

    def order_refunded(self, order: Order, to: str, old_status: str) -> None:
        self._email("refund", refund_email(order, to))
        self.status_changed(order, old_status)

    def status_changed(self, order: Order, old_status: str) -> None:
        data = order_event_data(order)
        data["old_status"] = old_status
        data["new_status"] = order.status
        self._dispatch("order_status_changed_event", self.publisher.publish_order_status_changed, data)
