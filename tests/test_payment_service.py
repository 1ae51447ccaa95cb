"""Tests for payment intent creation and settlement."""

import pytest

from storefront.exceptions import (
    AlreadyPaidError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    PaymentMismatchError,
    PaymentNotCapturedError,
    PaymentProviderError,
    SignatureVerificationError,
)
from storefront.models.order import Order, OrderStatus
from storefront.schemas.order import OrderAdminUpdate, OrderCreate
from storefront.schemas.payment import PaymentVerification
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from tests.conftest import cart_payload


@pytest.fixture()
def orders(db, notifications):
    return OrderService(db, notifications)


@pytest.fixture()
def payments(db, gateway, notifications):
    return PaymentService(db, gateway, notifications)


@pytest.fixture()
def placed_order(orders, customer, make_product):
    product = make_product(stock=3)
    return orders.create_order(customer, OrderCreate(**cart_payload(product)))


def _verification(gateway, order_id, gateway_order_id, payment_id="pay_001", signature=None):
    return PaymentVerification(
        gateway_order_id=gateway_order_id,
        gateway_payment_id=payment_id,
        signature=signature or gateway.signature_for(gateway_order_id, payment_id),
        order_id=order_id,
    )


class TestCreatePaymentIntent:
    @pytest.mark.asyncio
    async def test_creates_intent_in_minor_units(self, db, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)

        assert intent.amount == 5400
        assert intent.currency == "INR"
        assert intent.key == "rzp_test_key"
        assert intent.customer_email == customer.email

        call = gateway.calls_to("create_remote_payment_intent")[0]
        assert call["receipt"] == f"order_{placed_order.id}"
        assert call["notes"]["order_id"] == str(placed_order.id)

        order = db.get(Order, placed_order.id)
        assert order.gateway_order_id == intent.gateway_order_id
        assert order.payment_method["type"] == "razorpay"
        assert order.status == OrderStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_second_intent_is_rejected(self, payments, customer, placed_order):
        await payments.create_payment_intent(customer, placed_order.id)

        with pytest.raises(AlreadyPaidError):
            await payments.create_payment_intent(customer, placed_order.id)

    @pytest.mark.asyncio
    async def test_other_customers_order_is_not_found(self, payments, make_user, placed_order):
        stranger = make_user(email="stranger@example.com")

        with pytest.raises(OrderNotFoundError):
            await payments.create_payment_intent(stranger, placed_order.id)

    @pytest.mark.asyncio
    async def test_cancelled_order_cannot_be_paid(self, orders, payments, gateway, customer, placed_order):
        orders.update_order(placed_order.id, OrderAdminUpdate(status="CANCELLED"))

        with pytest.raises(InvalidStatusTransitionError):
            await payments.create_payment_intent(customer, placed_order.id)
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_order_unlinked(self, db, payments, gateway, customer, placed_order):
        gateway.configure(should_succeed=False, failure_reason="Failed to create payment order: boom")

        with pytest.raises(PaymentProviderError):
            await payments.create_payment_intent(customer, placed_order.id)

        assert db.get(Order, placed_order.id).gateway_order_id is None

    @pytest.mark.asyncio
    async def test_concurrent_intent_loses_the_race(self, db, payments, gateway, customer, placed_order,
                                                    monkeypatch):
        create_intent = gateway.create_remote_payment_intent

        async def create_while_another_checkout_attaches(*args, **kwargs):
            intent = await create_intent(*args, **kwargs)
            db.query(Order).filter_by(id=placed_order.id).update({"gateway_order_id": "order_winner"})
            db.commit()
            return intent

        monkeypatch.setattr(gateway, "create_remote_payment_intent", create_while_another_checkout_attaches)

        with pytest.raises(AlreadyPaidError):
            await payments.create_payment_intent(customer, placed_order.id)

        db.expire_all()
        assert db.get(Order, placed_order.id).gateway_order_id == "order_winner"


class TestVerifyPayment:
    @pytest.mark.asyncio
    async def test_valid_signature_settles_order(self, db, payments, gateway, customer, placed_order,
                                                 sender, publisher):
        intent = await payments.create_payment_intent(customer, placed_order.id)

        result = await payments.verify_payment(
            customer, _verification(gateway, placed_order.id, intent.gateway_order_id)
        )

        assert result.success is True
        assert result.payment_id == "pay_001"
        assert result.amount == 54.0

        order = db.get(Order, placed_order.id)
        assert order.status == OrderStatus.PROCESSING.value
        assert order.payment_status == "PAID"
        assert order.gateway_payment_id == "pay_001"
        assert order.paid_at is not None
        assert order.payment_method["method"] == "card"

        confirmation = sender.sent[-1]
        assert confirmation.to == customer.email
        assert "Payment Confirmed" in confirmation.subject
        assert "pay_001" in confirmation.body
        assert publisher.events[-1][0] == "OrderStatusChanged"
        assert publisher.events[-1][1]["new_status"] == "PROCESSING"

    @pytest.mark.asyncio
    async def test_forged_signature_changes_nothing(self, db, payments, gateway, customer, placed_order, sender):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        emails_before = len(sender.sent)

        with pytest.raises(SignatureVerificationError):
            await payments.verify_payment(
                customer, _verification(gateway, placed_order.id, intent.gateway_order_id, signature="0" * 64)
            )

        order = db.get(Order, placed_order.id)
        assert order.status == OrderStatus.PENDING.value
        assert order.gateway_payment_id is None
        assert gateway.calls_to("fetch_remote_payment") == []
        assert len(sender.sent) == emails_before

    @pytest.mark.asyncio
    async def test_signature_for_another_payment_is_rejected(self, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        other_signature = gateway.signature_for(intent.gateway_order_id, "pay_other")

        with pytest.raises(SignatureVerificationError):
            await payments.verify_payment(
                customer,
                _verification(gateway, placed_order.id, intent.gateway_order_id, signature=other_signature),
            )

    @pytest.mark.asyncio
    async def test_replayed_verification_is_idempotent(self, db, payments, gateway, customer, placed_order, sender):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        data = _verification(gateway, placed_order.id, intent.gateway_order_id)
        await payments.verify_payment(customer, data)
        emails_after_first = len(sender.sent)

        result = await payments.verify_payment(customer, data)

        assert result.success is True
        assert len(sender.sent) == emails_after_first
        assert db.get(Order, placed_order.id).status == OrderStatus.PROCESSING.value

    @pytest.mark.asyncio
    async def test_second_payment_for_settled_order_is_rejected(self, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        with pytest.raises(InvalidStatusTransitionError):
            await payments.verify_payment(
                customer,
                _verification(gateway, placed_order.id, intent.gateway_order_id, payment_id="pay_002"),
            )

    @pytest.mark.asyncio
    async def test_mismatched_gateway_order_is_not_found(self, payments, gateway, customer, placed_order):
        await payments.create_payment_intent(customer, placed_order.id)

        with pytest.raises(OrderNotFoundError):
            await payments.verify_payment(customer, _verification(gateway, placed_order.id, "order_unknown"))

    @pytest.mark.asyncio
    async def test_uncaptured_payment_is_rejected(self, db, payments, gateway, customer, placed_order, sender):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        emails_before = len(sender.sent)
        gateway.payment_status = "failed"

        with pytest.raises(PaymentNotCapturedError) as exc_info:
            await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        assert exc_info.value.message == "Payment not completed. Gateway status: failed"
        order = db.get(Order, placed_order.id)
        assert order.status == OrderStatus.PENDING.value
        assert order.gateway_payment_id is None
        assert len(sender.sent) == emails_before

    @pytest.mark.asyncio
    async def test_authorized_payment_settles(self, db, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        gateway.payment_status = "authorized"

        result = await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        assert result.status == "authorized"
        assert db.get(Order, placed_order.id).status == OrderStatus.PROCESSING.value

    @pytest.mark.asyncio
    async def test_underpaid_payment_is_rejected(self, db, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        gateway.payment_amount = 100

        with pytest.raises(PaymentMismatchError) as exc_info:
            await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        assert exc_info.value.message == "Payment amount mismatch. Paid: 1.00, expected: 54.00"
        assert db.get(Order, placed_order.id).payment_status == "PENDING"

    @pytest.mark.asyncio
    async def test_payment_for_another_gateway_order_is_rejected(self, db, payments, gateway, customer,
                                                                 placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        gateway.payment_order_id = "order_elsewhere"

        with pytest.raises(PaymentMismatchError):
            await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        assert db.get(Order, placed_order.id).status == OrderStatus.PENDING.value


class TestTransactions:
    @pytest.mark.parametrize("status, payment_status, expected", [
        ("PENDING", "PENDING", "pending"),
        ("PROCESSING", "PAID", "completed"),
        ("SHIPPED", "PENDING", "completed"),
        ("PENDING", "FAILED", "failed"),
        ("CANCELLED", "PAID", "cancelled"),
        ("REFUNDED", "REFUNDED", "refunded"),
    ])
    def test_transaction_status(self, status, payment_status, expected):
        order = Order(status=status, payment_status=payment_status)

        assert PaymentService.transaction_status(order) == expected

    @pytest.mark.asyncio
    async def test_lists_every_order_with_its_customer(self, payments, gateway, customer, placed_order):
        intent = await payments.create_payment_intent(customer, placed_order.id)
        await payments.verify_payment(customer, _verification(gateway, placed_order.id, intent.gateway_order_id))

        listing = payments.list_transactions()

        assert listing.total == 1
        row = listing.transactions[0]
        assert row.order_number == placed_order.order_number
        assert row.customer_name == "Asha Rao"
        assert row.customer_email == customer.email
        assert row.status == "completed"
        assert row.payment_gateway == "razorpay"
        assert row.payment_method == "card"
        assert row.transaction_id == "pay_001"
        assert row.amount == 54.0
