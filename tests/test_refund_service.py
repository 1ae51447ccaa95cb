"""Tests for the refund coordinator."""

import pytest
import pytest_asyncio

from storefront.exceptions import (
    AlreadyRefundedError,
    OrderNotFoundError,
    RefundProviderError,
)
from storefront.models.order import Order, OrderStatus
from storefront.schemas.order import OrderAdminUpdate, OrderCreate
from storefront.schemas.payment import PaymentVerification
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.services.refund_service import RefundService
from tests.conftest import cart_payload


@pytest.fixture()
def orders(db, notifications):
    return OrderService(db, notifications)


@pytest.fixture()
def refunds(db, gateway, notifications):
    return RefundService(db, gateway, notifications)


@pytest.fixture()
def pending_order(orders, customer, make_product):
    product = make_product(stock=3)
    return orders.create_order(customer, OrderCreate(**cart_payload(product)))


@pytest_asyncio.fixture()
async def paid_order(db, gateway, notifications, customer, pending_order):
    payments = PaymentService(db, gateway, notifications)
    intent = await payments.create_payment_intent(customer, pending_order.id)
    await payments.verify_payment(customer, PaymentVerification(
        gateway_order_id=intent.gateway_order_id,
        gateway_payment_id="pay_001",
        signature=gateway.signature_for(intent.gateway_order_id, "pay_001"),
        order_id=pending_order.id,
    ))
    return db.get(Order, pending_order.id)


@pytest.mark.asyncio
async def test_refund_paid_order_through_gateway(db, refunds, gateway, paid_order, sender, publisher):
    result = await refunds.refund_order(paid_order.id)

    assert result.status == OrderStatus.REFUNDED
    assert result.refund_id.startswith("rfnd_")
    assert result.refund_amount == 54.0

    call = gateway.calls_to("create_refund")[0]
    assert call["remote_payment_id"] == "pay_001"
    assert call["amount"] == 5400
    assert call["notes"]["order_id"] == str(paid_order.id)

    order = db.get(Order, paid_order.id)
    assert order.status == OrderStatus.REFUNDED.value
    assert order.payment_status == "REFUNDED"
    assert order.refund_id == result.refund_id
    assert order.refund_amount == 54.0
    assert order.refunded_at is not None

    email = sender.sent[-1]
    assert "Refund Processed" in email.subject
    assert result.refund_id in email.body
    assert publisher.events[-1][1]["old_status"] == "PROCESSING"
    assert publisher.events[-1][1]["new_status"] == "REFUNDED"


@pytest.mark.asyncio
async def test_second_refund_is_rejected_and_changes_nothing(db, refunds, gateway, paid_order):
    first = await refunds.refund_order(paid_order.id)
    refunded_at = db.get(Order, paid_order.id).refunded_at

    with pytest.raises(AlreadyRefundedError) as exc_info:
        await refunds.refund_order(paid_order.id)

    assert exc_info.value.message == "Order already refunded"
    order = db.get(Order, paid_order.id)
    assert order.refund_id == first.refund_id
    assert order.refunded_at == refunded_at
    assert len(gateway.calls_to("create_refund")) == 1


@pytest.mark.asyncio
async def test_gateway_failure_leaves_order_untouched(db, refunds, gateway, paid_order):
    gateway.configure(should_succeed=False, failure_reason="The payment has been fully refunded already")

    with pytest.raises(RefundProviderError):
        await refunds.refund_order(paid_order.id)

    order = db.get(Order, paid_order.id)
    assert order.status == OrderStatus.PROCESSING.value
    assert order.payment_status == "PAID"
    assert order.refund_id is None
    assert order.refunded_at is None


@pytest.mark.asyncio
async def test_unpaid_order_is_refunded_administratively(db, refunds, gateway, pending_order):
    result = await refunds.refund_order(pending_order.id)

    assert result.status == OrderStatus.REFUNDED
    assert result.refund_id is None
    assert gateway.calls_to("create_refund") == []
    assert db.get(Order, pending_order.id).refunded_at is not None


@pytest.mark.asyncio
async def test_cancelled_order_can_be_refunded(orders, refunds, pending_order):
    orders.update_order(pending_order.id, OrderAdminUpdate(status="CANCELLED"))

    result = await refunds.refund_order(pending_order.id)

    assert result.status == OrderStatus.REFUNDED


@pytest.mark.asyncio
async def test_concurrent_refund_loses_the_race(db, refunds, gateway, paid_order, monkeypatch):
    original = gateway.create_refund

    async def refunded_meanwhile(*args, **kwargs):
        refund = await original(*args, **kwargs)
        # a concurrent refund committed while the gateway call was in flight
        db.query(Order).filter_by(id=paid_order.id).update({"status": "REFUNDED", "refund_id": "rfnd_winner"})
        db.commit()
        return refund

    monkeypatch.setattr(gateway, "create_refund", refunded_meanwhile)

    with pytest.raises(AlreadyRefundedError):
        await refunds.refund_order(paid_order.id)

    db.expire_all()
    assert db.get(Order, paid_order.id).refund_id == "rfnd_winner"


@pytest.mark.asyncio
async def test_missing_order(refunds):
    with pytest.raises(OrderNotFoundError):
        await refunds.refund_order(12345)
