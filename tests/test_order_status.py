"""Tests for the order status state machine."""

import pytest

from storefront.exceptions import InvalidStatusTransitionError
from storefront.models.order import OrderStatus
from storefront.services import order_status


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        (OrderStatus.DELIVERED, OrderStatus.REFUNDED),
        (OrderStatus.CANCELLED, OrderStatus.REFUNDED),
    ],
)
def test_legal_transitions(current, target):
    assert order_status.transition(current, target) == target


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.DELIVERED, OrderStatus.PENDING),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
        (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
        (OrderStatus.REFUNDED, OrderStatus.REFUNDED),
        (OrderStatus.REFUNDED, OrderStatus.PENDING),
        (OrderStatus.PENDING, OrderStatus.DELIVERED),
    ],
)
def test_illegal_transitions_raise(current, target):
    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        order_status.transition(current, target)

    assert exc_info.value.status_code == 409
    assert current.value in exc_info.value.message
    assert target.value in exc_info.value.message


def test_every_state_except_refunded_can_refund():
    for state in OrderStatus:
        expected = state != OrderStatus.REFUNDED
        assert order_status.can_transition(state, OrderStatus.REFUNDED) is expected


def test_accepts_stored_string_values():
    assert order_status.transition("PENDING", "processing") == OrderStatus.PROCESSING


def test_unknown_status_is_not_a_legal_transition():
    assert order_status.can_transition("PENDING", "LOST") is False
    with pytest.raises(InvalidStatusTransitionError):
        order_status.transition("PENDING", "LOST")


def test_sources_for_refunded_excludes_refunded():
    sources = order_status.sources_for(OrderStatus.REFUNDED)
    assert OrderStatus.REFUNDED not in sources
    assert sources == set(OrderStatus) - {OrderStatus.REFUNDED}
