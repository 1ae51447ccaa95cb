"""
Order status state machine

    PENDING -> PROCESSING -> SHIPPED -> DELIVERED
    PENDING | PROCESSING -> CANCELLED
    any state except REFUNDED -> REFUNDED

PENDING -> SHIPPED covers orders settled outside the gateway.
"""
from typing import Union

from storefront.exceptions import InvalidStatusTransitionError
from storefront.models.order import OrderStatus


VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # Terminal
}


def _coerce(status: Union[OrderStatus, str]) -> OrderStatus:
    return status if isinstance(status, OrderStatus) else OrderStatus(str(status).upper())


def can_transition(current: Union[OrderStatus, str], target: Union[OrderStatus, str]) -> bool:
    try:
        current, target = _coerce(current), _coerce(target)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS[current]


def transition(current: Union[OrderStatus, str], target: Union[OrderStatus, str]) -> OrderStatus:
    """
    Validate a status change

    Returns:
        The target status

    Raises:
        InvalidStatusTransitionError: If the table does not allow the move
    """
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            getattr(current, "value", current),
            getattr(target, "value", target),
        )
    return _coerce(target)


def sources_for(target: Union[OrderStatus, str]) -> set:
    """States from which `target` is reachable"""
    target = _coerce(target)
    return {state for state, targets in VALID_TRANSITIONS.items() if target in targets}
