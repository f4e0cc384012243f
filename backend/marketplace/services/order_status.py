from typing import Dict, FrozenSet

from marketplace.errors import Conflict
from marketplace.models_sqlalchemy.models import OrderStatus


# Seller/admin initiated transitions. Moves into PAID happen only through
# payment reconciliation and are not listed here.
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def is_transition_allowed(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition_allowed(current: OrderStatus, requested: OrderStatus) -> None:
    """Raise Conflict naming both statuses when the move is not in the table."""
    if not is_transition_allowed(current, requested):
        current_value = OrderStatus(current).value
        requested_value = OrderStatus(requested).value
        raise Conflict(
            f"Cannot change order status from {current_value} to {requested_value}",
            code="invalid_transition",
            current_status=current_value,
            requested_status=requested_value,
        )
