"""
Order access rules.

Who may read an order, and which statuses each role may set.
"""

from typing import Optional

from delivery_app.models import Order, OrderStatus, User, UserRole
from delivery_app.services.errors import PermissionDeniedError

LIFECYCLE = (
    OrderStatus.PENDING,
    OrderStatus.COOKING,
    OrderStatus.COOKED,
    OrderStatus.PICKED_UP,
    OrderStatus.DELIVERED,
)

ROLE_STATUSES = {
    UserRole.CLIENT: frozenset(),
    UserRole.OWNER: frozenset({OrderStatus.COOKING, OrderStatus.COOKED}),
    UserRole.DELIVERY: frozenset({OrderStatus.PICKED_UP, OrderStatus.DELIVERED}),
}


def can_view(user: User, order: Order) -> bool:
    """True for the order's customer, its driver, or its restaurant owner."""
    if user.id is None:
        return False
    if user.id in (order.customer_id, order.driver_id):
        return True
    restaurant = order.restaurant
    return restaurant is not None and restaurant.owner_id == user.id


def allowed_statuses(role: UserRole) -> frozenset:
    return ROLE_STATUSES.get(role, frozenset())


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    index = LIFECYCLE.index(status)
    if index + 1 < len(LIFECYCLE):
        return LIFECYCLE[index + 1]
    return None


def check_edit_status(
    role: UserRole,
    status: OrderStatus,
    current: Optional[OrderStatus] = None,
    strict: bool = False,
) -> None:
    """
    Raise PermissionDeniedError unless ``role`` may set ``status``.

    With ``strict`` the new status must also directly follow ``current``.
    """
    if role == UserRole.CLIENT:
        raise PermissionDeniedError("Clients cannot edit orders")
    if status not in allowed_statuses(role):
        raise PermissionDeniedError(
            f"Role '{role.value}' cannot set status '{status.value}'"
        )
    if strict and current is not None and next_status(current) != status:
        raise PermissionDeniedError(
            f"Cannot move order from '{current.value}' to '{status.value}'"
        )
