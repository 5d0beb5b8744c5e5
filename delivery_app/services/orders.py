"""
Order Lifecycle Service

Creates orders with computed pricing, enforces role-gated status
changes, assigns drivers, and fans lifecycle events out through the
injected notification service.

Each public method is one unit of work on the request's session and
returns an ``OperationResult``. Events are published only after the
state change is committed; a failed publish never undoes it.

Usage:
    service = OrderService(session, notifier=get_notification_service())
    result = await service.create_order(customer, restaurant_id=1, items=[...])
    if result.success:
        print(result.order_id)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from delivery_app.core.config import Settings, get_settings
from delivery_app.models import Dish, Order, OrderItem, OrderStatus, Restaurant, User, UserRole
from delivery_app.schemas import CreateOrderItem, OrderResponse
from delivery_app.services.errors import (
    ConflictError,
    NotFoundError,
    OperationResult,
    PermissionDeniedError,
    service_operation,
)
from delivery_app.services.geo import (
    distance_to_restaurant,
    restaurant_distance_expression,
    within_radius,
)
from delivery_app.services.notifications import BaseNotificationService, NotificationChannel
from delivery_app.services.policy import can_view, check_edit_status
from delivery_app.services.pricing import compute_line_total, compute_order_total

logger = logging.getLogger(__name__)

# Statuses drivers are offered when they do not ask for a specific one
DRIVER_DEFAULT_STATUSES = (OrderStatus.COOKING, OrderStatus.COOKED)


@dataclass
class DriverOrder:
    """An order as seen by a driver, with the distance to its restaurant."""
    order: Order
    distance: Optional[float] = None


def order_snapshot(order: Order) -> dict:
    """JSON-ready view of an order for event payloads."""
    return OrderResponse.model_validate(order).model_dump(mode="json")


class OrderService:
    """
    Order lifecycle operations for one request.

    Args:
        session: The request's database session
        notifier: Transport for lifecycle events
        settings: Business rule configuration (defaults to app settings)
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: BaseNotificationService,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.notifier = notifier
        self.settings = settings or get_settings()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_order(self, order_id: int, *options) -> Order:
        result = await self.session.execute(
            select(Order)
            .options(*options)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order #{order_id} not found")
        return order

    async def _publish(self, channel: NotificationChannel, payload: dict) -> None:
        try:
            result = await self.notifier.publish(channel, payload)
        except Exception:
            logger.exception(f"{channel.value} publish raised; the change stays committed")
            return
        if not result.success:
            logger.debug(f"{channel.value} not delivered: {result.error_message}")

    # =========================================================================
    # CREATE
    # =========================================================================

    @service_operation
    async def create_order(
        self,
        customer: User,
        restaurant_id: int,
        items: Sequence[CreateOrderItem],
    ) -> OperationResult:
        """
        Place an order for a customer.

        Prices every item from its dish, stores the order and all of its
        items in one commit, then notifies the restaurant owner.

        Returns:
            OperationResult: ``order_id`` of the new pending order
        """
        restaurant = await self.session.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant #{restaurant_id} not found")

        order = Order(
            customer_id=customer.id,
            restaurant_id=restaurant.id,
            status=OrderStatus.PENDING,
        )

        line_totals = []
        for item in items:
            dish = await self.session.get(Dish, item.dish_id)
            if dish is None or dish.restaurant_id != restaurant.id:
                raise NotFoundError(f"Dish #{item.dish_id} not found")

            line_total = compute_line_total(
                dish.price,
                dish.options,
                item.options,
                strict=self.settings.strict_option_matching,
            )
            order.items.append(
                OrderItem(
                    dish_id=dish.id,
                    options=[option.model_dump() for option in item.options],
                    total=line_total,
                )
            )
            line_totals.append(line_total)

        order.total = compute_order_total(line_totals)
        self.session.add(order)
        await self.session.commit()

        order = await self._load_order(order.id, selectinload(Order.items))
        logger.info(
            f"Order #{order.id} created for restaurant #{restaurant.id} "
            f"({len(line_totals)} items, total {order.total:.2f})"
        )

        await self._publish(
            NotificationChannel.NEW_PENDING_ORDER,
            {"order": order_snapshot(order), "owner_id": restaurant.owner_id},
        )
        return OperationResult(success=True, order_id=order.id, order=order)

    # =========================================================================
    # READ
    # =========================================================================

    @service_operation
    async def get_orders(
        self,
        user: User,
        status: Optional[OrderStatus] = None,
    ) -> OperationResult:
        """List the orders a user is involved in, optionally by status."""
        query = select(Order).options(selectinload(Order.items)).order_by(Order.id)

        if user.role == UserRole.CLIENT:
            query = query.where(Order.customer_id == user.id)
        elif user.role == UserRole.DELIVERY:
            query = query.where(Order.driver_id == user.id)
        elif user.role == UserRole.OWNER:
            query = query.join(Order.restaurant).where(Restaurant.owner_id == user.id)
        else:
            raise PermissionDeniedError("Unknown role")

        if status is not None:
            query = query.where(Order.status == status)

        result = await self.session.execute(query)
        return OperationResult(success=True, orders=list(result.scalars().all()))

    @service_operation
    async def get_order(self, user: User, order_id: int) -> OperationResult:
        """Fetch one order the user is allowed to see."""
        order = await self._load_order(
            order_id,
            selectinload(Order.restaurant),
            selectinload(Order.items),
        )
        if not can_view(user, order):
            raise PermissionDeniedError("You can't see that order")
        return OperationResult(success=True, order=order)

    @service_operation
    async def get_owner_orders(
        self,
        restaurant_id: int,
        statuses: Iterable[OrderStatus],
    ) -> OperationResult:
        """
        Orders of one restaurant in any of ``statuses``.

        Callers must have verified that the user owns the restaurant.
        """
        result = await self.session.execute(
            select(Order)
            .options(
                selectinload(Order.restaurant),
                selectinload(Order.items).selectinload(OrderItem.dish),
            )
            .where(
                Order.restaurant_id == restaurant_id,
                Order.status.in_(list(statuses)),
            )
            .order_by(Order.id)
        )
        return OperationResult(success=True, orders=list(result.scalars().all()))

    # =========================================================================
    # UPDATE
    # =========================================================================

    @service_operation
    async def edit_order(
        self,
        user: User,
        order_id: int,
        status: OrderStatus,
    ) -> OperationResult:
        """
        Move an order to a new status.

        Owners may set cooking/cooked, drivers picked_up/delivered, clients
        nothing. Publishes NEW_COOKED_ORDER when an owner marks the order
        cooked, PICKUP_ORDER when a driver picks it up, and ORDER_UPDATED
        for every change.
        """
        order = await self._load_order(
            order_id,
            selectinload(Order.restaurant),
            selectinload(Order.items),
        )
        if not can_view(user, order):
            raise PermissionDeniedError("You can't see that order")

        check_edit_status(
            user.role,
            status,
            current=order.status,
            strict=self.settings.strict_status_transitions,
        )

        previous = order.status
        order.status = status
        await self.session.commit()
        logger.info(f"Order #{order.id}: {previous.value} -> {status.value} by user #{user.id}")

        snapshot = order_snapshot(order)
        if user.role == UserRole.OWNER and status == OrderStatus.COOKED:
            await self._publish(NotificationChannel.NEW_COOKED_ORDER, {"cooked_order": snapshot})
        if user.role == UserRole.DELIVERY and status == OrderStatus.PICKED_UP:
            await self._publish(NotificationChannel.PICKUP_ORDER, {"order": snapshot})
        await self._publish(NotificationChannel.ORDER_UPDATED, {"order_updates": snapshot})

        return OperationResult(success=True, order=order)

    @service_operation
    async def take_order(self, driver: User, order_id: int) -> OperationResult:
        """
        Assign a driver to an unassigned order.

        The assignment is a single conditional UPDATE, so when drivers race
        for the same order exactly one of them wins and the rest get a
        conflict.
        """
        if driver.role != UserRole.DELIVERY:
            raise PermissionDeniedError("Only delivery users can take orders")

        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.driver_id.is_(None))
            .values(driver_id=driver.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            existing = await self.session.scalar(select(Order.id).where(Order.id == order_id))
            if existing is None:
                raise NotFoundError(f"Order #{order_id} not found")
            raise ConflictError("Another driver already took this order")

        await self.session.commit()
        order = await self._load_order(
            order_id,
            selectinload(Order.restaurant),
            selectinload(Order.items),
        )
        logger.info(f"Order #{order.id} taken by driver #{driver.id}")

        snapshot = order_snapshot(order)
        await self._publish(NotificationChannel.ORDER_UPDATED, {"order_updates": snapshot})
        await self._publish(NotificationChannel.DRIVER_ALREADY_TOOK, {"order": snapshot})

        return OperationResult(success=True, order=order)

    # =========================================================================
    # DRIVER VIEWS
    # =========================================================================

    @service_operation
    async def get_driver_orders(
        self,
        lat: float,
        lng: float,
        status: Optional[OrderStatus] = None,
    ) -> OperationResult:
        """
        Unassigned orders from restaurants near a driver, newest first.

        The radius filter runs in the database. Without ``status`` the
        driver is offered orders that are cooking or cooked.

        Returns:
            OperationResult: ``orders`` is a list of DriverOrder
        """
        distance = restaurant_distance_expression(lat, lng)
        statuses = [status] if status is not None else list(DRIVER_DEFAULT_STATUSES)

        result = await self.session.execute(
            select(Order, distance.label("distance"))
            .join(Order.restaurant)
            .options(
                contains_eager(Order.restaurant),
                selectinload(Order.customer),
                selectinload(Order.items).selectinload(OrderItem.dish),
            )
            .where(
                Restaurant.latitude.is_not(None),
                Restaurant.longitude.is_not(None),
                within_radius(distance, self.settings.driver_search_radius_meters),
                Order.driver_id.is_(None),
                Order.status.in_(statuses),
            )
            .order_by(Order.id.desc())
        )
        orders = [DriverOrder(order=order, distance=meters) for order, meters in result.all()]
        return OperationResult(success=True, orders=orders)

    @service_operation
    async def get_driver_order(
        self,
        order_id: int,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> OperationResult:
        """One order with its restaurant and customer; distance when coordinates are given."""
        order = await self._load_order(
            order_id,
            selectinload(Order.restaurant),
            selectinload(Order.customer),
            selectinload(Order.items),
        )
        distance = None
        if lat is not None and lng is not None:
            distance = distance_to_restaurant(lat, lng, order.restaurant)
        return OperationResult(success=True, order=order, distance=distance)

    @service_operation
    async def get_driver_own_orders(
        self,
        driver: User,
        now: Optional[datetime] = None,
    ) -> OperationResult:
        """Orders assigned to the driver and updated today (local time)."""
        start = (now or datetime.now()).replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)

        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(
                Order.driver_id == driver.id,
                Order.updated_at >= start,
                Order.updated_at < end,
            )
            .order_by(Order.id)
        )
        return OperationResult(success=True, orders=list(result.scalars().all()))
