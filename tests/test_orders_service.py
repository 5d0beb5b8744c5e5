import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select, update

from delivery_app.models import Dish, Order, OrderItem, OrderStatus
from delivery_app.schemas import CreateOrderItem, OrderItemOption
from delivery_app.services.errors import ErrorCode
from delivery_app.services.notifications import MockNotificationService, NotificationChannel
from delivery_app.services.orders import OrderService


def item(dish, *options):
    return CreateOrderItem(dish_id=dish.id, options=[OrderItemOption(**o) for o in options])


async def place_order(service, world, status=None):
    result = await service.create_order(
        world.client,
        world.restaurant.id,
        [item(world.dish_a, {"name": "Extra cheese"}), item(world.dish_b)],
    )
    assert result.success, result.error_message
    if status is not None:
        await service.session.execute(
            update(Order).where(Order.id == result.order_id).values(status=status)
        )
        await service.session.commit()
    return result.order_id


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


# =============================================================================
# CREATE
# =============================================================================

async def test_create_order_end_to_end(order_service, world, notifier, session):
    result = await order_service.create_order(
        world.client,
        world.restaurant.id,
        [item(world.dish_a, {"name": "Extra cheese"}), item(world.dish_b)],
    )

    assert result.success
    order = await session.get(Order, result.order_id)
    assert order.status == OrderStatus.PENDING
    assert order.total == 17
    assert order.customer_id == world.client.id
    assert [line.total for line in order.items] == [12, 5]
    assert sum(line.total for line in order.items) == order.total

    events = notifier.events(NotificationChannel.NEW_PENDING_ORDER)
    assert len(events) == 1
    assert events[0]["owner_id"] == world.owner.id
    assert events[0]["order"]["id"] == result.order_id
    assert events[0]["order"]["total"] == 17
    assert len(notifier.published) == 1


async def test_create_order_stores_selected_options(order_service, world, session):
    result = await order_service.create_order(
        world.client,
        world.restaurant.id,
        [item(world.dish_a, {"name": "Size", "choice": "L"}, {"name": "Typo"})],
    )

    line = (await session.execute(select(OrderItem).where(OrderItem.order_id == result.order_id))).scalar_one()
    assert line.total == 13
    assert line.options == [
        {"name": "Size", "choice": "L"},
        {"name": "Typo", "choice": None},
    ]


async def test_item_totals_are_frozen(order_service, world, session):
    order_id = await place_order(order_service, world)

    await session.execute(update(Dish).where(Dish.id == world.dish_a.id).values(price=100, options=[]))
    await session.commit()

    result = await order_service.get_order(world.client, order_id)
    assert [line.total for line in result.order.items] == [12, 5]
    assert result.order.total == 17


async def test_create_order_unknown_restaurant(order_service, world, notifier, session):
    result = await order_service.create_order(world.client, 999, [item(world.dish_a)])

    assert not result.success
    assert result.error_code == ErrorCode.NOT_FOUND
    assert await count(session, Order) == 0
    assert notifier.published == []


async def test_create_order_is_all_or_nothing(order_service, world, notifier, session):
    missing = CreateOrderItem(dish_id=999)
    result = await order_service.create_order(
        world.client,
        world.restaurant.id,
        [item(world.dish_a), item(world.dish_b), missing],
    )

    assert not result.success
    assert result.error_code == ErrorCode.NOT_FOUND
    assert await count(session, Order) == 0
    assert await count(session, OrderItem) == 0
    assert notifier.published == []


async def test_create_order_rejects_dish_from_other_restaurant(order_service, world):
    result = await order_service.create_order(
        world.client, world.restaurant.id, [item(world.other_dish)]
    )
    assert result.error_code == ErrorCode.NOT_FOUND


async def test_strict_option_matching(session, notifier, settings, world):
    strict = settings.model_copy(update={"strict_option_matching": True})
    service = OrderService(session, notifier=notifier, settings=strict)

    result = await service.create_order(
        world.client, world.restaurant.id, [item(world.dish_a, {"name": "Typo"})]
    )

    assert result.error_code == ErrorCode.VALIDATION_FAILED
    assert "Typo" in result.error_message
    assert await count(session, Order) == 0


async def test_publish_failure_keeps_order(session, settings, world):
    failing = MockNotificationService(failure_rate=1.0, record=True)
    service = OrderService(session, notifier=failing, settings=settings)

    result = await service.create_order(world.client, world.restaurant.id, [item(world.dish_b)])

    assert result.success
    assert await session.get(Order, result.order_id) is not None
    assert failing.published == []


class BrokenTransport(MockNotificationService):
    async def publish(self, channel, payload):
        raise RuntimeError("transport down")


async def test_raising_transport_keeps_committed_changes(session, settings, world):
    service = OrderService(session, notifier=BrokenTransport(), settings=settings)

    created = await service.create_order(world.client, world.restaurant.id, [item(world.dish_b)])
    assert created.success

    edited = await service.edit_order(world.owner, created.order_id, OrderStatus.COOKING)
    assert edited.success

    taken = await service.take_order(world.driver, created.order_id)
    assert taken.success

    order = await session.get(Order, created.order_id)
    assert order.status == OrderStatus.COOKING
    assert order.driver_id == world.driver.id


# =============================================================================
# READ
# =============================================================================

async def test_get_orders_by_role(order_service, world):
    first = await place_order(order_service, world)
    second = await place_order(order_service, world, status=OrderStatus.COOKING)
    other = (await order_service.create_order(
        world.other_client, world.other_restaurant.id, [item(world.other_dish)]
    )).order_id
    await order_service.take_order(world.driver, second)

    async def ids(user, status=None):
        result = await order_service.get_orders(user, status)
        assert result.success
        return [order.id for order in result.orders]

    assert await ids(world.client) == [first, second]
    assert await ids(world.other_client) == [other]
    assert await ids(world.owner) == [first, second]
    assert await ids(world.other_owner) == [other]
    assert await ids(world.driver) == [second]
    assert await ids(world.other_driver) == []

    assert await ids(world.client, OrderStatus.COOKING) == [second]
    assert await ids(world.owner, OrderStatus.PENDING) == [first]
    assert await ids(world.driver, OrderStatus.PENDING) == []


async def test_get_order_access(order_service, world):
    order_id = await place_order(order_service, world)

    assert (await order_service.get_order(world.client, order_id)).success
    assert (await order_service.get_order(world.owner, order_id)).success

    for stranger in (world.other_client, world.other_owner, world.driver):
        result = await order_service.get_order(stranger, order_id)
        assert result.error_code == ErrorCode.PERMISSION_DENIED

    missing = await order_service.get_order(world.client, 999)
    assert missing.error_code == ErrorCode.NOT_FOUND


async def test_get_owner_orders_filters_statuses(order_service, world):
    pending = await place_order(order_service, world)
    cooking = await place_order(order_service, world, status=OrderStatus.COOKING)
    await place_order(order_service, world, status=OrderStatus.DELIVERED)

    result = await order_service.get_owner_orders(
        world.restaurant.id, [OrderStatus.PENDING, OrderStatus.COOKING]
    )

    assert result.success
    assert [order.id for order in result.orders] == [pending, cooking]
    assert result.orders[0].items[0].dish.name == "Margherita"

    other = await order_service.get_owner_orders(world.other_restaurant.id, list(OrderStatus))
    assert other.orders == []


# =============================================================================
# EDIT
# =============================================================================

async def test_owner_moves_order_to_cooked(order_service, world, notifier, session):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKING)
    notifier.clear()

    result = await order_service.edit_order(world.owner, order_id, OrderStatus.COOKED)

    assert result.success
    assert (await session.get(Order, order_id)).status == OrderStatus.COOKED
    updates = notifier.events(NotificationChannel.ORDER_UPDATED)
    assert len(updates) == 1
    assert updates[0]["order_updates"]["status"] == "cooked"
    cooked = notifier.events(NotificationChannel.NEW_COOKED_ORDER)
    assert [event["cooked_order"]["id"] for event in cooked] == [order_id]


async def test_owner_starting_to_cook_only_sends_update(order_service, world, notifier):
    order_id = await place_order(order_service, world)
    notifier.clear()

    result = await order_service.edit_order(world.owner, order_id, OrderStatus.COOKING)

    assert result.success
    assert [e.channel for e in notifier.published] == [NotificationChannel.ORDER_UPDATED]


async def test_client_cannot_edit(order_service, world, notifier, session):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKING)
    notifier.clear()

    result = await order_service.edit_order(world.client, order_id, OrderStatus.COOKED)

    assert not result.success
    assert result.error_code == ErrorCode.PERMISSION_DENIED
    assert (await session.get(Order, order_id)).status == OrderStatus.COOKING
    assert notifier.published == []


async def test_owner_cannot_set_driver_statuses(order_service, world, notifier):
    order_id = await place_order(order_service, world)
    notifier.clear()

    result = await order_service.edit_order(world.owner, order_id, OrderStatus.PICKED_UP)

    assert result.error_code == ErrorCode.PERMISSION_DENIED
    assert notifier.published == []


async def test_other_owner_cannot_edit(order_service, world):
    order_id = await place_order(order_service, world)

    result = await order_service.edit_order(world.other_owner, order_id, OrderStatus.COOKING)

    assert result.error_code == ErrorCode.PERMISSION_DENIED


async def test_edit_missing_order(order_service, world):
    result = await order_service.edit_order(world.owner, 999, OrderStatus.COOKING)
    assert result.error_code == ErrorCode.NOT_FOUND


async def test_driver_picks_up(order_service, world, notifier):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKED)
    await order_service.take_order(world.driver, order_id)
    notifier.clear()

    result = await order_service.edit_order(world.driver, order_id, OrderStatus.PICKED_UP)

    assert result.success
    assert [e.channel for e in notifier.published] == [
        NotificationChannel.PICKUP_ORDER,
        NotificationChannel.ORDER_UPDATED,
    ]

    delivered = await order_service.edit_order(world.driver, order_id, OrderStatus.DELIVERED)
    assert delivered.success
    assert delivered.order.status == OrderStatus.DELIVERED


async def test_unassigned_driver_cannot_edit(order_service, world):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKED)

    result = await order_service.edit_order(world.driver, order_id, OrderStatus.PICKED_UP)

    assert result.error_code == ErrorCode.PERMISSION_DENIED


async def test_loose_transitions_allow_skipping(order_service, world):
    order_id = await place_order(order_service, world)

    result = await order_service.edit_order(world.owner, order_id, OrderStatus.COOKED)

    assert result.success


async def test_strict_transitions(session, notifier, settings, world):
    strict = settings.model_copy(update={"strict_status_transitions": True})
    service = OrderService(session, notifier=notifier, settings=strict)
    order_id = await place_order(service, world)

    skipped = await service.edit_order(world.owner, order_id, OrderStatus.COOKED)
    assert skipped.error_code == ErrorCode.PERMISSION_DENIED

    assert (await service.edit_order(world.owner, order_id, OrderStatus.COOKING)).success
    assert (await service.edit_order(world.owner, order_id, OrderStatus.COOKED)).success


# =============================================================================
# TAKE
# =============================================================================

async def test_take_order(order_service, world, notifier, session):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKING)
    notifier.clear()

    result = await order_service.take_order(world.driver, order_id)

    assert result.success
    assert result.order.driver_id == world.driver.id
    assert (await session.get(Order, order_id)).driver_id == world.driver.id
    assert [e.channel for e in notifier.published] == [
        NotificationChannel.ORDER_UPDATED,
        NotificationChannel.DRIVER_ALREADY_TOOK,
    ]
    assert notifier.published[0].payload["order_updates"]["driver_id"] == world.driver.id


async def test_take_order_twice_conflicts(order_service, world, notifier, session):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKING)
    assert (await order_service.take_order(world.driver, order_id)).success
    notifier.clear()

    result = await order_service.take_order(world.other_driver, order_id)

    assert result.error_code == ErrorCode.CONFLICT
    assert (await session.get(Order, order_id)).driver_id == world.driver.id
    assert notifier.published == []


async def test_take_missing_order(order_service, world):
    result = await order_service.take_order(world.driver, 999)
    assert result.error_code == ErrorCode.NOT_FOUND


async def test_only_drivers_take_orders(order_service, world):
    order_id = await place_order(order_service, world)
    result = await order_service.take_order(world.client, order_id)
    assert result.error_code == ErrorCode.PERMISSION_DENIED


async def test_concurrent_take_has_one_winner(order_service, world, session_maker, notifier, settings):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKED)

    async def attempt(driver):
        async with session_maker() as racing_session:
            service = OrderService(racing_session, notifier=notifier, settings=settings)
            return await service.take_order(driver, order_id)

    results = await asyncio.gather(attempt(world.driver), attempt(world.other_driver))

    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.error_code == ErrorCode.CONFLICT

    winner = next(r for r in results if r.success)
    async with session_maker() as check:
        assert (await check.get(Order, order_id)).driver_id == winner.order.driver_id


# =============================================================================
# DRIVER VIEWS
# =============================================================================

async def test_driver_own_orders_today(order_service, world):
    order_id = await place_order(order_service, world, status=OrderStatus.COOKED)
    await place_order(order_service, world, status=OrderStatus.COOKED)
    await order_service.take_order(world.driver, order_id)

    today = await order_service.get_driver_own_orders(world.driver)
    assert [order.id for order in today.orders] == [order_id]

    tomorrow = await order_service.get_driver_own_orders(
        world.driver, now=datetime.now() + timedelta(days=1)
    )
    assert tomorrow.orders == []

    other = await order_service.get_driver_own_orders(world.other_driver)
    assert other.orders == []


async def test_get_driver_order_with_distance(order_service, world):
    order_id = await place_order(order_service, world)

    result = await order_service.get_driver_order(
        order_id, lat=world.other_restaurant.latitude, lng=world.other_restaurant.longitude
    )

    assert result.success
    assert result.order.restaurant.id == world.restaurant.id
    assert result.order.customer.id == world.client.id
    assert result.distance == pytest.approx(1000)


async def test_get_driver_order_without_coordinates(order_service, world):
    order_id = await place_order(order_service, world)

    result = await order_service.get_driver_order(order_id)

    assert result.success
    assert result.distance is None


async def test_get_driver_order_missing(order_service):
    result = await order_service.get_driver_order(999, lat=0, lng=0)
    assert result.error_code == ErrorCode.NOT_FOUND
