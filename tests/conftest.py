"""
Shared fixtures: a fresh SQLite database per test, seeded users,
a restaurant with dishes, and an in-memory notification service.
"""

import os

os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import math
from dataclasses import dataclass

import pytest

from delivery_app.core.config import Settings
from delivery_app.database import Base, build_engine, build_session_maker
from delivery_app.models import Dish, Restaurant, User, UserRole
from delivery_app.services.geo import EARTH_RADIUS_METERS
from delivery_app.services.notifications import MockNotificationService
from delivery_app.services.orders import OrderService

# Gangnam station, Seoul
BASE_LAT = 37.4979
BASE_LNG = 127.0276


def lat_offset(meters: float) -> float:
    """Latitude delta that moves a point ``meters`` due north."""
    return math.degrees(meters / EARTH_RADIUS_METERS)


@dataclass
class World:
    owner: User
    other_owner: User
    client: User
    other_client: User
    driver: User
    other_driver: User
    restaurant: Restaurant
    other_restaurant: Restaurant
    dish_a: Dish
    dish_b: Dish
    other_dish: Dish


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifier():
    return MockNotificationService(record=True)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def order_service(session, notifier, settings):
    return OrderService(session, notifier=notifier, settings=settings)


def make_user(email: str, role: UserRole) -> User:
    return User(email=email, password_hash="not-a-real-hash", role=role)


@pytest.fixture
async def world(session) -> World:
    owner = make_user("owner@example.com", UserRole.OWNER)
    other_owner = make_user("other-owner@example.com", UserRole.OWNER)
    client = make_user("client@example.com", UserRole.CLIENT)
    other_client = make_user("other-client@example.com", UserRole.CLIENT)
    driver = make_user("driver@example.com", UserRole.DELIVERY)
    other_driver = make_user("other-driver@example.com", UserRole.DELIVERY)
    session.add_all([owner, other_owner, client, other_client, driver, other_driver])
    await session.flush()

    restaurant = Restaurant(
        name="Pizza Palace",
        address="Gangnam",
        latitude=BASE_LAT,
        longitude=BASE_LNG,
        owner_id=owner.id,
    )
    other_restaurant = Restaurant(
        name="Noodle Bar",
        address="Yeoksam",
        latitude=BASE_LAT + lat_offset(1000),
        longitude=BASE_LNG,
        owner_id=other_owner.id,
    )
    session.add_all([restaurant, other_restaurant])
    await session.flush()

    dish_a = Dish(
        name="Margherita",
        price=10,
        restaurant_id=restaurant.id,
        options=[
            {"name": "Extra cheese", "price": 2},
            {"name": "Size", "choices": [{"name": "L", "price": 3}, {"name": "M"}]},
        ],
    )
    dish_b = Dish(name="Garlic Bread", price=5, restaurant_id=restaurant.id)
    other_dish = Dish(name="Ramen", price=8, restaurant_id=other_restaurant.id)
    session.add_all([dish_a, dish_b, other_dish])
    await session.commit()

    # Seeded rows stay readable after an operation rolls the session back
    session.expunge_all()

    return World(
        owner=owner,
        other_owner=other_owner,
        client=client,
        other_client=other_client,
        driver=driver,
        other_driver=other_driver,
        restaurant=restaurant,
        other_restaurant=other_restaurant,
        dish_a=dish_a,
        dish_b=dish_b,
        other_dish=other_dish,
    )
