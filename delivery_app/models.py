"""
SQLAlchemy Database Models

Accounts, restaurants with their menus, and orders:
- Role-based users (client / owner / delivery)
- Restaurants positioned by latitude/longitude
- Dishes with priced options and choices
- Orders with frozen per-item totals
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from delivery_app.database import Base
import enum


class UserRole(str, enum.Enum):
    """Role resolved for every authenticated caller."""
    CLIENT = "client"
    OWNER = "owner"
    DELIVERY = "delivery"


class OrderStatus(str, enum.Enum):
    """Order status workflow, in lifecycle order."""
    PENDING = "pending"
    COOKING = "cooking"
    COOKED = "cooked"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"


# Timestamps are naive local time so "today" windows line up with the server clock
class TimestampMixin:
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)


class User(TimestampMixin, Base):
    """Account placing, cooking or delivering orders depending on its role."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, index=True)

    restaurants = relationship("Restaurant", back_populates="owner")

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role.value}>"


class Restaurant(TimestampMixin, Base):
    """
    Restaurant owned by exactly one owner.

    The position is optional; restaurants without one never show up
    in the driver proximity query.
    """
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=False, default="")
    cover_img = Column(String(500), nullable=True)

    # =========================================================================
    # POSITION (WGS84 degrees)
    # =========================================================================
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="restaurants")
    dishes = relationship("Dish", back_populates="restaurant", order_by="Dish.id")
    orders = relationship("Order", back_populates="restaurant")

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class Dish(TimestampMixin, Base):
    """
    Menu entry.

    ``options`` is a JSON list shaped like::

        [{"name": "Size", "choices": [{"name": "L", "price": 2}]},
         {"name": "Extra cheese", "price": 1}]
    """
    __tablename__ = "dishes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    photo = Column(String(500), nullable=True)
    options = Column(JSON, nullable=True)

    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant = relationship("Restaurant", back_populates="dishes")

    def __repr__(self):
        return f"<Dish #{self.id} - {self.name} - {self.price}>"


class Order(TimestampMixin, Base):
    """
    Customer order for one restaurant.

    Tracks the lifecycle from pending through delivery. ``driver_id``
    starts empty and is assigned exactly once.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    customer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    total = Column(Float, nullable=False, default=0.0)

    customer = relationship("User", foreign_keys=[customer_id])
    driver = relationship("User", foreign_keys=[driver_id])
    restaurant = relationship("Restaurant", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.status.value} - {self.total}>"


class OrderItem(Base):
    """One dish within an order, with the selected options and the price paid."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    dish_id = Column(Integer, ForeignKey("dishes.id", ondelete="SET NULL"), nullable=True)

    options = Column(JSON, nullable=True)  # [{"name": ..., "choice": ...}] as submitted
    total = Column(Float, nullable=False)  # Frozen at creation

    order = relationship("Order", back_populates="items")
    dish = relationship("Dish")

    def __repr__(self):
        return f"<OrderItem #{self.id} - dish {self.dish_id} - {self.total}>"
