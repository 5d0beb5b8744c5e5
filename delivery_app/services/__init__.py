"""
                        Services Module

Business logic for the delivery backend. Every service works on the
request's AsyncSession and returns an OperationResult.

Services:
    - orders: Order lifecycle, driver assignment and driver matching
    - users: Account creation and lookup
    - restaurants: Restaurants and their dishes
    - notifications: Injected pub/sub port (in-memory or Redis)
"""

from delivery_app.services.errors import ErrorCode, OperationResult
from delivery_app.services.orders import OrderService
from delivery_app.services.restaurants import RestaurantService
from delivery_app.services.users import UserService

__all__ = ["ErrorCode", "OperationResult", "OrderService", "RestaurantService", "UserService"]
