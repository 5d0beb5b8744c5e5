"""
Restaurant Service

Owners register restaurants (with an optional map position) and add
dishes with priced options to their menus.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from delivery_app.models import Dish, Restaurant, User, UserRole
from delivery_app.schemas import DishOption
from delivery_app.services.errors import (
    NotFoundError,
    OperationResult,
    PermissionDeniedError,
    service_operation,
)

logger = logging.getLogger(__name__)


class RestaurantService:
    """Restaurant and menu operations for one request."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_restaurant(self, restaurant_id: int) -> Restaurant:
        restaurant = await self.session.scalar(
            select(Restaurant)
            .options(selectinload(Restaurant.dishes))
            .where(Restaurant.id == restaurant_id)
            .execution_options(populate_existing=True)
        )
        if restaurant is None:
            raise NotFoundError(f"Restaurant #{restaurant_id} not found")
        return restaurant

    @service_operation
    async def create_restaurant(
        self,
        owner: User,
        name: str,
        address: str = "",
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        cover_img: Optional[str] = None,
    ) -> OperationResult:
        """Register a restaurant owned by ``owner``."""
        if owner.role != UserRole.OWNER:
            raise PermissionDeniedError("Only owners can create restaurants")

        restaurant = Restaurant(
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            cover_img=cover_img,
            owner_id=owner.id,
        )
        self.session.add(restaurant)
        await self.session.commit()

        logger.info(f"Restaurant #{restaurant.id} created by owner #{owner.id}")
        return OperationResult(success=True, data=restaurant)

    @service_operation
    async def get_restaurant(self, restaurant_id: int) -> OperationResult:
        """Restaurant with its dishes."""
        return OperationResult(success=True, data=await self._get_restaurant(restaurant_id))

    @service_operation
    async def check_owner(self, owner: User, restaurant_id: int) -> OperationResult:
        """Succeeds only if ``owner`` owns the restaurant."""
        restaurant = await self._get_restaurant(restaurant_id)
        if restaurant.owner_id != owner.id:
            raise PermissionDeniedError("You don't own that restaurant")
        return OperationResult(success=True, data=restaurant)

    @service_operation
    async def create_dish(
        self,
        owner: User,
        restaurant_id: int,
        name: str,
        price: float,
        description: Optional[str] = None,
        options: Optional[Sequence[DishOption]] = None,
        photo: Optional[str] = None,
    ) -> OperationResult:
        """Add a dish to a restaurant the caller owns."""
        restaurant = await self._get_restaurant(restaurant_id)
        if restaurant.owner_id != owner.id:
            raise PermissionDeniedError("You can't add dishes to a restaurant you don't own")

        dish = Dish(
            restaurant_id=restaurant.id,
            name=name,
            price=price,
            description=description,
            photo=photo,
            options=[option.model_dump(exclude_none=True) for option in options or ()],
        )
        self.session.add(dish)
        await self.session.commit()

        logger.info(f"Dish #{dish.id} added to restaurant #{restaurant.id}")
        return OperationResult(success=True, data=dish)
