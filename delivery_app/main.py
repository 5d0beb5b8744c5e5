"""
FastAPI Application Entry Point

Food Delivery Backend - HTTP surface over the order lifecycle core.

Endpoints:
    - POST /api/users: Create account
    - POST /api/login: Check credentials
    - GET /api/users/{id}: User profile
    - POST /api/restaurants: Register restaurant (owner)
    - POST /api/restaurants/{id}/dishes: Add dish (owner)
    - GET /api/restaurants/{id}/orders: Restaurant orders by status (owner)
    - POST /api/orders: Place order (client)
    - GET /api/orders: List my orders
    - GET /api/orders/{id}: Get order
    - PATCH /api/orders/{id}: Change order status
    - POST /api/orders/{id}/take: Take order (driver)
    - GET /api/driver/orders: Nearby open orders (driver)
    - GET /api/driver/orders/today: My deliveries today (driver)
    - GET /api/driver/orders/{id}: Order with distance (driver)
    - GET /health: System health check

The caller is identified by the ``X-User-Id`` header; authentication
itself happens in front of this service.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_app.core.config import get_settings, setup_logging
from delivery_app.database import engine, get_db, init_db
from delivery_app.models import OrderStatus, User, UserRole
from delivery_app.schemas import (
    DishCreate,
    DishResponse,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    RestaurantCreate,
    RestaurantResponse,
    UserCreate,
    UserResponse,
)
from delivery_app.services import ErrorCode, OperationResult, OrderService, RestaurantService, UserService
from delivery_app.services.notifications import BaseNotificationService, get_notification_service
from delivery_app.services.orders import DriverOrder

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.CONFLICT: 409,
    ErrorCode.VALIDATION_FAILED: 400,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()

    notifier = get_notification_service()
    logger.info(f"Notification Service: {notifier.provider_name}")

    if settings.use_real_services:
        problems = settings.validate_production_config()
        if problems:
            logger.warning(f"Production config problems: {problems}")

    logger.info("Application ready!")

    yield

    logger.info("Shutting down...")
    await notifier.close()
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Food delivery backend: accounts, restaurants, and an order lifecycle "
        "with role-gated status changes, driver matching and live notifications."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_notifier() -> BaseNotificationService:
    return get_notification_service()


def get_order_service(
    db: AsyncSession = Depends(get_db),
    notifier: BaseNotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier=notifier, settings=settings)


def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def get_restaurant_service(db: AsyncSession = Depends(get_db)) -> RestaurantService:
    return RestaurantService(db)


async def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="x-user-id"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the already-authenticated caller."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_role(role: UserRole):
    """Dependency allowing only callers with ``role``."""
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise HTTPException(status_code=403, detail=f"Only {role.value} users can do that")
        return user
    return dependency


def ensure_success(result: OperationResult) -> OperationResult:
    """Map a failed service result to an HTTP error."""
    if not result.success:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(result.error_code, 400),
            detail=result.error_message,
        )
    return result


def driver_order_response(entry: DriverOrder) -> OrderResponse:
    return OrderResponse.model_validate(entry.order).model_copy(update={"distance": entry.distance})


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    notifier: BaseNotificationService = Depends(get_notifier),
) -> HealthResponse:
    """Verify database and notification transport."""
    db_status = "healthy"
    try:
        await db.execute(select(func.count(User.id)))
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    notification_status = "healthy" if await notifier.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        notification_service=notification_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ACCOUNT & RESTAURANT ENDPOINTS
# =============================================================================

@app.post(
    "/api/users",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    tags=["Users"],
    summary="Create Account",
)
async def create_account(
    data: UserCreate,
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    result = ensure_success(await users.create_account(data.email, data.password, data.role))
    return UserResponse.model_validate(result.data)


@app.post(
    "/api/login",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    tags=["Users"],
    summary="Check Credentials",
)
async def login(
    data: LoginRequest,
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    """Verify email and password; the caller then identifies with ``X-User-Id``."""
    result = ensure_success(await users.login(data.email, data.password))
    return UserResponse.model_validate(result.data)


@app.get(
    "/api/users/{user_id}",
    response_model=UserResponse,
    responses=ERROR_RESPONSES,
    tags=["Users"],
    summary="User Profile",
)
async def user_profile(
    user_id: int,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    result = ensure_success(await users.get_user(user_id))
    return UserResponse.model_validate(result.data)


@app.post(
    "/api/restaurants",
    response_model=RestaurantResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def create_restaurant(
    data: RestaurantCreate,
    owner: User = Depends(require_role(UserRole.OWNER)),
    restaurants: RestaurantService = Depends(get_restaurant_service),
) -> RestaurantResponse:
    result = ensure_success(await restaurants.create_restaurant(
        owner,
        name=data.name,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
        cover_img=data.cover_img,
    ))
    return RestaurantResponse.model_validate(result.data)


@app.post(
    "/api/restaurants/{restaurant_id}/dishes",
    response_model=DishResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def create_dish(
    restaurant_id: int,
    data: DishCreate,
    owner: User = Depends(require_role(UserRole.OWNER)),
    restaurants: RestaurantService = Depends(get_restaurant_service),
) -> DishResponse:
    result = ensure_success(await restaurants.create_dish(
        owner,
        restaurant_id,
        name=data.name,
        price=data.price,
        description=data.description,
        options=data.options,
        photo=data.photo,
    ))
    return DishResponse.model_validate(result.data)


@app.get(
    "/api/restaurants/{restaurant_id}/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
    summary="Restaurant Orders by Status",
)
async def restaurant_orders(
    restaurant_id: int,
    statuses: List[OrderStatus] = Query(default=[OrderStatus.PENDING, OrderStatus.COOKING]),
    owner: User = Depends(require_role(UserRole.OWNER)),
    restaurants: RestaurantService = Depends(get_restaurant_service),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    ensure_success(await restaurants.check_owner(owner, restaurant_id))
    result = ensure_success(await orders.get_owner_orders(restaurant_id, statuses))
    return OrderListResponse(
        total=len(result.orders),
        orders=[OrderResponse.model_validate(order) for order in result.orders],
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    customer: User = Depends(require_role(UserRole.CLIENT)),
    orders: OrderService = Depends(get_order_service),
) -> OrderCreateResponse:
    """Place an order; the restaurant owner is notified."""
    logger.info(f"Creating order for user #{customer.id} at restaurant #{order_data.restaurant_id}")
    result = ensure_success(
        await orders.create_order(customer, order_data.restaurant_id, order_data.items)
    )
    return OrderCreateResponse(success=True, order_id=result.order_id)


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    result = ensure_success(await orders.get_orders(user, status))
    return OrderListResponse(
        total=len(result.orders),
        orders=[OrderResponse.model_validate(order) for order in result.orders],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    result = ensure_success(await orders.get_order(user, order_id))
    return OrderResponse.model_validate(result.order)


@app.patch(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Change Order Status",
)
async def edit_order(
    order_id: int,
    data: OrderStatusUpdate,
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    result = ensure_success(await orders.edit_order(user, order_id, data.status))
    return OrderResponse.model_validate(result.order)


@app.post(
    "/api/orders/{order_id}/take",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Take Order (Driver)",
)
async def take_order(
    order_id: int,
    driver: User = Depends(require_role(UserRole.DELIVERY)),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    result = ensure_success(await orders.take_order(driver, order_id))
    return OrderResponse.model_validate(result.order)


# =============================================================================
# DRIVER ENDPOINTS
# =============================================================================

@app.get(
    "/api/driver/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Driver"],
    summary="Nearby Open Orders",
)
async def driver_orders(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    status: Optional[OrderStatus] = Query(None),
    driver: User = Depends(require_role(UserRole.DELIVERY)),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    result = ensure_success(await orders.get_driver_orders(lat, lng, status))
    return OrderListResponse(
        total=len(result.orders),
        orders=[driver_order_response(entry) for entry in result.orders],
    )


@app.get(
    "/api/driver/orders/today",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Driver"],
    summary="My Deliveries Today",
)
async def driver_own_orders(
    driver: User = Depends(require_role(UserRole.DELIVERY)),
    orders: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    result = ensure_success(await orders.get_driver_own_orders(driver))
    return OrderListResponse(
        total=len(result.orders),
        orders=[OrderResponse.model_validate(order) for order in result.orders],
    )


@app.get(
    "/api/driver/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Driver"],
)
async def driver_order(
    order_id: int,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    driver: User = Depends(require_role(UserRole.DELIVERY)),
    orders: OrderService = Depends(get_order_service),
) -> OrderResponse:
    result = ensure_success(await orders.get_driver_order(order_id, lat, lng))
    return driver_order_response(DriverOrder(order=result.order, distance=result.distance))


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors in the ErrorResponse shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), detail=str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "delivery_app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
