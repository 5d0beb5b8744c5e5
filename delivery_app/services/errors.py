"""
Service Errors and Results

Domain failures are raised internally as ``OrderServiceError`` subclasses
and converted at the service boundary into an ``OperationResult``, so the
HTTP layer receives a structured success/failure value with a readable
message instead of an exception.
"""

import enum
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    """Machine-readable failure kinds."""
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"


class OrderServiceError(Exception):
    """Base class for failures scoped to a single request."""
    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderServiceError):
    code = ErrorCode.NOT_FOUND


class PermissionDeniedError(OrderServiceError):
    code = ErrorCode.PERMISSION_DENIED


class ConflictError(OrderServiceError):
    code = ErrorCode.CONFLICT


class ValidationFailedError(OrderServiceError):
    code = ErrorCode.VALIDATION_FAILED


@dataclass
class OperationResult:
    """
    Standardized result returned by every service operation.

    Attributes:
        success: Whether the operation completed
        error_code: Failure kind when unsuccessful
        error_message: Human-readable failure description
        order_id: Id of a newly created order
        order: Single order payload
        orders: List payload
        distance: Meters between the driver and the restaurant, when requested
        data: Any other payload (users, restaurants, dishes)
    """
    success: bool
    error_code: Optional[ErrorCode] = None
    error_message: Optional[str] = None
    order_id: Optional[int] = None
    order: Any = None
    orders: list = field(default_factory=list)
    distance: Optional[float] = None
    data: Any = None

    @classmethod
    def failure(cls, error: OrderServiceError) -> "OperationResult":
        return cls(success=False, error_code=error.code, error_message=error.message)


def service_operation(fn):
    """
    Wrap an async service method so domain errors become failed results.

    The session is rolled back on any exception; anything that is not an
    ``OrderServiceError`` is re-raised for the HTTP layer to handle.
    """
    @functools.wraps(fn)
    async def wrapper(self, *args, **kwargs) -> OperationResult:
        try:
            return await fn(self, *args, **kwargs)
        except OrderServiceError as e:
            await self.session.rollback()
            logger.warning(f"{fn.__name__} rejected ({e.code.value}): {e.message}")
            return OperationResult.failure(e)
        except Exception:
            await self.session.rollback()
            raise

    return wrapper
