"""
Notification Service Factory

Returns the in-memory or Redis notification service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from delivery_app.core.config import get_settings
from delivery_app.services.notifications.base import (
    BaseNotificationService,
    NotificationChannel,
    NotificationResult,
)
from delivery_app.services.notifications.mock import MockNotificationService, PublishedEvent
from delivery_app.services.notifications.real import RedisNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Get the configured notification service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Service: Using MockNotificationService (development mode)")
        return MockNotificationService()
    else:
        logger.info(f"Notification Service: Using RedisNotificationService ({settings.env_mode.value} mode)")
        return RedisNotificationService()


def reset_notification_service() -> None:
    """Clear the cached service instance."""
    get_notification_service.cache_clear()


__all__ = [
    "get_notification_service",
    "reset_notification_service",
    "BaseNotificationService",
    "NotificationChannel",
    "NotificationResult",
    "MockNotificationService",
    "PublishedEvent",
    "RedisNotificationService",
]
