"""
Redis Notification Service

Production implementation publishing lifecycle events as JSON on
Redis pub/sub channels named ``<prefix>:<CHANNEL>``.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from delivery_app.core.config import get_settings
from delivery_app.services.notifications.base import (
    BaseNotificationService,
    NotificationChannel,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class RedisNotificationService(BaseNotificationService):
    """Production notification service using Redis pub/sub."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel_prefix: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ):
        settings = get_settings()
        self.channel_prefix = channel_prefix or settings.notification_channel_prefix
        self.client = client or redis.from_url(redis_url or settings.redis_url)
        logger.info(f"RedisNotificationService initialized (prefix={self.channel_prefix})")

    @property
    def provider_name(self) -> str:
        return "redis"

    def channel_name(self, channel: NotificationChannel) -> str:
        return f"{self.channel_prefix}:{channel.value}"

    async def publish(
        self,
        channel: NotificationChannel,
        payload: dict[str, Any],
    ) -> NotificationResult:
        """Publish via Redis PUBLISH."""
        name = self.channel_name(channel)
        try:
            receivers = await self.client.publish(name, json.dumps(payload, default=str))
        except RedisError as e:
            logger.error(f"Redis publish to {name} failed: {e}")
            return NotificationResult(
                success=False,
                channel=name,
                error_message=str(e),
                provider="redis",
            )

        logger.debug(f"Published on {name} to {receivers} subscriber(s)")
        return NotificationResult(
            success=True,
            channel=name,
            receivers=receivers,
            provider="redis",
        )

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
