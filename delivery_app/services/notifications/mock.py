"""
Mock Notification Service

In-memory channel for development and tests.
Events are logged instead of being sent anywhere. With ``record=True``
they are also kept in ``published`` so tests can assert on them.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any

from delivery_app.services.notifications.base import (
    BaseNotificationService,
    NotificationChannel,
    NotificationResult,
)

logger = logging.getLogger(__name__)


@dataclass
class PublishedEvent:
    channel: NotificationChannel
    payload: dict[str, Any]


class MockNotificationService(BaseNotificationService):
    """Mock notification service for development."""

    def __init__(self, failure_rate: float = 0.0, record: bool = False):
        self.failure_rate = failure_rate
        self.record = record
        self.published: list[PublishedEvent] = []
        logger.info(
            f"MockNotificationService initialized (failure_rate={failure_rate:.0%}, record={record})"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def publish(
        self,
        channel: NotificationChannel,
        payload: dict[str, Any],
    ) -> NotificationResult:
        """Record the event."""
        if self._should_fail():
            logger.warning(f"Mock publish failed (simulated) on {channel.value}")
            return NotificationResult(
                success=False,
                channel=channel.value,
                error_message="Simulated publish failure",
                provider="mock",
            )

        if self.record:
            self.published.append(PublishedEvent(channel=channel, payload=payload))
        logger.info(f"Mock event published on {channel.value}")

        return NotificationResult(
            success=True,
            channel=channel.value,
            receivers=1,
            provider="mock",
        )

    def events(self, channel: NotificationChannel) -> list[dict[str, Any]]:
        """Payloads published on one channel, oldest first."""
        return [event.payload for event in self.published if event.channel == channel]

    def clear(self) -> None:
        self.published.clear()

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
