"""
Notification Service Abstract Base Class

Defines the publish/subscribe port the order service fans lifecycle
events out through. Subscribers (GraphQL subscriptions, websockets,
workers) live outside this project and listen on the named channels.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


class NotificationChannel(str, enum.Enum):
    """Named channels for order lifecycle events."""
    NEW_PENDING_ORDER = "NEW_PENDING_ORDER"
    NEW_COOKED_ORDER = "NEW_COOKED_ORDER"
    PICKUP_ORDER = "PICKUP_ORDER"
    ORDER_UPDATED = "ORDER_UPDATED"
    DRIVER_ALREADY_TOOK = "DRIVER_ALREADY_TOOK"


@dataclass
class NotificationResult:
    """Result from publishing an event."""
    success: bool
    channel: Optional[str] = None
    receivers: int = 0
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """
    Abstract base class for notification transports.

    ``publish`` is best-effort: implementations report transport
    failures through the returned result and their own logging,
    never by raising into the caller.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def publish(
        self,
        channel: NotificationChannel,
        payload: dict[str, Any],
    ) -> NotificationResult:
        """Publish a JSON-serialisable payload on a channel."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check transport connectivity."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
