"""Publishes booking and admission events for billing and notification consumers."""

import json
from typing import Any

import redis.asyncio as redis
import structlog

from carequeue.config import Settings
from carequeue.core import clock

logger = structlog.get_logger(__name__)

APPOINTMENT_BOOKED = "appointment.booked"
ADMISSION_CREATED = "admission.created"


class NotificationService:
    """
    Fire-and-forget event publisher backed by a Redis channel.

    Consumers (invoice creation, SMS/push delivery) live outside this service;
    a failed publish never fails the operation that triggered it.
    """

    def __init__(self, redis_client: redis.Redis | None, channel: str, enabled: bool = True):
        """Initialize publisher with an owned Redis client."""
        self.redis = redis_client
        self.channel = channel
        self.enabled = enabled and redis_client is not None

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationService":
        """Build the publisher and its Redis client from settings."""
        if not settings.notifications_enabled:
            return cls(None, settings.events_channel, enabled=False)

        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password or None,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )
        return cls(client, settings.events_channel)

    async def publish(self, event: str, payload: dict[str, Any]) -> bool:
        """
        Publish an event.

        Args:
            event: Event name, e.g. ``appointment.booked``
            payload: JSON-serialisable body

        Returns:
            True if the message was handed to Redis, False otherwise
        """
        if not self.enabled or self.redis is None:
            logger.debug("event_publish_skipped", event_name=event)
            return False

        message = json.dumps(
            {"event": event, "occurred_at": clock.utcnow().isoformat(), "data": payload},
            default=str,
        )
        try:
            await self.redis.publish(self.channel, message)
            logger.info("event_published", event_name=event, channel=self.channel)
            return True
        except Exception as e:
            logger.warning("event_publish_failed", event_name=event, error=str(e))
            return False

    async def check_connection(self) -> bool:
        """Check if the Redis connection is healthy."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
