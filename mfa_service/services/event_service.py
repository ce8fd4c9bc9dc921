"""
Event Publishing Service

Publishes MFA lifecycle events to Redis pub/sub so other services (session
issuance, security monitoring, notifications) can react.

Fire-and-forget: a publish failure is logged and never fails the MFA
operation that triggered it.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from mfa_service import metrics
from mfa_service.core.redis_client import RedisClient
from mfa_service.schemas.events import (
    Event,
    EventType,
    EventPriority,
    EventChannel,
    EVENT_CHANNEL_MAP
)
from mfa_service.utils.security import utcnow

logger = logging.getLogger(__name__)


class EventService:
    """Service for publishing events to Redis pub/sub"""

    def __init__(self, redis: Optional[RedisClient]):
        self.redis = redis

    def publish_event(
        self,
        event_type: EventType,
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        priority: EventPriority = EventPriority.NORMAL
    ) -> Optional[str]:
        """
        Publish an event to its Redis channels

        Args:
            event_type: Type of event
            user_id: User the event is about
            data: Event-specific payload
            metadata: Masked request metadata
            priority: Event priority

        Returns:
            Event ID if published to at least one channel, None otherwise
        """
        if self.redis is None:
            return None

        event_id = str(uuid.uuid4())
        try:
            event = Event(
                event_id=event_id,
                event_type=event_type,
                timestamp=utcnow().isoformat(),
                priority=priority,
                subject=f"user:{user_id}",
                data={"user_id": user_id, **(data or {})},
                metadata=metadata or {}
            )
            event_json = event.model_dump_json()
        except Exception as e:
            logger.error(f"Failed to build event {event_type.value}: {e}")
            return None

        published_count = 0
        for channel in EVENT_CHANNEL_MAP.get(event_type, [EventChannel.ALL_EVENTS]):
            try:
                self.redis.publish(channel.value, event_json)
                published_count += 1
            except Exception as e:
                # Graceful degradation: event loss is preferable to failing the MFA operation
                logger.error(f"Failed to publish event {event_id} to channel {channel.value}: {e}")

        status = "success" if published_count else "error"
        metrics.events_published_total.labels(event_type=event_type.value, status=status).inc()

        if published_count:
            logger.debug(f"Event {event_id} ({event_type.value}) published to {published_count} channels")
            return event_id
        return None

    def publish_mfa_enabled(self, user_id: str, recovery_codes_count: int) -> Optional[str]:
        """Publish mfa.enabled event"""
        return self.publish_event(
            event_type=EventType.MFA_ENABLED,
            user_id=user_id,
            data={"method": "totp", "recovery_codes_count": recovery_codes_count},
            priority=EventPriority.HIGH
        )

    def publish_mfa_disabled(self, user_id: str, with_code: bool) -> Optional[str]:
        """Publish mfa.disabled event"""
        return self.publish_event(
            event_type=EventType.MFA_DISABLED,
            user_id=user_id,
            data={"method": "totp", "verified_with_code": with_code},
            priority=EventPriority.HIGH
        )

    def publish_recovery_codes_regenerated(self, user_id: str, count: int) -> Optional[str]:
        """Publish mfa.recovery_codes_regenerated event"""
        return self.publish_event(
            event_type=EventType.MFA_RECOVERY_CODES_REGENERATED,
            user_id=user_id,
            data={"recovery_codes_count": count}
        )

    def publish_recovery_code_used(self, user_id: str, remaining: int) -> Optional[str]:
        """Publish mfa.recovery_code_used event"""
        return self.publish_event(
            event_type=EventType.MFA_RECOVERY_CODE_USED,
            user_id=user_id,
            data={"recovery_codes_remaining": remaining}
        )
