"""
Event schemas for MFA lifecycle events published on Redis pub/sub
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """MFA event types"""
    MFA_ENABLED = "mfa.enabled"
    MFA_DISABLED = "mfa.disabled"
    MFA_RECOVERY_CODES_REGENERATED = "mfa.recovery_codes_regenerated"
    MFA_RECOVERY_CODE_USED = "mfa.recovery_code_used"


class EventPriority(str, Enum):
    """Event priority for routing and processing"""
    NORMAL = "normal"
    HIGH = "high"


class Event(BaseModel):
    """
    Envelope for every published event
    """
    model_config = ConfigDict(use_enum_values=True)

    event_id: str = Field(..., description="Unique event ID (UUID)")
    event_type: EventType = Field(..., description="Type of event")
    timestamp: str = Field(..., description="Event timestamp (ISO 8601 format)")
    source: str = Field(default="mfa_service", description="Service that generated the event")
    priority: EventPriority = Field(default=EventPriority.NORMAL)
    subject: Optional[str] = Field(None, description="Subject of the event (e.g., user:<uuid>)")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event-specific data payload")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata (masked IP, user agent)")


class EventChannel(str, Enum):
    """
    Redis pub/sub channels for event routing
    """
    ALL_EVENTS = "mfa_service.events.all"
    SECURITY_EVENTS = "mfa_service.events.security"


EVENT_CHANNEL_MAP: Dict[EventType, List[EventChannel]] = {
    EventType.MFA_ENABLED: [EventChannel.SECURITY_EVENTS, EventChannel.ALL_EVENTS],
    EventType.MFA_DISABLED: [EventChannel.SECURITY_EVENTS, EventChannel.ALL_EVENTS],
    EventType.MFA_RECOVERY_CODES_REGENERATED: [EventChannel.SECURITY_EVENTS, EventChannel.ALL_EVENTS],
    EventType.MFA_RECOVERY_CODE_USED: [EventChannel.ALL_EVENTS],
}
