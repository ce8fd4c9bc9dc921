"""
Unit tests for EventService
"""

import json
from unittest.mock import Mock

from mfa_service.schemas.events import EVENT_CHANNEL_MAP, EventChannel, EventType
from mfa_service.services.event_service import EventService


class TestEventPublishing:

    def test_mfa_enabled_published_to_mapped_channels(self, event_service, mock_redis):
        event_id = event_service.publish_mfa_enabled("user-1", recovery_codes_count=10)

        assert event_id is not None
        channels = [call.args[0] for call in mock_redis.publish.call_args_list]
        assert channels == [c.value for c in EVENT_CHANNEL_MAP[EventType.MFA_ENABLED]]
        assert EventChannel.ALL_EVENTS.value in channels

        payload = json.loads(mock_redis.publish.call_args_list[0].args[1])
        assert payload["event_type"] == "mfa.enabled"
        assert payload["subject"] == "user:user-1"
        assert payload["data"] == {"user_id": "user-1", "method": "totp", "recovery_codes_count": 10}
        assert payload["source"] == "mfa_service"

    def test_publish_failure_does_not_raise(self, mock_redis):
        mock_redis.publish.side_effect = ConnectionError("redis down")
        service = EventService(mock_redis)

        assert service.publish_mfa_disabled("user-1", with_code=True) is None

    def test_partial_failure_still_returns_event_id(self):
        redis = Mock()
        redis.publish.side_effect = [ConnectionError("redis down"), 1, 1]
        service = EventService(redis)

        assert service.publish_mfa_disabled("user-1", with_code=False) is not None

    def test_no_redis_is_a_no_op(self):
        assert EventService(None).publish_recovery_code_used("user-1", remaining=3) is None

    def test_payload_never_contains_codes(self, event_service, mock_redis):
        event_service.publish_recovery_codes_regenerated("user-1", count=10)

        payload = json.loads(mock_redis.publish.call_args_list[0].args[1])
        assert payload["data"] == {"user_id": "user-1", "recovery_codes_count": 10}
