"""
Unit tests for TokenVerifier (bearer token validation)
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from mfa_service.exceptions import ConfigurationError
from mfa_service.services.token_service import TokenVerifier


KEY = "unit-test-signing-key"


def make_token(sub="user:abc-123", key=KEY, expires_in=timedelta(minutes=15), **claims):
    payload = {
        "sub": sub,
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, key, algorithm="HS256")


class TestTokenVerifier:

    def test_valid_token_strips_user_prefix(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token(make_token()) == "abc-123"

    def test_plain_subject(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token(make_token(sub="abc-123")) == "abc-123"

    def test_expired_token(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token(make_token(expires_in=timedelta(minutes=-1))) is None

    def test_wrong_signature(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token(make_token(key="someone-elses-key")) is None

    def test_refresh_token_rejected(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token(make_token(type="refresh")) is None

    def test_audience_enforced_when_configured(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256", audience="mfa_service")

        assert verifier.verify_bearer_token(make_token(aud="mfa_service")) == "abc-123"
        assert verifier.verify_bearer_token(make_token(aud="other_service")) is None

    def test_issuer_enforced_when_configured(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256", issuer="identity-service")

        assert verifier.verify_bearer_token(make_token(iss="identity-service")) == "abc-123"
        assert verifier.verify_bearer_token(make_token(iss="elsewhere")) is None

    def test_garbage_token(self):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        assert verifier.verify_bearer_token("not.a.jwt") is None

    def test_missing_key_is_configuration_error(self, monkeypatch):
        verifier = TokenVerifier(verification_key=KEY, algorithm="HS256")
        monkeypatch.setattr(verifier, "verification_key", None)

        with pytest.raises(ConfigurationError):
            verifier.verify_bearer_token(make_token())
