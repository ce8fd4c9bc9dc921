"""
Unit tests for metrics path normalization
"""

import pytest

from mfa_service.middleware import normalize_path


@pytest.mark.parametrize("path,expected", [
    ("/health", "/health"),
    ("/v1/mfa/enroll", "/v1/mfa/enroll"),
    ("/v1/mfa/required/user-1", "/v1/mfa/required/{user_id}"),
    ("/v1/mfa/required/3f2b8c1e-0d4a-4c1b-9e7f-1a2b3c4d5e6f", "/v1/mfa/required/{user_id}"),
    ("/v1/things/42", "/v1/things/{id}"),
    ("/v1/things/" + "a" * 32, "/v1/things/{token}"),
])
def test_normalize_path(path, expected):
    assert normalize_path(path) == expected
