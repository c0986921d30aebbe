"""
Unit tests for TokenCodec and the refresh-token hash helpers. No Flask app.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from trelloish.app.models.enums import UserStatus
from trelloish.app.services.token_service import (
    TokenCodec,
    compare_token_hash,
    hash_token,
)


def _codec(**kwargs) -> TokenCodec:
    return TokenCodec("access-secret", "refresh-secret", **kwargs)


def test_access_token_round_trips_claims():
    codec = _codec()
    token = codec.issue_access_token(7, "a@test.com", UserStatus.ACTIVE)

    payload = codec.verify_access_token(token)

    assert payload.user_id == 7
    assert payload.email == "a@test.com"
    assert payload.status == UserStatus.ACTIVE


def test_refresh_token_carries_device_id():
    codec = _codec()
    token = codec.issue_refresh_token(7, "device-1")

    payload = codec.verify_refresh_token(token)

    assert payload.user_id == 7
    assert payload.device_id == "device-1"


def test_access_token_is_not_a_refresh_token():
    codec = _codec()
    access = codec.issue_access_token(7, "a@test.com", "ACTIVE")
    refresh = codec.issue_refresh_token(7, "device-1")

    assert codec.verify_refresh_token(access) is None
    assert codec.verify_access_token(refresh) is None


def test_same_secret_still_rejects_wrong_type():
    codec = TokenCodec("shared", "shared")
    refresh = codec.issue_refresh_token(7, "device-1")
    assert codec.verify_access_token(refresh) is None


def test_expired_token_is_rejected():
    codec = _codec(access_ttl=timedelta(minutes=15))
    issued = datetime.now(timezone.utc) - timedelta(hours=1)
    token = codec.issue_access_token(7, "a@test.com", "ACTIVE", now=issued)

    assert codec.verify_access_token(token) is None


def test_foreign_signature_is_rejected():
    token = TokenCodec("other", "other").issue_access_token(7, "a@test.com", "ACTIVE")
    assert _codec().verify_access_token(token) is None


def test_garbage_and_empty_input_return_none():
    codec = _codec()
    assert codec.verify_access_token(None) is None
    assert codec.verify_access_token("") is None
    assert codec.verify_refresh_token("not.a.jwt") is None


def test_missing_claims_return_none():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"type": "refresh", "user_id": 7, "iat": now, "exp": now + timedelta(minutes=5)},
        "refresh-secret",
        algorithm="HS256",
    )
    assert _codec().verify_refresh_token(token) is None


def test_tokens_minted_in_the_same_second_differ():
    codec = _codec()
    now = datetime.now(timezone.utc)
    assert codec.issue_refresh_token(7, "d", now=now) != codec.issue_refresh_token(7, "d", now=now)


def test_from_config_reads_ttls():
    codec = TokenCodec.from_config({
        "JWT_ACCESS_SECRET_KEY": "a",
        "JWT_REFRESH_SECRET_KEY": "r",
        "JWT_REFRESH_TOKEN_EXPIRES": timedelta(days=1),
    })
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert codec.access_ttl == timedelta(minutes=15)
    assert codec.refresh_expiry(now) == now + timedelta(days=1)


def test_hash_compare():
    stored = hash_token("raw")
    assert compare_token_hash("raw", stored)
    assert not compare_token_hash("other", stored)
    assert not compare_token_hash("raw", None)
