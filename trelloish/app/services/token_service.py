"""
services/token_service.py — Token codec.

Responsibilities:
  - Sign short-lived access tokens   (HS256, 15 min) {user_id, email, status}
  - Sign long-lived refresh tokens   (HS256, 7 days) {user_id, device_id}
  - Verify both, returning None on ANY failure (bad signature, expiry,
    malformed input, missing claims). Verification never raises.
  - One-way hash + constant-time compare for refresh tokens, used by the
    session registry so the DB only ever holds hashes.

Access and refresh tokens are signed with different secrets and carry a
"type" claim, so neither can be replayed as the other.

Every token carries a random jti. Without it, two refresh tokens minted for
the same device within one second would be byte-identical, and a rotated
token would still match the stored hash.

The codec is built once by the app factory from app.config and stored in
app.extensions["token_codec"]. No Flask imports here.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping

import jwt

from trelloish.app.clock import utcnow
from trelloish.app.models.enums import UserStatus

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class AccessTokenPayload:
    user_id: int
    email: str
    status: UserStatus


@dataclass(frozen=True)
class RefreshTokenPayload:
    user_id: int
    device_id: str


# ── Refresh-token hashing ──────────────────────────────────────────────────

def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def compare_token_hash(raw_token: str, stored_hash: str) -> bool:
    """Constant-time check that `raw_token` hashes to `stored_hash`."""
    return hmac.compare_digest(hash_token(raw_token), stored_hash or "")


# ── Codec ──────────────────────────────────────────────────────────────────

class TokenCodec:

    def __init__(
            self,
            access_secret: str,
            refresh_secret: str,
            access_ttl: timedelta = timedelta(minutes=15),
            refresh_ttl: timedelta = timedelta(days=7),
            algorithm: str = "HS256",
    ) -> None:
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config: Mapping) -> "TokenCodec":
        return cls(
            access_secret=config["JWT_ACCESS_SECRET_KEY"],
            refresh_secret=config["JWT_REFRESH_SECRET_KEY"],
            access_ttl=config.get("JWT_ACCESS_TOKEN_EXPIRES", timedelta(minutes=15)),
            refresh_ttl=config.get("JWT_REFRESH_TOKEN_EXPIRES", timedelta(days=7)),
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    def refresh_expiry(self, now: datetime | None = None) -> datetime:
        """The expires_at a session row gets when a refresh token is minted at `now`."""
        return (now or utcnow()) + self.refresh_ttl

    # ── Issue ──────────────────────────────────────────────────────────────

    def issue_access_token(
            self,
            user_id: int,
            email: str,
            status: UserStatus | str,
            now: datetime | None = None,
    ) -> str:
        now = now or utcnow()
        payload = {
            "type": ACCESS_TOKEN_TYPE,
            "user_id": user_id,
            "email": email,
            "status": UserStatus(status).value,
            "iat": now,
            "exp": now + self.access_ttl,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self.access_secret, algorithm=self.algorithm)

    def issue_refresh_token(
            self,
            user_id: int,
            device_id: str,
            now: datetime | None = None,
    ) -> str:
        now = now or utcnow()
        payload = {
            "type": REFRESH_TOKEN_TYPE,
            "user_id": user_id,
            "device_id": device_id,
            "iat": now,
            "exp": now + self.refresh_ttl,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self.refresh_secret, algorithm=self.algorithm)

    # ── Verify ─────────────────────────────────────────────────────────────

    def verify_access_token(self, token: str | None) -> AccessTokenPayload | None:
        claims = self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE)
        if claims is None:
            return None
        try:
            return AccessTokenPayload(
                user_id=int(claims["user_id"]),
                email=str(claims["email"]),
                status=UserStatus(claims["status"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.debug("Access token rejected: missing or malformed claims")
            return None

    def verify_refresh_token(self, token: str | None) -> RefreshTokenPayload | None:
        claims = self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE)
        if claims is None:
            return None
        try:
            device_id = claims["device_id"]
            if not isinstance(device_id, str) or not device_id:
                return None
            return RefreshTokenPayload(
                user_id=int(claims["user_id"]),
                device_id=device_id,
            )
        except (KeyError, TypeError, ValueError):
            logger.debug("Refresh token rejected: missing or malformed claims")
            return None

    def _decode(self, token: str | None, secret: str, expected_type: str) -> dict | None:
        if not token or not isinstance(token, str):
            return None
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("%s token rejected: expired", expected_type)
            return None
        except jwt.InvalidTokenError as exc:
            logger.debug("%s token rejected: %s", expected_type, exc)
            return None

        if claims.get("type") != expected_type:
            logger.debug("%s token rejected: wrong token type", expected_type)
            return None
        return claims
