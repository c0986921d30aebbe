"""
middleware/auth_middleware.py — Bearer-token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Verifies the access token through the app's TokenCodec
  3. Attaches user_id, user_email and user_status to flask.g
  4. Raises the appropriate 401 error if any step fails

Strict responsibility boundary:
  - This middleware authenticates only. It does NOT perform business
    authorization (workspace or project roles, admin checks). That belongs
    in the service layer. Middleware = authentication (401).
    Service = authorization (403).
  - g.user_status is the snapshot taken when the token was minted. It is
    informational; services re-read the status from the DB when it matters.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, bad signature, expired, bad payload
  → 403 FORBIDDEN is never raised here; it is raised by service functions.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from trelloish.app.errors import AppError, ErrorCode
from trelloish.app.extensions import get_token_codec
from trelloish.app.services.token_service import AccessTokenPayload


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces bearer-token authentication.

    Usage:
        @workspaces_bp.route("/", methods=["GET"])
        @require_auth
        def list_workspaces():
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def parse_bearer_token(auth_header: str) -> str:
    """
    Extracts the raw token from an Authorization header value.

    Raises AppError(TOKEN_MISSING / TOKEN_INVALID, 401).
    """
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Unauthorized: You must be logged in. Provide a Bearer token in the Authorization header.",
            401,
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Unauthorized: Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return parts[1]


def authenticate_token(raw_token: str) -> AccessTokenPayload:
    payload = get_token_codec().verify_access_token(raw_token)
    if payload is None:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Unauthorized: The access token is invalid or has expired. Use POST /auth/refresh_token to obtain a new one.",
            401,
        )
    return payload


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and populates flask.g.

    Separated from the decorator wrapper so it can be called directly in tests.
    """
    raw_token = parse_bearer_token(request.headers.get("Authorization", ""))
    payload = authenticate_token(raw_token)

    g.user_id = payload.user_id
    g.user_email = payload.email
    g.user_status = payload.status
