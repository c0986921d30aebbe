"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"data": {...}, "warnings": []}

The refresh token never appears in a response body. It travels only in an
HttpOnly, SameSite=Strict cookie (REFRESH_COOKIE_NAME, Secure in
production) that lives as long as the refresh token.

Endpoints (base url_prefix=/api/v1/auth):
  POST   /auth/register         → 201
  POST   /auth/login            → 200
  POST   /auth/logout           → 200 | 403
  POST   /auth/refresh_token    → 200 | 401 | 403 | 500
  GET    /auth/me               → 200
  POST   /auth/forgot_password  → 200
  POST   /auth/reset_password   → 200
  POST   /auth/update_password  → 200
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from marshmallow import ValidationError

from trelloish.app.errors import AppError, ErrorCode
from trelloish.app.extensions import db, get_audit_sink, get_token_codec
from trelloish.app.middleware.auth_middleware import require_auth
from trelloish.app.schemas.auth_schema import (
    ForgotPasswordSchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
    UpdatePasswordSchema,
)
from trelloish.app.services import auth_service, credential_service

auth_bp = Blueprint("auth", __name__)

FORGOT_PASSWORD_MESSAGE = "If a user with that email exists, a password reset link has been sent."


# ── Cookie helpers ─────────────────────────────────────────────────────────

def _set_refresh_cookie(response, refresh_token: str) -> None:
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        refresh_token,
        max_age=int(get_token_codec().refresh_ttl.total_seconds()),
        httponly=True,
        secure=current_app.config["REFRESH_COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )


def _clear_refresh_cookie(response) -> None:
    response.delete_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        httponly=True,
        secure=current_app.config["REFRESH_COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )


def _client_meta() -> dict:
    return {
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def _token_response(result: dict, status: int):
    """Body gets the access token and user; the refresh token goes in the cookie."""
    response = jsonify({
        "data": {
            "access_token": result["access_token"],
            "user": result["user"],
        },
        "warnings": [],
    })
    _set_refresh_cookie(response, result["refresh_token"])
    return response, status


def _error_clearing_cookie(error: AppError):
    response = jsonify(error.to_dict())
    _clear_refresh_cookie(response)
    return response, error.http_status


# ── Endpoints ──────────────────────────────────────────────────────────────

@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; log it in on this device."""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.register_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
        codec=get_token_codec(),
        audit=get_audit_sink(),
        **_client_meta(),
    )
    db.session.commit()
    return _token_response(result, 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; open a new device session."""
    try:
        data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    except ValidationError as exc:
        get_audit_sink().security(
            "LOGIN_FAILURE_MISSING_CREDENTIALS",
            ip_address=request.remote_addr,
            details={"fields": sorted(exc.messages) if isinstance(exc.messages, dict) else []},
        )
        raise
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
        codec=get_token_codec(),
        audit=get_audit_sink(),
        **_client_meta(),
    )
    db.session.commit()
    return _token_response(result, 200)


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """
    POST /auth/logout — Revoke the session named by the refresh cookie.

    No cookie: nothing to revoke, 200 (the anomaly is audited).
    Cookie invalid or belonging to another user: 403, cookie cleared.
    """
    audit = get_audit_sink()
    ip_address = request.remote_addr
    raw_refresh_token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])

    if not raw_refresh_token:
        audit.security(
            "LOGOUT_WITHOUT_REFRESH_COOKIE",
            g.user_id,
            ip_address,
        )
        return jsonify({"data": {"message": "Logged out successfully."}, "warnings": []}), 200

    payload = get_token_codec().verify_refresh_token(raw_refresh_token)
    if payload is None or payload.user_id != g.user_id:
        audit.security(
            "LOGOUT_REFRESH_TOKEN_MISMATCH",
            g.user_id,
            ip_address,
            {"token_user_id": payload.user_id if payload is not None else None},
        )
        return _error_clearing_cookie(AppError(
            ErrorCode.REFRESH_TOKEN_MISMATCH,
            "Forbidden: The refresh token does not belong to this session.",
            403,
        ))

    auth_service.logout_user(
        user_id=g.user_id,
        device_id=payload.device_id,
        session=db.session,
        audit=audit,
        ip_address=ip_address,
    )
    db.session.commit()

    response = jsonify({"data": {"message": "Logged out successfully."}, "warnings": []})
    _clear_refresh_cookie(response)
    return response, 200


@auth_bp.route("/refresh_token", methods=["POST"])
def refresh_token():
    """
    POST /auth/refresh_token — Rotate the refresh cookie, return a new access token.

    Any refresh failure is a 403 with the same message, so a client cannot
    tell theft detection from plain expiry.
    """
    audit = get_audit_sink()
    raw_refresh_token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if not raw_refresh_token:
        audit.security(
            "TOKEN_REFRESH_FAILURE",
            ip_address=request.remote_addr,
            details={"reason": "no_refresh_cookie"},
        )
        raise AppError(
            ErrorCode.REFRESH_TOKEN_MISSING,
            "Unauthorized: No refresh token provided.",
            401,
        )

    try:
        result = auth_service.refresh_access_token(
            raw_refresh_token=raw_refresh_token,
            session=db.session,
            codec=get_token_codec(),
            audit=audit,
            **_client_meta(),
        )
        # Commit on failure too: a detected reuse has revoked the session.
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Refresh token rotation failed")
        audit.error("REFRESH_TOKEN_ERROR", ip_address=request.remote_addr, error=exc)
        return _error_clearing_cookie(AppError(
            ErrorCode.INTERNAL_ERROR,
            "An unexpected error occurred. Please login again.",
            500,
        ))

    if result is None:
        return _error_clearing_cookie(AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "Forbidden: Invalid session. Please login again.",
            403,
        ))

    return _token_response(result, 200)


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return current user profile."""
    result = auth_service.get_current_user(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/forgot_password", methods=["POST"])
def forgot_password():
    """
    POST /auth/forgot_password — Same answer whether or not the email exists.

    Mail delivery is out of scope; with PASSWORD_RESET_DEBUG_RESPONSE set the
    raw token is echoed back as reset_token.
    """
    data = ForgotPasswordSchema().load(request.get_json(force=True, silent=True) or {})
    token = credential_service.issue_password_reset_token(
        email=data["email"],
        session=db.session,
        audit=get_audit_sink(),
    )
    db.session.commit()

    body = {"message": FORGOT_PASSWORD_MESSAGE}
    if token is not None and current_app.config.get("PASSWORD_RESET_DEBUG_RESPONSE"):
        body["reset_token"] = token
    return jsonify({"data": body, "warnings": []}), 200


@auth_bp.route("/reset_password", methods=["POST"])
def reset_password():
    """POST /auth/reset_password — Set a new password with a reset token. Single use."""
    data = ResetPasswordSchema().load(request.get_json(force=True, silent=True) or {})
    ok = credential_service.consume_reset_token(
        raw_token=data["token"],
        new_password=data["new_password"],
        session=db.session,
        audit=get_audit_sink(),
    )
    if not ok:
        raise AppError(
            ErrorCode.RESET_TOKEN_INVALID,
            "The password reset token is invalid or has expired.",
            400,
            field="token",
        )
    db.session.commit()
    return jsonify({"data": {"message": "Password has been reset."}, "warnings": []}), 200


@auth_bp.route("/update_password", methods=["POST"])
@require_auth
def update_password():
    """POST /auth/update_password — Change own password; old password required."""
    data = UpdatePasswordSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.change_password(
        user_id=g.user_id,
        old_password=data["old_password"],
        new_password=data["new_password"],
        session=db.session,
        audit=get_audit_sink(),
        ip_address=request.remote_addr,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
