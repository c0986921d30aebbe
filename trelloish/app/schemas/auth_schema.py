"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/credential_service.py: DUPLICATE_EMAIL (needs a DB lookup).

IMPORTANT: All schemas inherit from marshmallow.Schema directly and need
           no Flask app context, so they can be unit-tested bare.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, pre_load, validate

# bcrypt only reads the first 72 bytes of a password.
PASSWORD_MAX_LENGTH = 72


def validate_password_strength(value: str) -> None:
    """Min 8 chars, max 72 bytes, at least one letter and one digit."""
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if len(value.encode("utf-8")) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LENGTH} bytes long.")
    if not any(c.isalpha() for c in value):
        raise ValidationError("Password must contain at least one letter.")
    if not any(c.isdigit() for c in value):
        raise ValidationError("Password must contain at least one digit.")


class _EmailSchema(Schema):
    """Strips surrounding whitespace from `email` before it is validated."""

    @pre_load
    def strip_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = {**data, "email": data["email"].strip()}
        return data


def _new_password_field() -> fields.Str:
    return fields.Str(required=True, load_only=True, validate=validate_password_strength)


class RegisterSchema(_EmailSchema):
    """POST /auth/register"""

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )
    password = _new_password_field()


class LoginSchema(_EmailSchema):
    """
    POST /auth/login

    No strength rules here: credential correctness is checked in
    auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=1))


class ForgotPasswordSchema(_EmailSchema):
    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    token = fields.Str(required=True, validate=validate.Length(min=1))
    new_password = _new_password_field()


class UpdatePasswordSchema(Schema):
    old_password = fields.Str(required=True, load_only=True, validate=validate.Length(min=1))
    new_password = _new_password_field()
