"""
cli.py — `flask` subcommands for operating a deployment.

  flask --app trelloish.wsgi init-db
  flask --app trelloish.wsgi create-admin EMAIL PASSWORD

Schema migrations are not managed here; init-db only creates missing tables.
ADMIN status cannot be reached through the API by a non-admin, so the
first admin is created from the command line.
"""

from __future__ import annotations

import click
from flask import Flask
from marshmallow import ValidationError

from trelloish.app.errors import AppError
from trelloish.app.extensions import db, get_audit_sink
from trelloish.app.models.enums import UserStatus
from trelloish.app.schemas.auth_schema import validate_password_strength
from trelloish.app.services import credential_service


def register_commands(app: Flask) -> None:

    @app.cli.command("init-db")
    def init_db() -> None:
        """Create all tables that do not exist yet."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.argument("password")
    def create_admin(email: str, password: str) -> None:
        """Create a user with ADMIN status, or promote an existing one."""
        user = credential_service.find_user_by_email(email, db.session)
        if user is None:
            try:
                validate_password_strength(password)
            except ValidationError as exc:
                raise click.BadParameter(" ".join(exc.messages), param_hint="PASSWORD") from exc
            try:
                user = credential_service.create_user(email, password, db.session)
            except AppError as exc:
                raise click.ClickException(exc.message) from exc

        user.global_status = UserStatus.ADMIN
        db.session.commit()
        get_audit_sink().security("ADMIN_CREATED_FROM_CLI", user.id, details={"email": user.email})
        click.echo(f"User {user.email} (id={user.id}) is now ADMIN.")
