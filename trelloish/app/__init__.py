"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (app logger level, audit log file)
  3. Initialise SQLAlchemy via init_app()
  4. Build the per-app collaborators: token codec, audit sink, task event
     broadcaster (stored in app.extensions, see extensions.py)
  5. Register all route blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is complete before db.create_all() runs. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import logging
import os
import traceback
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify, request
from marshmallow import ValidationError
from sqlalchemy import event
from werkzeug.exceptions import HTTPException

from trelloish.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", audit_sink=None, task_events=None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
        audit_sink:  Optional AuditSink to use instead of the logging one
                     (tests pass a recording sink).
        task_events: Optional TaskEventBroadcaster to share with the caller.

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from trelloish.app.extensions import (
        AUDIT_SINK_KEY,
        TASK_EVENTS_KEY,
        TOKEN_CODEC_KEY,
        db,
    )
    from trelloish.app.services.audit_service import AuditSink
    from trelloish.app.services.event_service import TaskEventBroadcaster
    from trelloish.app.services.token_service import TokenCodec

    db.init_app(app)
    with app.app_context():
        _enable_sqlite_foreign_keys(db.engine)

    app.extensions[TOKEN_CODEC_KEY] = TokenCodec.from_config(app.config)
    app.extensions[AUDIT_SINK_KEY] = audit_sink or AuditSink()
    app.extensions[TASK_EVENTS_KEY] = task_events or TaskEventBroadcaster()

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from trelloish.app.models import (  # noqa: F401
            notification,
            password_reset_token,
            project,
            project_member,
            task,
            user,
            user_device,
            workspace,
            workspace_member,
        )

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    from trelloish.app.cli import register_commands
    register_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Sets the application log level from LOG_LEVEL and, when AUDIT_LOG_PATH
    is set, sends the audit logger to a size-rotated file.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger("trelloish").setLevel(level)

    path = app.config.get("AUDIT_LOG_PATH")
    if not path:
        return

    from trelloish.app.services.audit_service import AUDIT_LOGGER_NAME

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.setLevel(logging.INFO)
    resolved = os.path.abspath(path)
    if any(getattr(h, "baseFilename", None) == resolved for h in audit_logger.handlers):
        return

    os.makedirs(os.path.dirname(resolved), exist_ok=True)
    handler = RotatingFileHandler(
        resolved,
        maxBytes=app.config.get("AUDIT_LOG_MAX_BYTES", 5 * 1024 * 1024),
        backupCount=app.config.get("AUDIT_LOG_BACKUP_COUNT", 5),
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)


def _enable_sqlite_foreign_keys(engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    Projects and tasks are registered at /api/v1 because they own both
    nested paths (/workspaces/<id>/projects, /projects/<id>/tasks) and
    flat ones (/projects/<id>, /tasks/<id>).
    """
    from trelloish.app.routes.auth import auth_bp
    from trelloish.app.routes.notifications import notifications_bp
    from trelloish.app.routes.projects import projects_bp
    from trelloish.app.routes.tasks import tasks_bp
    from trelloish.app.routes.users import users_bp
    from trelloish.app.routes.workspaces import workspaces_bp

    app.register_blueprint(auth_bp,          url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,         url_prefix="/api/v1/users")
    app.register_blueprint(workspaces_bp,    url_prefix="/api/v1/workspaces")
    app.register_blueprint(projects_bp,      url_prefix="/api/v1")
    app.register_blueprint(tasks_bp,         url_prefix="/api/v1")
    app.register_blueprint(notifications_bp, url_prefix="/api/v1/notifications")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      HTTPException   → werkzeug's own status (404, 405, ...) in the envelope
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from trelloish.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError — they let it propagate here."""
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST field error only ("one error, not many").
        """
        messages = error.messages  # e.g. {"email": ["Not a valid email address."]}

        field = None
        message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                if isinstance(field_errors, list):
                    message = field_errors[0] if field_errors else "Invalid value."
                else:
                    message = str(field_errors)
                break
        elif isinstance(messages, list) and messages:
            message = messages[0]

        if str(message).startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD

        response_body = {"error": {"code": code, "message": message}}
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({
            "error": {
                "code": (error.name or "HTTP_ERROR").upper().replace(" ", "_"),
                "message": error.description,
            }
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.path,
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API. Credentials are allowed for a reflected
    origin so the refresh cookie reaches /auth/refresh_token.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            if origin:
                response.headers["Access-Control-Allow-Credentials"] = "true"

        return response
