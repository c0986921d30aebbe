"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy as a module-level object so models and routes can
import it without circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever needed.

Per-app collaborators that carry state (the token codec, the audit sink,
the task event broadcaster) are NOT module-level singletons: the app
factory builds them and stores them in app.extensions. Routes fetch them
with the accessors below and hand them to services as arguments.
"""

from flask import current_app
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

TOKEN_CODEC_KEY = "token_codec"
AUDIT_SINK_KEY = "audit"
TASK_EVENTS_KEY = "task_events"


def get_token_codec():
    return current_app.extensions[TOKEN_CODEC_KEY]


def get_audit_sink():
    return current_app.extensions[AUDIT_SINK_KEY]


def get_task_events():
    return current_app.extensions[TASK_EVENTS_KEY]
