"""WSGI entry point: `flask --app trelloish.wsgi run` or any WSGI server."""

import os

from trelloish.app import create_app

app = create_app(os.getenv("FLASK_ENV", "development"))
