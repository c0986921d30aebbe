"""
Checks that the declared extras cover the database URLs config.py defaults to.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from trelloish.config import DevelopmentConfig, ProductionConfig

tomllib = pytest.importorskip("tomllib")

PYPROJECT = Path(__file__).resolve().parents[3] / "pyproject.toml"


def _extras() -> dict:
    with PYPROJECT.open("rb") as fh:
        return tomllib.load(fh)["project"]["optional-dependencies"]


def test_postgres_extra_ships_the_default_driver():
    # A bare postgresql:// URL resolves to SQLAlchemy's psycopg2 dialect.
    urls = [DevelopmentConfig.SQLALCHEMY_DATABASE_URI, ProductionConfig.SQLALCHEMY_DATABASE_URI]
    if not any(str(url).startswith("postgresql://") for url in urls):
        pytest.skip("no PostgreSQL default configured")

    assert any(req.startswith("psycopg2") for req in _extras()["postgres"])
