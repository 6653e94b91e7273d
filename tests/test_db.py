# tests/test_db.py

import os

# Set the TESTING environment variable to use the test database
os.environ["TESTING"] = "1"

from starlette.datastructures import Secret
from storefront_api import db, settings


def test_connection_url_uses_test_database_when_testing(monkeypatch):
    monkeypatch.setattr(settings, "TEST_DATABASE_URL", Secret("sqlite:///./other_test.db"))
    assert db.connection_url(testing=True) == "sqlite:///./other_test.db"


def test_connection_url_selects_psycopg_driver(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", Secret("postgresql://shop:pw@db:5432/shop"))
    assert db.connection_url(testing=False) == "postgresql+psycopg://shop:pw@db:5432/shop"


def test_connection_url_keeps_explicit_driver(monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", Secret("postgresql+psycopg://shop:pw@db/shop"))
    assert db.connection_url(testing=False) == "postgresql+psycopg://shop:pw@db/shop"
