"""Tests for configuration selection, logging formatters and slug helpers."""

import json
import logging

import pytest

from stepwise.config import ProductionConfig, TestingConfig
from stepwise.middleware.logging_config import JSONFormatter
from stepwise.utils.helpers import random_suffix, slugify


def test_production_requires_database_url(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        ProductionConfig()


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/stepwise")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        ProductionConfig()


def test_testing_config_trusts_actor_header(app):
    assert TestingConfig.ACTOR_HEADER_ENABLED is True
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite")


def test_json_formatter_includes_request_fields():
    record = logging.LogRecord("stepwise.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.status = 201
    record.actor_id = "user-alice"

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "hello world"
    assert entry["status"] == 201
    assert entry["actor_id"] == "user-alice"
    assert "method" not in entry


@pytest.mark.parametrize("title,expected", [
    ("My Cool Dashboard!", "my-cool-dashboard"),
    ("  --Hello__World--  ", "hello-world"),
    ("Ünïcode only", "n-code-only"),
    ("!!!", "project"),
    ("", "project"),
    (None, "project"),
])
def test_slugify(title, expected):
    assert slugify(title) == expected


def test_slugify_caps_length():
    slug = slugify("word " * 40)
    assert len(slug) <= 60
    assert not slug.endswith("-")


def test_random_suffix_alphabet():
    suffix = random_suffix()
    assert len(suffix) == 4
    assert suffix.isalnum() and suffix == suffix.lower()
