"""
tests/test_config_logging.py — Configuration selection and logging setup.

Covers:
    1.  Testing config: in-memory SQLite, rate limiting off
    2.  Production config refuses to start without DATABASE_URL / SECRET_KEY
    3.  postgres:// URLs rewritten for SQLAlchemy
    4.  JSONFormatter output carries request extras
    5.  LOG_LEVEL override
    6.  Blueprint error mapping returns JSON 500 for unexpected errors
"""

import json
import logging

import pytest

from app.config import ProductionConfig, TestingConfig, _database_url
from app.middleware.logging_config import JSONFormatter, ReadableFormatter, resolve_level


class TestConfig:
    def test_testing_config(self, app):
        assert app.config["TESTING"] is True
        assert app.config["SQLALCHEMY_DATABASE_URI"] == TestingConfig.SQLALCHEMY_DATABASE_URI
        assert app.config["RATELIMIT_ENABLED"] is False

    def test_production_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            ProductionConfig()

    def test_production_requires_secret_key(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/gov")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            ProductionConfig()

    def test_postgres_url_rewritten(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@host/db")
        assert _database_url() == "postgresql://u:p@host/db"

    def test_database_url_default(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert _database_url("sqlite://") == "sqlite://"


class TestLogging:
    def _record(self, **extra):
        record = logging.LogRecord("app.services.x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_json_formatter(self):
        out = json.loads(JSONFormatter().format(self._record(request_id="rid1", status=200)))
        assert out["message"] == "hello world"
        assert out["level"] == "INFO"
        assert out["request_id"] == "rid1"
        assert out["status"] == 200
        assert "actor" not in out

    def test_readable_formatter_includes_request_id(self):
        text = ReadableFormatter().format(self._record(request_id="rid2"))
        assert "hello world" in text
        assert "rid=rid2" in text

    def test_log_level_override(self, app, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert resolve_level(app) == ("WARNING", logging.WARNING)

    def test_log_level_default_for_testing(self, app, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert resolve_level(app)[0] == "DEBUG"


class TestUnexpectedErrors:
    def test_internal_error_is_500_json(self, client, monkeypatch):
        import app.services.template_service as ts

        def _boom():
            raise RuntimeError("database on fire")

        monkeypatch.setattr(ts, "list_governance_templates", _boom)
        rv = client.get("/api/v1/governance-templates")

        assert rv.status_code == 500
        assert rv.get_json() == {"error": "Internal server error", "code": "ERR_INTERNAL"}
