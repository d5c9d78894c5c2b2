"""Tests for settings validation, structured logging and error responses."""

import json
import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from ottowrite.core.config import ConfigurationError, Environment, Settings
from ottowrite.core.logging_config import _JsonFormatter, _SecretFilter, request_id_var
from ottowrite.database import get_db
from ottowrite.main import app
from ottowrite.services.document_service import DocumentService


class TestSettings:

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.snapshot_retention_limit == 50
        assert s.commit_history_max == 100
        assert s.rate_limit_save_per_minute == 120

    def test_wildcard_cors_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, cors_allowed_origins="*").get_cors_origins()

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, log_level="LOUD")

    def test_retention_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, snapshot_retention_limit=0)

    def test_insecure_production_config_blocks_startup(self):
        s = Settings(_env_file=None, environment=Environment.PRODUCTION)
        with pytest.raises(ConfigurationError):
            s.validate_production_config()

    def test_secure_production_config_passes(self):
        s = Settings(
            _env_file=None,
            environment=Environment.PRODUCTION,
            jwt_secret_key="a-real-secret-from-the-auth-provider",
            auth_enabled=True,
            cors_allowed_origins="https://app.ottowrite.example",
        )
        assert s.config_warnings() == []
        s.validate_production_config()

    def test_development_only_warns(self):
        s = Settings(_env_file=None)
        assert len(s.config_warnings()) == 3
        s.validate_production_config()


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("ottowrite.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_json_formatter_merges_extra_fields(self):
        line = _JsonFormatter().format(_record("Autosave stored", document_id="d-1"))
        payload = json.loads(line)
        assert payload["message"] == "Autosave stored"
        assert payload["level"] == "INFO"
        assert payload["document_id"] == "d-1"

    def test_json_formatter_includes_request_id(self):
        token = request_id_var.set("req-42")
        try:
            payload = json.loads(_JsonFormatter().format(_record("hello")))
        finally:
            request_id_var.reset(token)
        assert payload["request_id"] == "req-42"

    def test_secret_filter_redacts_bearer_tokens(self):
        record = _record("Authorization header was Bearer abcdefghijklmnopqrstuvwxyz123456")
        _SecretFilter().filter(record)
        assert "abcdefghijklmnop" not in record.msg
        assert "***REDACTED***" in record.msg

    def test_secret_filter_redacts_key_value_pairs(self):
        record = _record("connecting with password=hunter2hunter2")
        _SecretFilter().filter(record)
        assert "hunter2" not in record.msg


class TestErrorResponses:

    def test_database_failure_returns_structured_500(self, client, monkeypatch):
        def broken(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(DocumentService, "list_documents", broken)
        with TestClient(app, raise_server_exceptions=False) as c:
            resp = c.get("/api/documents")

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert body["message"] == "Internal server error"
        assert "locked" not in resp.text

    def test_validation_errors_are_422(self, client):
        resp = client.post("/api/documents", json={"content": {}})
        assert resp.status_code == 422
