"""Tests for application settings."""

import json
import os
from unittest.mock import patch

import pytest

from cohort_ledger import __version__
from cohort_ledger.infrastructure.settings import APP_VERSION, DEFAULT_SCAN_BATCH_SIZE, Settings


def test_defaults():
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings()

    assert settings.app_name == "Cohort-Ledger"
    assert settings.log_level == "INFO"
    assert settings.log_json is False
    assert settings.strict_decode is True
    assert settings.scan_batch_size == DEFAULT_SCAN_BATCH_SIZE
    assert APP_VERSION == __version__


def test_environment_overrides():
    env = {
        "CL_APP_NAME": "Ledger-Test",
        "CL_LOG_LEVEL": "DEBUG",
        "CL_LOG_JSON": "TRUE",
        "CL_STRICT_DECODE": "false",
        "CL_SCAN_BATCH_SIZE": "50",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = Settings()

    assert settings.app_name == "Ledger-Test"
    assert settings.log_level == "DEBUG"
    assert settings.log_json is True
    assert settings.strict_decode is False
    assert settings.scan_batch_size == 50


def test_config_loaded_lazily(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with patch.dict(os.environ, {"CL_DB_PATH": str(tmp_path / "ledger.duckdb")}, clear=True):
        settings = Settings()
        assert settings._config_manager is None
        assert settings.ledger_config.db_path == str(tmp_path / "ledger.duckdb")
    assert settings._config_manager is not None


@pytest.mark.parametrize("value", ["0", "-5", "abc", "2.5"])
def test_invalid_scan_batch_size(value):
    with patch.dict(os.environ, {"CL_SCAN_BATCH_SIZE": value}, clear=True):
        settings = Settings()

    with pytest.raises(ValueError) as exc_info:
        settings.scan_batch_size
    assert "CL_SCAN_BATCH_SIZE" in str(exc_info.value)


def test_config_file_used_when_set(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "cohort.json"
    config_path.write_text(json.dumps({
        "ledger": {"ledger_type": "duckdb", "db_path": str(tmp_path / "file.duckdb")},
        "oracle": {"base_url": "https://oracle.example", "timeout_seconds": 12},
    }))
    config_path.chmod(0o600)

    env = {"CL_CONFIG_FILE": str(config_path), "CL_DB_PATH": str(tmp_path / "env.duckdb")}
    with patch.dict(os.environ, env, clear=True):
        settings = Settings()
        assert settings.config_file == str(config_path)
        assert settings.ledger_config.db_path == str(tmp_path / "file.duckdb")
        assert settings.oracle_config.base_url == "https://oracle.example"
        assert settings.oracle_config.timeout_seconds == 12


def test_missing_config_file(tmp_path):
    with patch.dict(os.environ, {"CL_CONFIG_FILE": str(tmp_path / "missing.json")}, clear=True):
        settings = Settings()

    with pytest.raises(FileNotFoundError):
        settings.ledger_config
