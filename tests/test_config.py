"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from crm_finance.config import (
    AppSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestStorageSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LEDGER_STORAGE_BACKEND", raising=False)
        settings = StorageSettings()
        assert settings.backend == "memory"

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "json")
        monkeypatch.setenv("LEDGER_STORAGE_JSON_PATH", str(tmp_path / "ledger.json"))
        settings = StorageSettings()
        assert settings.backend == "json"
        assert settings.json_path.endswith("ledger.json")

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            StorageSettings(backend="sheets")

    def test_missing_directory_warns(self, tmp_path):
        with pytest.warns(UserWarning):
            StorageSettings(json_path=str(tmp_path / "missing" / "ledger.json"))


class TestAppSettings:

    def test_report_top_n_from_env(self, monkeypatch):
        monkeypatch.setenv("REPORT_TOP_N", "3")
        assert AppSettings().report_top_n == 3

    def test_negative_top_n_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(report_top_n=-1)

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(log_level="LOUD")


class TestValidateAllSettings:

    def test_all_valid(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
        results = validate_all_settings()
        assert results["storage"] is True
        assert results["app"] is True

    def test_reports_broken_group(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "sheets")
        results = validate_all_settings()
        assert results["storage"] is False
        assert "storage_error" in results
        assert results["app"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
