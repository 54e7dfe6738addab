"""Tests for settings loading."""

from statutory_payroll.config import Settings


class TestSettingsFromEnv:
    """Environment variables to Settings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "DATABASE_URL",
            "JURISDICTION",
            "TAX_TABLES_PATH",
            "ALLOWANCES_TAXABLE",
            "RUN_NUMBER_PREFIX",
            "RUN_NUMBER_WIDTH",
            "RUN_NUMBER_MAX_RETRIES",
            "LOG_LEVEL",
            "DEBUG",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr("statutory_payroll.config.load_dotenv", lambda: None)

        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.jurisdiction == "KE"
        assert settings.tax_tables_path is None
        assert settings.allowances_taxable is False
        assert settings.run_number_prefix == "PR-"
        assert settings.run_number_width == 4
        assert settings.run_number_max_retries == 5
        assert settings.log_level == "INFO"
        assert settings.DEBUG is False

    def test_overrides(self, monkeypatch):
        monkeypatch.setattr("statutory_payroll.config.load_dotenv", lambda: None)
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///payroll.db")
        monkeypatch.setenv("JURISDICTION", "ke")
        monkeypatch.setenv("TAX_TABLES_PATH", "/etc/payroll/ke-2025.json")
        monkeypatch.setenv("ALLOWANCES_TAXABLE", "yes")
        monkeypatch.setenv("RUN_NUMBER_PREFIX", "RUN-")
        monkeypatch.setenv("RUN_NUMBER_WIDTH", "6")
        monkeypatch.setenv("RUN_NUMBER_MAX_RETRIES", "2")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PORT", "9000")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite+aiosqlite:///payroll.db"
        assert settings.jurisdiction == "KE"
        assert settings.tax_tables_path == "/etc/payroll/ke-2025.json"
        assert settings.allowances_taxable is True
        assert settings.run_number_prefix == "RUN-"
        assert settings.run_number_width == 6
        assert settings.run_number_max_retries == 2
        assert settings.log_level == "DEBUG"
        assert settings.PORT == 9000
