"""Server settings: environment parsing and ``survey-server`` flags."""

import pytest

from survey_server.app import settings_from_args
from survey_server.config import ServerSettings, apply_overrides, load_settings

_ENV = (
    "SERVER_HOST",
    "SERVER_PORT",
    "SERVER_CORS_ORIGINS",
    "SERVER_LOG_LEVEL",
    "SERVER_CREATE_TABLES",
    "TRUSTED_PROXY_SECRET",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


# =====================================================================
# Environment
# =====================================================================


class TestLoadSettings:

    def test_defaults(self):
        assert load_settings() == ServerSettings()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SERVER_HOST", "127.0.0.1")
        monkeypatch.setenv("SERVER_PORT", "9000")
        monkeypatch.setenv("SERVER_CORS_ORIGINS", "https://a.test, ,https://b.test")
        monkeypatch.setenv("SERVER_LOG_LEVEL", "debug")
        monkeypatch.setenv("SERVER_CREATE_TABLES", "Yes")
        monkeypatch.setenv("TRUSTED_PROXY_SECRET", "gw")

        s = load_settings()
        assert s.host == "127.0.0.1"
        assert s.port == 9000
        assert s.cors_origins == ["https://a.test", "https://b.test"]
        assert s.log_level == "DEBUG"
        assert s.create_tables is True
        assert s.trusted_proxy_secret == "gw"

    @pytest.mark.parametrize("raw", ["", "0", "no", "false"])
    def test_create_tables_off(self, monkeypatch, raw):
        monkeypatch.setenv("SERVER_CREATE_TABLES", raw)
        assert load_settings().create_tables is False

    def test_empty_proxy_secret_is_none(self, monkeypatch):
        monkeypatch.setenv("TRUSTED_PROXY_SECRET", "")
        assert load_settings().trusted_proxy_secret is None


# =====================================================================
# Command-line overrides
# =====================================================================


class TestOverrides:

    def test_none_leaves_value(self):
        base = ServerSettings(port=9000)
        assert apply_overrides(base, port=None, host=None) == base

    def test_string_origins_are_split(self):
        s = apply_overrides(ServerSettings(), cors_origins="https://a.test,https://b.test")
        assert s.cors_origins == ["https://a.test", "https://b.test"]

    def test_flags_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "9000")
        monkeypatch.setenv("SERVER_HOST", "10.0.0.1")
        s = settings_from_args(["--port", "7000", "--log-level", "warning", "--create-tables"])
        assert s.port == 7000
        assert s.host == "10.0.0.1"
        assert s.log_level == "WARNING"
        assert s.create_tables is True

    def test_no_flags_keeps_environment(self, monkeypatch):
        monkeypatch.setenv("SERVER_CREATE_TABLES", "1")
        s = settings_from_args([])
        assert s.create_tables is True
        assert s.port == 8080

    def test_bad_port_exits(self):
        with pytest.raises(SystemExit):
            settings_from_args(["--port", "eighty"])
