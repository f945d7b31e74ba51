"""Tests for configuration and the application factory."""

import sys

import pytest

from authgate import cli
from authgate.api.app import build_providers, create_app
from authgate.config import Settings, get_settings, load_settings
from authgate.errors import ConfigurationError
from authgate.providers.google import GoogleProvider

from conftest import TEST_SECRET


class TestSettings:
    """Tests for loading settings."""

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("BASE_URL", "https://site.example.com/")

        settings = get_settings()

        assert settings.is_production is True
        assert settings.base_url == "https://site.example.com"
        assert settings.redirect_uri == "https://site.example.com/_p/callback"
        assert settings.login_url == "https://site.example.com/_p/login"

    def test_defaults(self):
        settings = Settings(app_secret=TEST_SECRET)

        assert settings.session_max_age_seconds == 60 * 60 * 24 * 7
        assert settings.session_cookie_name == "_psession"
        assert settings.index_file == "index.html"
        assert settings.html5 is False

    def test_salt_derived_from_secret(self):
        a = Settings(app_secret=TEST_SECRET)
        b = Settings(app_secret=TEST_SECRET)
        c = Settings(app_secret="another-secret-key-that-is-32-chars-long")

        assert a.encryption_salt == b.encryption_salt
        assert a.encryption_salt != c.encryption_salt

    def test_missing_secret(self, monkeypatch):
        monkeypatch.delenv("APP_SECRET")
        with pytest.raises(ConfigurationError, match="app_secret"):
            load_settings()

    def test_short_secret(self, monkeypatch):
        monkeypatch.setenv("APP_SECRET", "too-short")
        with pytest.raises(ConfigurationError):
            load_settings()

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "testing")
        with pytest.raises(ConfigurationError, match="app_env"):
            load_settings()


class TestAppFactory:
    """Tests for wiring the application."""

    def test_registers_google(self, settings):
        registry = build_providers(settings)

        assert registry.names == ["google"]
        assert isinstance(registry.get("google"), GoogleProvider)
        assert registry.get("google").redirect_uri == "http://testserver/_p/callback"

    def test_no_provider_is_fatal(self, settings):
        unconfigured = settings.model_copy(
            update={"google_client_id": None, "google_client_secret": None}
        )
        with pytest.raises(ConfigurationError):
            create_app(unconfigured)

    def test_app_state(self, settings):
        app = create_app(settings)

        assert app.state.auth_flow.base_url == "http://testserver"
        assert app.state.session_store.options.secure is False


class TestCli:
    """Tests for the command-line interface."""

    def test_no_command_prints_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["authgate"])
        assert cli.main() == 0
        assert "serve" in capsys.readouterr().out

    def test_check_config(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["authgate", "check-config"])

        assert cli.main() == 0
        assert "google" in capsys.readouterr().out

    def test_check_config_reports_errors(self, monkeypatch, capsys):
        monkeypatch.delenv("APP_SECRET")
        monkeypatch.setattr(sys, "argv", ["authgate", "check-config"])

        assert cli.main() == 1
        assert "error" in capsys.readouterr().err
