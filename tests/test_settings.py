"""Tests for OAuthSettings, AppSettings, CORSSettings and DatabaseSettings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from projectflow.infra.auth.settings import OAuthSettings, get_oauth_settings
from projectflow.infra.fastapi.settings import AppSettings, CORSSettings
from projectflow.infra.persistence.database import DatabaseSettings


@pytest.mark.unit
class TestOAuthSettings:
    def test_defaults(self) -> None:
        settings = OAuthSettings()
        assert settings.code_ttl_seconds == 600
        assert settings.store_backend == "sql"
        assert settings.verification_uri == "http://localhost:3000/oauth/authorize"
        assert settings.bounce_uri == "http://localhost:8000/oauth/callback"
        assert "cursor/" in settings.programmatic_user_agents

    def test_comma_separated_env_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OAUTH_ALLOWED_CLIENT_IDS", "cursor, vscode ,")
        monkeypatch.setenv("OAUTH_NATIVE_CLIENT_IDS", "claude-desktop")
        settings = OAuthSettings()
        assert settings.allowed_client_ids == ["cursor", "vscode"]
        assert settings.native_client_ids == ["claude-desktop"]

    def test_trailing_slashes_stripped(self) -> None:
        settings = OAuthSettings(issuer="https://auth.example.com/", app_url="https://app/")
        assert settings.issuer == "https://auth.example.com"
        assert settings.bounce_uri == "https://auth.example.com/oauth/callback"
        assert settings.verification_uri == "https://app/oauth/authorize"

    def test_verification_uri_complete_encodes_params(self) -> None:
        settings = OAuthSettings(app_url="https://app.example.com")
        uri = settings.verification_uri_complete({"client_id": "c", "redirect_uri": "cursor://cb"})
        assert uri == (
            "https://app.example.com/oauth/authorize?client_id=c&redirect_uri=cursor%3A%2F%2Fcb"
        )

    def test_resource_uri_defaults_to_app_endpoint(self) -> None:
        assert OAuthSettings(app_url="https://app").resource_uri == "https://app/api/mcp"
        assert OAuthSettings(resource="https://api/mcp/").resource_uri == "https://api/mcp"

    def test_allow_list(self) -> None:
        assert OAuthSettings().is_client_allowed("anything")
        restricted = OAuthSettings(allowed_client_ids=["cursor"])
        assert restricted.is_client_allowed("cursor")
        assert not restricted.is_client_allowed("other")

    def test_code_ttl_bounds(self) -> None:
        with pytest.raises(ValidationError):
            OAuthSettings(code_ttl_seconds=5)

    def test_unknown_store_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OAuthSettings(store_backend="redis")  # type: ignore[arg-type]

    def test_api_key_hidden_from_repr(self) -> None:
        settings = OAuthSettings(identity_provider_api_key="super-secret")
        assert "super-secret" not in repr(settings)

    def test_get_oauth_settings_is_cached(self) -> None:
        get_oauth_settings.cache_clear()
        try:
            assert get_oauth_settings() is get_oauth_settings()
        finally:
            get_oauth_settings.cache_clear()


@pytest.mark.unit
class TestAppSettings:
    def test_error_details_hidden_in_production(self) -> None:
        assert not AppSettings(environment="production").expose_error_details
        assert AppSettings(environment="production", debug=True).expose_error_details
        assert AppSettings(environment="development").expose_error_details

    def test_cors_comma_separated_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example.com,https://b.example.com")
        assert CORSSettings().allow_origins == ["https://a.example.com", "https://b.example.com"]

    def test_cors_credentials_with_wildcard_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CORSSettings(allow_credentials=True)


@pytest.mark.unit
class TestDatabaseSettings:
    def test_database_url_uses_psycopg(self) -> None:
        settings = DatabaseSettings(host="db", port=6543, user="u", password="p", name="n")
        assert settings.database_url == "postgresql+psycopg://u:p@db:6543/n"

    def test_password_hidden_from_repr(self) -> None:
        assert "hunter2" not in repr(DatabaseSettings(password="hunter2"))
