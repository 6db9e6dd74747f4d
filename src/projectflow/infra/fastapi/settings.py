"""Application settings for the FastAPI app factory.

Provides Pydantic Settings for FastAPI configuration, CORS policy and
error-detail exposure.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

CommaList = Annotated[list[str], NoDecode]


class CORSSettings(BaseSettings):
    """CORS policy configuration.

    Environment variables use the ``CORS_`` prefix (e.g., ``CORS_ALLOW_ORIGINS``).
    Comma-separated strings are automatically parsed into lists. The token
    and revocation endpoints are called from browser-hosted agents, so the
    default policy is permissive and credential-free.
    """

    model_config = SettingsConfigDict(env_prefix="CORS_", extra="ignore")

    allow_origins: CommaList = Field(default=["*"])
    allow_methods: CommaList = Field(default=["GET", "POST", "OPTIONS"])
    allow_headers: CommaList = Field(default=["Content-Type", "Authorization"])
    allow_credentials: bool = Field(default=False)
    expose_headers: CommaList = Field(default=["X-Request-ID", "WWW-Authenticate"])

    @field_validator(
        "allow_origins",
        "allow_methods",
        "allow_headers",
        "expose_headers",
        mode="before",
    )
    @classmethod
    def _parse_comma_separated(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        if isinstance(v, list):
            return v
        return ["*"]

    @model_validator(mode="after")
    def _validate_credentials_with_wildcard(self) -> CORSSettings:
        if self.allow_credentials and self.allow_origins == ["*"]:
            msg = (
                "CORS allow_credentials=True cannot be used with allow_origins=['*']. "
                "Browsers will reject the response. Specify explicit origins instead."
            )
            raise ValueError(msg)
        return self


def _default_version() -> str:
    """Resolve default app version from package metadata."""
    try:
        from importlib.metadata import version

        return version("projectflow-oauth")
    except Exception:
        return "0.0.0"


class AppSettings(BaseSettings):
    """Application factory settings.

    Environment variables use the ``APP_`` prefix (e.g., ``APP_TITLE``).
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        extra="ignore",
    )

    title: str = Field(default="ProjectFlow Authorization Server")
    version: str = Field(default=_default_version())
    description: str = Field(default="OAuth 2.1 authorization code flow with PKCE")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default=None)
    openapi_url: str | None = Field(default="/openapi.json")
    debug: bool = Field(default=False)
    environment: str = Field(
        default="development",
        description="Deployment environment; 'production' hides server_error details",
    )
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @property
    def expose_error_details(self) -> bool:
        """Whether server_error responses may include exception details."""
        return self.debug or self.environment != "production"
