"""OAuth authorization server configuration settings.

Loaded from environment variables with OAUTH_ prefix.
Follows Pydantic BaseSettings pattern for type-safe configuration.

Environment Variables:
    OAUTH_ISSUER: Public base URL of this authorization server
    OAUTH_APP_URL: Origin of the human-facing web app (login/consent UI)
    OAUTH_LOGIN_PAGE_PATH: Path of the login/consent page on OAUTH_APP_URL
    OAUTH_RESOURCE: Protected resource identifier advertised in metadata
    OAUTH_CODE_TTL_SECONDS: Authorization code lifetime
    OAUTH_PENDING_REQUEST_TTL_SECONDS: Pending authorization request lifetime
    OAUTH_ACCESS_TOKEN_EXPIRES_IN: expires_in reported by the token endpoint
    OAUTH_ALLOWED_CLIENT_IDS: Comma-separated client allow-list (empty = any)
    OAUTH_NATIVE_CLIENT_IDS: Clients always treated as programmatic
    OAUTH_BROWSER_CLIENT_IDS: Clients always treated as interactive
    OAUTH_PROGRAMMATIC_USER_AGENTS: User-agent substrings of agent clients
    OAUTH_STORE_BACKEND: "sql" or "memory"
    OAUTH_CREATE_TABLES: Create the pending request table on startup
    OAUTH_IDENTITY_PROVIDER_URL: Base URL of the identity provider
    OAUTH_IDENTITY_PROVIDER_API_KEY: Identity provider API key
    OAUTH_SESSION_COOKIE_NAME: Browser session cookie set by the web app
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, Literal
from urllib.parse import urlencode

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

CommaList = Annotated[list[str], NoDecode]

# Same-origin page that forwards a code to a non-HTTP redirect URI.
BOUNCE_PATH = "/oauth/callback"

DEFAULT_SCOPES = [
    "projects:read",
    "projects:write",
    "tasks:read",
    "tasks:write",
    "sessions:read",
    "sessions:write",
]

DEFAULT_PROGRAMMATIC_USER_AGENTS = [
    "cursor/",
    "vscode",
    "electron",
    "claude",
    "node",
    "python",
    "curl",
    "httpx",
    "go-http-client",
    "okhttp",
]


class OAuthSettings(BaseSettings):
    """Authorization server configuration loaded from environment variables.

    Example:
        >>> settings = OAuthSettings()
        >>> settings.code_ttl_seconds
        600
        >>> settings.verification_uri
        'http://localhost:3000/oauth/authorize'
    """

    model_config = SettingsConfigDict(
        env_prefix="OAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    issuer: str = Field(
        default="http://localhost:8000",
        description="Public base URL of this authorization server",
    )
    app_url: str = Field(
        default="http://localhost:3000",
        description="Origin of the web app hosting the login/consent page",
    )
    login_page_path: str = Field(
        default="/oauth/authorize",
        description="Login/consent page path on app_url",
    )
    resource: str = Field(
        default="",
        description="Protected resource identifier (defaults to <app_url>/api/mcp)",
    )

    code_ttl_seconds: int = Field(
        default=600,
        ge=30,
        le=3600,
        description="Authorization code lifetime in seconds",
    )
    pending_request_ttl_seconds: int = Field(
        default=600,
        ge=30,
        le=3600,
        description="Pending authorization request lifetime in seconds",
    )
    access_token_expires_in: int = Field(
        default=3600,
        ge=60,
        description="expires_in reported for issued access tokens",
    )

    allowed_client_ids: CommaList = Field(
        default_factory=list,
        description="Client allow-list; empty disables enforcement",
    )
    native_client_ids: CommaList = Field(
        default_factory=list,
        description="Clients registered as programmatic (polling) clients",
    )
    browser_client_ids: CommaList = Field(
        default_factory=list,
        description="Clients registered as interactive (browser) clients",
    )
    programmatic_user_agents: CommaList = Field(
        default_factory=lambda: list(DEFAULT_PROGRAMMATIC_USER_AGENTS),
        description="Lower-case user-agent substrings identifying agent clients",
    )
    scopes_supported: CommaList = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Scopes advertised in server metadata",
    )

    store_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Pending request store implementation",
    )
    create_tables: bool = Field(
        default=False,
        description="Create the pending request table on startup",
    )

    identity_provider_url: str = Field(
        default="",
        description="Identity provider base URL (e.g. https://<ref>.supabase.co)",
    )
    identity_provider_api_key: str = Field(
        default="",
        repr=False,  # Security: never log the provider key
        description="Identity provider API key sent as the apikey header",
    )
    identity_provider_timeout: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Identity provider HTTP timeout in seconds",
    )
    session_cookie_name: str = Field(
        default="sb-auth-token",
        description="Cookie holding the browser session issued by the web app",
    )

    @field_validator(
        "allowed_client_ids",
        "native_client_ids",
        "browser_client_ids",
        "programmatic_user_agents",
        "scopes_supported",
        mode="before",
    )
    @classmethod
    def _parse_comma_separated(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        if isinstance(v, (list, tuple)):
            return [str(s) for s in v]
        return []

    @field_validator("issuer", "app_url", "resource", "identity_provider_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def verification_uri(self) -> str:
        """Login/consent page a user opens to approve a pending request."""
        return f"{self.app_url}{self.login_page_path}"

    def verification_uri_complete(self, params: dict[str, str]) -> str:
        """Login/consent page URL carrying the original authorize parameters."""
        if not params:
            return self.verification_uri
        return f"{self.verification_uri}?{urlencode(params)}"

    @property
    def bounce_uri(self) -> str:
        return f"{self.issuer}{BOUNCE_PATH}"

    @property
    def resource_uri(self) -> str:
        return self.resource or f"{self.app_url}/api/mcp"

    def is_client_allowed(self, client_id: str) -> bool:
        """Check the allow-list (always True when no allow-list is configured)."""
        return not self.allowed_client_ids or client_id in self.allowed_client_ids


@lru_cache(maxsize=1)
def get_oauth_settings() -> OAuthSettings:
    """Get singleton OAuthSettings instance.

    Cached for performance - settings are loaded once per application lifecycle.
    Clear cache with ``get_oauth_settings.cache_clear()`` for testing.

    Returns:
        OAuthSettings instance with configuration from environment.
    """
    return OAuthSettings()
