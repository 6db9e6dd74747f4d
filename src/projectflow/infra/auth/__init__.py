"""ProjectFlow Infra Auth - PKCE, OAuth settings and identity provider client."""

from projectflow.infra.auth.identity_provider import (
    IdentityProviderClient,
    IdentityProviderError,
)
from projectflow.infra.auth.pkce import (
    derive_code_challenge,
    generate_code_verifier,
    is_valid_code_challenge,
    is_valid_code_verifier,
    verify_code_verifier,
)
from projectflow.infra.auth.settings import BOUNCE_PATH, OAuthSettings, get_oauth_settings

__all__ = [
    "BOUNCE_PATH",
    "IdentityProviderClient",
    "IdentityProviderError",
    "OAuthSettings",
    "derive_code_challenge",
    "generate_code_verifier",
    "get_oauth_settings",
    "is_valid_code_challenge",
    "is_valid_code_verifier",
    "verify_code_verifier",
]
