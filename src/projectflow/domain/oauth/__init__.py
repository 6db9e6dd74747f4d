"""ProjectFlow OAuth - authorization code + PKCE server for agent clients."""

from projectflow.domain.oauth.app import create_oauth_app
from projectflow.domain.oauth.authorization_code import (
    AuthorizationCodePayload,
    MalformedAuthorizationCodeError,
    decode_authorization_code,
    encode_authorization_code,
)
from projectflow.domain.oauth.authorize import (
    AuthorizeHandler,
    AuthorizeRedirect,
    AuthorizeRequest,
)
from projectflow.domain.oauth.clients import ClientKind, classify_client
from projectflow.domain.oauth.revocation import RevocationHandler
from projectflow.domain.oauth.schemas import (
    AuthorizationServerMetadata,
    ProtectedResourceMetadata,
    TokenResponse,
)
from projectflow.domain.oauth.services import OAuthServices, get_oauth_services
from projectflow.domain.oauth.token import TokenHandler

__all__ = [
    "AuthorizationCodePayload",
    "AuthorizationServerMetadata",
    "AuthorizeHandler",
    "AuthorizeRedirect",
    "AuthorizeRequest",
    "ClientKind",
    "MalformedAuthorizationCodeError",
    "OAuthServices",
    "ProtectedResourceMetadata",
    "RevocationHandler",
    "TokenHandler",
    "TokenResponse",
    "classify_client",
    "create_oauth_app",
    "decode_authorization_code",
    "encode_authorization_code",
    "get_oauth_services",
]
