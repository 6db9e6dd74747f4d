"""Client classification and redirect URI helpers.

An unauthenticated authorize call is answered differently depending on who
made it. A browser gets redirected to the login page; an agent (IDE,
CLI, desktop app) gets a machine-readable ``authorization_pending``
response and is expected to open the login page itself.

Classification order:
1. Explicit registration (``OAUTH_NATIVE_CLIENT_IDS`` / ``OAUTH_BROWSER_CLIENT_IDS``).
2. Redirect URI scheme: anything but http(s) is a native client.
3. User-agent: known agent substrings, then ``Mozilla/`` for browsers.
   A missing or unrecognised user-agent is treated as programmatic.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from collections.abc import Mapping

    from projectflow.infra.auth.settings import OAuthSettings

_HTTP_SCHEMES = frozenset({"http", "https"})
BLOCKED_SCHEMES = frozenset({"javascript", "data", "vbscript", "file"})


class ClientKind(StrEnum):
    """How a caller is answered while the user is not signed in."""

    INTERACTIVE = "interactive"
    PROGRAMMATIC = "programmatic"


def uri_scheme(uri: str) -> str:
    return urlsplit(uri.strip()).scheme.lower()


def is_http_uri(uri: str) -> bool:
    return uri_scheme(uri) in _HTTP_SCHEMES


def is_safe_redirect_uri(uri: str) -> bool:
    """True when the URI has a scheme and it is not one a browser would execute."""
    scheme = uri_scheme(uri)
    return bool(scheme) and scheme not in BLOCKED_SCHEMES


def classify_client(
    client_id: str,
    redirect_uri: str,
    user_agent: str | None,
    settings: OAuthSettings,
) -> ClientKind:
    """Decide whether a caller is a browser or an agent."""
    if client_id in settings.native_client_ids:
        return ClientKind.PROGRAMMATIC
    if client_id in settings.browser_client_ids:
        return ClientKind.INTERACTIVE
    if not is_http_uri(redirect_uri):
        return ClientKind.PROGRAMMATIC

    agent = (user_agent or "").lower()
    if not agent:
        return ClientKind.PROGRAMMATIC
    if any(marker.lower() in agent for marker in settings.programmatic_user_agents):
        return ClientKind.PROGRAMMATIC
    if "mozilla/" in agent:
        return ClientKind.INTERACTIVE
    return ClientKind.PROGRAMMATIC


def normalize_redirect_uri(uri: str) -> str:
    """Normalize for comparison: trim, strip trailing slashes, case-fold."""
    return uri.strip().rstrip("/").casefold()


def append_query(uri: str, params: Mapping[str, str | None]) -> str:
    """Append parameters to a URI, keeping any query it already has.

    ``None`` values are skipped.
    """
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))
