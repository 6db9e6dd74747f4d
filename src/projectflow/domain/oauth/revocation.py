"""Revocation endpoint handler (RFC 7009).

Revocation is idempotent from the caller's point of view: unknown,
already-revoked and valid tokens all produce the same empty success
response, and upstream failures are logged rather than reported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from projectflow.infra.auth.identity_provider import IdentityProviderError
from projectflow.infra.observability import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from projectflow.foundation.domain.ports import IdentityProviderPort

logger = get_logger(__name__)

_TOKEN_TYPE_HINTS = frozenset({"access_token", "refresh_token"})


class RevocationHandler:
    """Forwards revocations to the identity provider."""

    def __init__(self, identity_provider: IdentityProviderPort) -> None:
        self._identity_provider = identity_provider

    async def handle(self, params: Mapping[str, Any]) -> None:
        token = params.get("token")
        if not isinstance(token, str) or not token:
            logger.info("revoke_without_token")
            return

        hint = params.get("token_type_hint")
        if hint not in _TOKEN_TYPE_HINTS:
            hint = None

        try:
            await self._identity_provider.revoke_token(token, hint)
        except IdentityProviderError as exc:
            logger.warning("revoke_upstream_failed", error=exc.error)
            return
        logger.info("revoke_forwarded", token_type_hint=hint)
