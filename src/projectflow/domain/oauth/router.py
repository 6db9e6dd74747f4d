"""OAuth 2.1 authorization server endpoints.

Routes are thin: they read the raw request, hand it to the matching
handler on :class:`~projectflow.domain.oauth.services.OAuthServices` and
shape the response. Errors travel as OAuthError subclasses and are
rendered by the application's exception handlers.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from projectflow.domain.oauth.callback_page import (
    is_bounce_target_allowed,
    render_bounce_page,
    render_error_page,
)
from projectflow.domain.oauth.schemas import (
    AuthorizationServerMetadata,
    ProtectedResourceMetadata,
)
from projectflow.domain.oauth.services import OAuthServicesDep  # noqa: TC001
from projectflow.foundation.domain.exceptions import InvalidRequestError
from projectflow.infra.auth.settings import BOUNCE_PATH
from projectflow.infra.fastapi.error_handlers import NO_STORE_HEADERS

router = APIRouter(tags=["oauth"])

_CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}

_PAGE_HEADERS = {**NO_STORE_HEADERS, "Referrer-Policy": "no-referrer"}


# -- Request parsing ----------------------------------------------------------


async def _read_params(request: Request) -> dict[str, Any]:
    """Read a form-encoded or JSON request body into a flat mapping.

    Raises:
        InvalidRequestError: If the body cannot be decoded.
    """
    raw = await request.body()
    content_type = request.headers.get("content-type", "").lower()

    if "application/json" in content_type:
        try:
            data = json.loads(raw or b"")
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidRequestError("Invalid JSON in request body") from exc
        if not isinstance(data, dict):
            raise InvalidRequestError("Invalid JSON in request body")
        return data

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidRequestError("Request body is not valid UTF-8") from exc
    params: dict[str, Any] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        params.setdefault(key, value)
    return params


# -- Authorization ------------------------------------------------------------


@router.get("/authorize")
async def authorize(request: Request, services: OAuthServicesDep) -> RedirectResponse:
    """Start (or resume) an authorization code + PKCE flow."""
    redirect = await services.authorize.handle(
        request.query_params,
        request.headers,
        request.cookies,
    )
    return RedirectResponse(
        redirect.location,
        status_code=redirect.status_code,
        headers=NO_STORE_HEADERS,
    )


@router.get(BOUNCE_PATH, response_class=HTMLResponse)
async def oauth_callback(request: Request) -> HTMLResponse:
    """Forward an issued code to a custom-scheme redirect URI."""
    params = request.query_params
    error = params.get("error")
    if error:
        message = params.get("error_description") or error
        return HTMLResponse(render_error_page(message), status_code=400, headers=_PAGE_HEADERS)

    code = params.get("code")
    redirect_uri = params.get("redirectUri")
    if not code or not redirect_uri:
        return HTMLResponse(
            render_error_page("Missing authorization code or redirect URI."),
            status_code=400,
            headers=_PAGE_HEADERS,
        )
    if not is_bounce_target_allowed(redirect_uri):
        return HTMLResponse(
            render_error_page("The redirect URI is not allowed."),
            status_code=400,
            headers=_PAGE_HEADERS,
        )

    page = render_bounce_page(code, redirect_uri, params.get("state") or None)
    return HTMLResponse(page, headers=_PAGE_HEADERS)


# -- Token --------------------------------------------------------------------


@router.post("/token")
async def token(request: Request, services: OAuthServicesDep) -> JSONResponse:
    """Exchange an authorization code or refresh token for bearer tokens."""
    params = await _read_params(request)
    response = await services.token.handle(params)
    return JSONResponse(
        response.model_dump(exclude_none=True),
        headers=NO_STORE_HEADERS,
    )


@router.options("/token")
async def token_preflight() -> Response:
    return Response(status_code=200, headers=_CORS_PREFLIGHT_HEADERS)


# -- Revocation ---------------------------------------------------------------


@router.post("/revoke")
async def revoke(request: Request, services: OAuthServicesDep) -> JSONResponse:
    """Revoke a token (RFC 7009). Always ``200 {}`` for well-formed bodies."""
    params = await _read_params(request)
    await services.revocation.handle(params)
    return JSONResponse({}, headers=NO_STORE_HEADERS)


@router.options("/revoke")
async def revoke_preflight() -> Response:
    return Response(status_code=200, headers=_CORS_PREFLIGHT_HEADERS)


# -- Metadata -----------------------------------------------------------------


@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(
    services: OAuthServicesDep,
) -> AuthorizationServerMetadata:
    settings = services.settings
    return AuthorizationServerMetadata(
        issuer=settings.issuer,
        authorization_endpoint=f"{settings.issuer}/authorize",
        token_endpoint=f"{settings.issuer}/token",
        revocation_endpoint=f"{settings.issuer}/revoke",
        scopes_supported=list(settings.scopes_supported),
    )


@router.get("/.well-known/oauth-protected-resource")
async def protected_resource_metadata(services: OAuthServicesDep) -> ProtectedResourceMetadata:
    settings = services.settings
    return ProtectedResourceMetadata(
        resource=settings.resource_uri,
        authorization_servers=[settings.issuer],
        scopes_supported=list(settings.scopes_supported),
    )
