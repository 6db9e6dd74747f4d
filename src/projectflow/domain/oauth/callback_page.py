"""HTML for the same-origin bounce page.

Desktop and IDE clients register custom-scheme redirect URIs
(``cursor://...``, ``vscode://...``). The authorize endpoint sends the
browser here first; this page then navigates to the custom scheme from
script and shows a manual link as a fallback.
"""

from __future__ import annotations

import html
import json

from projectflow.domain.oauth.clients import append_query, is_safe_redirect_uri

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta name="robots" content="noindex">
<title>{title}</title>
<style>
body {{ font-family: system-ui, sans-serif; max-width: 32rem; margin: 4rem auto; padding: 0 1rem; color: #1f2933; }}
a {{ color: #2563eb; }}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


def is_bounce_target_allowed(redirect_uri: str) -> bool:
    return is_safe_redirect_uri(redirect_uri)


def _script_literal(value: str) -> str:
    """JSON-encode a string for embedding inside a ``<script>`` element."""
    return json.dumps(value).replace("</", "<\\/")


def render_bounce_page(code: str, redirect_uri: str, state: str | None = None) -> str:
    """Render the page that forwards ``code`` and ``state`` to ``redirect_uri``.

    Raises:
        ValueError: If ``redirect_uri`` uses a blocked or missing scheme.
    """
    if not is_bounce_target_allowed(redirect_uri):
        msg = "redirect_uri scheme is not allowed"
        raise ValueError(msg)

    target = append_query(redirect_uri, {"code": code, "state": state})
    body = (
        "<p>Returning you to your application&hellip;</p>\n"
        f'<p>If nothing happens, <a href="{html.escape(target, quote=True)}">'
        "click here to continue</a>. You can close this tab afterwards.</p>\n"
        f"<script>window.location.replace({_script_literal(target)});</script>"
    )
    return _PAGE.format(title="Authorization complete", body=body)


def render_error_page(message: str) -> str:
    body = f"<p>{html.escape(message)}</p>"
    return _PAGE.format(title="Authorization failed", body=body)
