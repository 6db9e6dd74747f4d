"""PKCE (Proof Key for Code Exchange) utilities.

Implements RFC 7636 server-side checks: format validation for
``code_challenge`` and ``code_verifier`` and verification of a verifier
against a stored challenge for both the ``S256`` and ``plain`` methods.

Design decisions:
- Manual S256 derivation (hashlib + base64) keeps the module dependency-free
  and directly testable against the RFC 7636 Appendix B vector.
- Comparisons use :func:`hmac.compare_digest` so a mismatch leaks no timing
  information about how much of the challenge matched.
- An unknown challenge method never verifies.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets

from projectflow.foundation.domain.pending_request import CodeChallengeMethod

# RFC 7636 section 4.1: unreserved characters only.
CODE_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9._~-]+$")

# Base64url alphabet without padding.
CODE_CHALLENGE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

SUPPORTED_METHODS: frozenset[str] = frozenset(m.value for m in CodeChallengeMethod)


def derive_code_challenge(code_verifier: str) -> str:
    """Derive S256 code_challenge from code_verifier per RFC 7636.

    Computes ``BASE64URL(SHA256(code_verifier))`` with padding stripped.

    Args:
        code_verifier: The code verifier string.

    Returns:
        Base64url-encoded SHA-256 hash without padding.

    Example:
        >>> derive_code_challenge("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")
        'E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM'
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_code_verifier(num_bytes: int = 32) -> str:
    """Generate a random verifier (43 characters for the default 32 bytes)."""
    return secrets.token_urlsafe(num_bytes)


def is_valid_code_verifier(code_verifier: str) -> bool:
    return bool(CODE_VERIFIER_PATTERN.fullmatch(code_verifier))


def is_valid_code_challenge(code_challenge: str) -> bool:
    return bool(CODE_CHALLENGE_PATTERN.fullmatch(code_challenge))


def verify_code_verifier(code_verifier: str, code_challenge: str, method: str) -> bool:
    """Check a presented verifier against the challenge bound to a code.

    Args:
        code_verifier: Verifier sent to the token endpoint.
        code_challenge: Challenge recorded at authorization time.
        method: ``S256`` or ``plain``.

    Returns:
        True when the verifier matches, False otherwise (including unknown methods).
    """
    if method == CodeChallengeMethod.S256:
        try:
            computed = derive_code_challenge(code_verifier)
        except UnicodeEncodeError:
            return False
        return hmac.compare_digest(computed, code_challenge)
    if method == CodeChallengeMethod.PLAIN:
        return hmac.compare_digest(code_verifier.encode("utf-8"), code_challenge.encode("utf-8"))
    return False
