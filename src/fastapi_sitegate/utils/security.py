"""Credential helpers for the maintenance/preview bypass.

Bypass credentials are compared with :func:`secrets.compare_digest` so the
response time does not reveal how much of a guessed token was right.
"""

from __future__ import annotations

from collections.abc import Iterable
import secrets
from typing import Any


def constant_time_compare(value1: str, value2: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks.

    Args:
        value1: First string.
        value2: Second string.

    Returns:
        ``True`` when both strings are identical.
    """
    return secrets.compare_digest(value1.encode("utf-8"), value2.encode("utf-8"))


def matches_any_token(credential: str | None, tokens: Iterable[str]) -> bool:
    """Return ``True`` when *credential* equals one of *tokens*.

    Every configured token is compared, even after a match, so the time
    taken depends only on the number of tokens.  An empty credential or an
    empty token list never matches.

    Example::

        matches_any_token(request.headers.get("x-site-bypass"), config.bypass_tokens)
    """
    if not credential:
        return False
    matched = False
    for token in tokens:
        if token and constant_time_compare(credential, token):
            matched = True
    return matched


def generate_bypass_token(byte_length: int = 32) -> str:
    """Generate a URL-safe bypass token suitable for ``bypass_tokens``.

    Example::

        SITEGATE_BYPASS_TOKENS='["<output of generate_bypass_token()>"]'
    """
    return secrets.token_urlsafe(byte_length)


def mask_sensitive_data(
    data: dict[str, Any],
    sensitive_keys: list[str] | None = None,
    mask: str = "***MASKED***",
) -> dict[str, Any]:
    """Return a copy of *data* with sensitive values replaced by *mask*.

    Key matching is case-insensitive substring search.

    Example::

        mask_sensitive_data({"domain": "a.example.com", "bypass": "s3cr3t"})
        # → {"domain": "a.example.com", "bypass": "***MASKED***"}
    """
    if sensitive_keys is None:
        sensitive_keys = [
            "password",
            "secret",
            "token",
            "bypass",
            "credential",
            "database_url",
            "cookie",
        ]

    result = dict(data)
    for key in result:
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in sensitive_keys):
            result[key] = mask
    return result


__all__ = [
    "constant_time_compare",
    "generate_bypass_token",
    "mask_sensitive_data",
    "matches_any_token",
]
