"""Host name normalisation and validation.

Every domain that becomes a cache key, a store query, or an invalidation
target passes through :func:`normalize_domain` so that the same site is
always addressed by the same string.

Key policy
----------
- Lower-cased, surrounding whitespace and a trailing dot removed.
- Only the first value of a comma-separated header is used
  (``X-Forwarded-Host: a.example.com, proxy.internal``).
- The port is **dropped** for public hosts (``shop.example.com:443`` and
  ``shop.example.com`` are the same site) and **kept** for loopback hosts
  (``localhost:3000`` and ``localhost:3001`` may serve different sites during
  development).
- Anything that is not a syntactically valid host normalises to ``""``.

Security model
--------------
Input length is capped *before* any regex runs to prevent ReDoS on
adversarially long ``Host`` headers.  All patterns are compiled once.
"""

from __future__ import annotations

from collections.abc import Iterable
import re

################################
# Compiled regular expressions #
################################

# One DNS label: alphanumeric at both ends, hyphens and underscores inside.
_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_\-]{0,61}[a-z0-9_])?$")

# IPv6 literal body without brackets: hex groups, colons, embedded IPv4.
_IPV6_RE = re.compile(r"^[0-9a-f:.]{2,45}$")

_PORT_RE = re.compile(r"^[0-9]{1,5}$")

# RFC 1035 total length, plus room for ":65535".
_MAX_INPUT_LEN: int = 260

#: Hosts whose port is part of the cache key by default.
DEFAULT_LOOPBACK_HOSTS: frozenset[str] = frozenset({"localhost", "127.0.0.1", "::1"})


###################
# Host validation #
###################


def validate_hostname(hostname: str) -> bool:
    """Return ``True`` if *hostname* (without port) is a valid DNS name or IP.

    Accepts dotted DNS names of up to 253 characters, IPv4 literals, and
    bracket-less IPv6 literals.

    Examples::

        validate_hostname("shop.example.com")   # True
        validate_hostname("localhost")          # True
        validate_hostname("::1")                # True
        validate_hostname("bad..example.com")   # False
        validate_hostname("-bad.example.com")   # False
    """
    if not hostname or not isinstance(hostname, str) or len(hostname) > 253:
        return False
    if ":" in hostname:
        return bool(_IPV6_RE.match(hostname))
    return all(_LABEL_RE.match(label) for label in hostname.split("."))


def split_host_port(host: str) -> tuple[str, str | None]:
    """Split a ``Host`` header value into ``(hostname, port)``.

    Brackets around IPv6 literals are removed from the hostname.  The port is
    ``None`` when absent.  No validation is performed.

    Examples::

        split_host_port("example.com:8080")  # ("example.com", "8080")
        split_host_port("[::1]:3000")        # ("::1", "3000")
        split_host_port("::1")               # ("::1", None)
    """
    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            return host, None
        rest = host[end + 1 :]
        port = rest[1:] if rest.startswith(":") else None
        return host[1:end], port
    if host.count(":") == 1:
        hostname, port = host.split(":", 1)
        return hostname, port
    return host, None


def normalize_domain(
    host: str | None,
    loopback_hosts: Iterable[str] = DEFAULT_LOOPBACK_HOSTS,
) -> str:
    """Return the canonical cache/store key for a ``Host`` header value.

    Args:
        host: Raw header value, possibly with port, whitespace, upper case,
            a trailing dot, or several comma-separated values.
        loopback_hosts: Host names (without brackets) whose port is retained.

    Returns:
        The normalised domain, or ``""`` when *host* is empty or invalid.

    Examples::

        normalize_domain("Shop.Example.com:443")  # "shop.example.com"
        normalize_domain("localhost:3000")        # "localhost:3000"
        normalize_domain("[::1]:3000")            # "[::1]:3000"
        normalize_domain("a.example.com, proxy")  # "a.example.com"
        normalize_domain("bad host")              # ""
    """
    if not host or not isinstance(host, str) or len(host) > _MAX_INPUT_LEN:
        return ""
    candidate = host.split(",", 1)[0].strip().lower()
    hostname, port = split_host_port(candidate)
    hostname = hostname.rstrip(".")
    if not validate_hostname(hostname):
        return ""
    if port is not None and not _PORT_RE.match(port):
        return ""

    display = f"[{hostname}]" if ":" in hostname else hostname
    if port is None or hostname not in set(loopback_hosts):
        return display
    return f"{display}:{port}"


__all__ = [
    "DEFAULT_LOOPBACK_HOSTS",
    "normalize_domain",
    "split_host_port",
    "validate_hostname",
]
