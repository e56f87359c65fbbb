"""
URL and canonical query string construction.
"""

import re
from collections.abc import Mapping
from urllib.parse import quote

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def url_encode(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent.

    Spaces become ``%20`` (never ``+``); only unreserved characters
    (letters, digits, ``-_.~``) are left as is.
    """
    return quote(value, safe="-_.~")


def to_canonical_query_string(params: Mapping[str, str] | None) -> str:
    """Build a deterministic query string from unordered parameters.

    Every key and non-empty value is encoded separately, tokens are sorted
    by their encoded form and joined with ``&``. Keys with an empty value
    are emitted as a bare ``key``. The result does not depend on the
    iteration order of ``params``.
    """
    if not params:
        return ""

    tokens = []
    for key, value in params.items():
        if not key:
            continue
        token = url_encode(key)
        if value:
            token += "=" + url_encode(value)
        tokens.append(token)

    # encoded tokens are pure ASCII, so str ordering equals byte ordering
    tokens.sort()
    return "&".join(tokens)


def host_to_url(host: str, protocol: str = "") -> str:
    """Prefix ``host`` with ``protocol://`` unless it already carries a scheme."""
    if _SCHEME_RE.match(host):
        return host
    return f"{protocol or 'http'}://{host}"


def get_url(
    protocol: str, host: str, uri_path: str, params: Mapping[str, str] | None = None
) -> str:
    """Get the full URL for a request."""
    uri_path = uri_path.lstrip("/")
    query = to_canonical_query_string(params).strip()

    base = f"{host_to_url(host, protocol).rstrip('/')}/{uri_path}"
    if not query:
        return base
    return f"{base}?{query}"
