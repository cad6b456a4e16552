"""URL validation helpers for request targets and proxies."""

from __future__ import annotations

from urllib.parse import urlparse

import httpx

from .exceptions import UrlError

PROXY_SCHEMES = {"http", "https", "socks5", "socks5h"}


def append_query(uri: str, encoded: str) -> str:
    """Append an encoded query string to ``uri``.

    A URI that already carries a query gets the new pairs joined with ``&``.
    """
    if not encoded:
        return uri
    base, hash_sign, fragment = uri.partition("#")
    separator = "&" if "?" in base else "?"
    if base.endswith(("?", "&")):
        separator = ""
    return f"{base}{separator}{encoded}{hash_sign}{fragment}"


def parse_request_url(uri: str) -> httpx.URL:
    if "\x00" in uri:
        raise UrlError(f"Invalid URL {uri!r}")
    try:
        url = httpx.URL(uri)
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise UrlError(f"Invalid URL {uri!r}", cause=exc) from exc
    if url.scheme not in {"http", "https"} or not url.host:
        raise UrlError(f"Unsupported URL {uri!r}: scheme and host are required")
    return url


def parse_proxy_url(proxy: str) -> httpx.URL:
    """Validate a proxy URL, keeping any credentials it carries."""
    parsed = urlparse(proxy)
    if not parsed.scheme or not parsed.netloc:
        raise UrlError(f"Proxy URL {proxy!r} must include scheme and host")
    if parsed.scheme not in PROXY_SCHEMES:
        raise UrlError(f"Unsupported proxy scheme: {parsed.scheme}")
    try:
        return httpx.URL(proxy)
    except (httpx.InvalidURL, ValueError) as exc:
        raise UrlError(f"Invalid proxy URL {proxy!r}", cause=exc) from exc


def sanitize_url(url: httpx.URL | str) -> str:
    """Render a URL with its password redacted, for log lines."""
    url = httpx.URL(str(url))
    if url.password:
        url = url.copy_with(password="****")
    return str(url)
