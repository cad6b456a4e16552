"""Client construction options and their defaults."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from http.cookiejar import CookieJar
from typing import Mapping

DEFAULT_DIAL_TIMEOUT = 1.0
DEFAULT_DIAL_KEEP_ALIVE = 30.0
DEFAULT_CLIENT_TIMEOUT = 5.0
DEFAULT_CLIENT_MAX_REDIRECTS = 0
DEFAULT_CLIENT_INSECURE = False


@dataclass(frozen=True)
class ClientOptions:
    """Options for creating a :class:`reqkit.Client`.

    ``None`` marks a field as unset; :meth:`merge` fills unset fields from
    the defaults. An explicit ``timeout=0`` is kept and makes the client
    refuse to dispatch.
    """

    timeout: float | None = None
    insecure: bool | None = None
    max_redirects: int | None = None
    cookie_jar: CookieJar | None = None
    proxy: str | None = None
    proxy_connect_headers: Mapping[str, str] | None = None
    max_idle_conns_per_host: int | None = None

    def merge(self, defaults: "ClientOptions") -> "ClientOptions":
        """Return these options with every unset field taken from ``defaults``."""
        updates = {}
        for option in fields(self):
            if getattr(self, option.name) is None:
                updates[option.name] = getattr(defaults, option.name)
        return replace(self, **updates)

    def with_proxy_connect_header(self, name: str, value: str) -> "ClientOptions":
        headers = dict(self.proxy_connect_headers or {})
        headers[name] = value
        return replace(self, proxy_connect_headers=headers)


DEFAULT_CLIENT_OPTIONS = ClientOptions(
    timeout=DEFAULT_CLIENT_TIMEOUT,
    insecure=DEFAULT_CLIENT_INSECURE,
    max_redirects=DEFAULT_CLIENT_MAX_REDIRECTS,
)


@dataclass(frozen=True)
class Dialer:
    """Connection-level settings, separate from the overall request timeout."""

    timeout: float = DEFAULT_DIAL_TIMEOUT
    keep_alive: float = DEFAULT_DIAL_KEEP_ALIVE
