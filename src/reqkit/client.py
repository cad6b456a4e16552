"""Client that dispatches :class:`reqkit.Request` descriptions through httpx."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Callable, Mapping

import httpx

from .compression import Compression
from .context import Context
from .exceptions import (
    ConfigurationError,
    DeadlineExceeded,
    PolicyError,
    ReqkitError,
    TransportError,
    is_timeout_error,
)
from .options import DEFAULT_CLIENT_OPTIONS, ClientOptions, Dialer
from .request import Request
from .response import Response
from .urls import parse_proxy_url, sanitize_url

logger = logging.getLogger(__name__)

USER_AGENT = "python-reqkit/0.1.0"
DEFAULT_MAX_IDLE_CONNS = 20

RedirectPolicy = Callable[[httpx.Request, list[httpx.Request]], None]


class UseLastResponse(Exception):
    """Raised by a redirect policy to stop and return the current response."""


def never_follow(request: httpx.Request, via: list[httpx.Request]) -> None:
    raise UseLastResponse()


def limit_redirects(max_redirects: int) -> RedirectPolicy:
    """Policy that follows at most ``max_redirects`` hops.

    ``via`` holds the requests already sent, so ``len(via)`` counts prior
    hops and excludes the one about to be made.
    """

    def check_redirect(request: httpx.Request, via: list[httpx.Request]) -> None:
        if len(via) > max_redirects:
            raise PolicyError("redirecting limit reached")

    return check_redirect


def dump_request(wire: httpx.Request) -> str:
    """Render a wire request (request line, headers, body) for diagnostics."""
    lines = [f"{wire.method} {wire.url.raw_path.decode('ascii')} HTTP/1.1"]
    for name, value in wire.headers.raw:
        lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    body = wire.read()
    return "\r\n".join(lines) + "\r\n\r\n" + body.decode("utf-8", errors="replace")


def _discard_late_response(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is None:
        future.result().close()
    elif isinstance(exc, ReqkitError) and exc.response is not None:
        exc.response.close()


class Client:
    """Synchronous HTTP client.

    Configuration (``timeout``, the dialer, the redirect policy and the
    proxy) may be changed after construction. A single client can be shared
    between threads; changing its configuration while requests are in
    flight is up to the caller to coordinate.
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.options = (options or ClientOptions()).merge(DEFAULT_CLIENT_OPTIONS)
        self.timeout: float = self.options.timeout
        self.dialer = Dialer()
        self.check_redirect: RedirectPolicy = never_follow
        self.cookie_jar = self.options.cookie_jar
        if self.cookie_jar is None:
            # without a jar nothing is stored or replayed
            self.cookie_jar = CookieJar(DefaultCookiePolicy(allowed_domains=[]))
        self.transport = transport or self._build_transport()
        self._httpx = self._build_httpx_client()
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

        if self.options.proxy:
            self.set_proxy(self.options.proxy, self.options.proxy_connect_headers)
        if self.options.max_redirects > 0:
            self.set_limit_redirect(self.options.max_redirects)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._httpx.close()
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None

    def _build_transport(self, proxy: httpx.Proxy | None = None) -> httpx.HTTPTransport:
        limits = httpx.Limits(
            max_keepalive_connections=self.options.max_idle_conns_per_host or DEFAULT_MAX_IDLE_CONNS,
            keepalive_expiry=self.dialer.keep_alive,
        )
        return httpx.HTTPTransport(
            verify=not self.options.insecure,
            limits=limits,
            proxy=proxy,
            trust_env=False,
        )

    def _build_httpx_client(self) -> httpx.Client:
        return httpx.Client(
            transport=self.transport,
            cookies=self.cookie_jar,
            follow_redirects=False,
            trust_env=False,
        )

    def set_proxy(self, proxy_url: str, proxy_headers: Mapping[str, str] | None = None) -> None:
        """Route requests through ``proxy_url``.

        Only the built-in HTTP transport knows about proxies; a client that
        was given another transport keeps it and logs a warning.
        """
        url = parse_proxy_url(proxy_url)
        if not isinstance(self.transport, httpx.HTTPTransport):
            logger.warning(
                "transport %s does not support proxies, ignoring %s",
                type(self.transport).__name__,
                sanitize_url(url),
            )
            return

        previous = self._httpx
        self.transport = self._build_transport(httpx.Proxy(url, headers=dict(proxy_headers or {})))
        self._httpx = self._build_httpx_client()
        previous.close()
        logger.debug("proxy set to %s", sanitize_url(url))

    def set_limit_redirect(self, max_redirects: int) -> None:
        if max_redirects <= 0:
            self.check_redirect = never_follow
        else:
            self.check_redirect = limit_redirects(max_redirects)

    def set_connect_timeout(self, timeout: float) -> None:
        """Change how long establishing a connection may take."""
        self.dialer = replace(self.dialer, timeout=timeout)

    def _check(self) -> None:
        if not self.timeout or self.timeout < 0:
            raise ConfigurationError("client without timeout")

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="reqkit-dispatch")
            return self._executor

    def _hop_timeout(self, deadline: float) -> dict[str, Any]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceeded("request deadline exceeded")
        return httpx.Timeout(remaining, connect=min(self.dialer.timeout, remaining)).as_dict()

    def _attach_cookies(self, wire: httpx.Request) -> None:
        explicit = wire.headers.get("Cookie")
        if explicit is not None:
            del wire.headers["Cookie"]
        self._httpx.cookies.set_cookie_header(wire)
        stored = wire.headers.get("Cookie")
        if explicit is not None:
            wire.headers["Cookie"] = f"{explicit}; {stored}" if stored else explicit

    def _transport_error(self, exc: BaseException, wire: httpx.Request) -> TransportError:
        detail = str(exc) or type(exc).__name__
        return TransportError(
            f'{wire.method} "{sanitize_url(wire.url)}": {detail}',
            timeout=is_timeout_error(exc),
            request=wire,
            response=Response(None, "", None, wire),
            cause=exc,
        )

    def _follow(self, wire: httpx.Request, compression: Compression | None, deadline: float) -> Response:
        via: list[httpx.Request] = []
        history: list[httpx.Response] = []
        hop = wire
        while True:
            try:
                hop.extensions["timeout"] = self._hop_timeout(deadline)
                raw = self._httpx.send(hop, stream=True, follow_redirects=False)
            except (httpx.HTTPError, httpx.StreamError, DeadlineExceeded) as exc:
                raise self._transport_error(exc, wire) from exc

            next_hop = raw.next_request
            if next_hop is None:
                return Response.wrap(raw, wire, compression, history, deadline)

            via.append(hop)
            try:
                self.check_redirect(next_hop, via)
            except UseLastResponse:
                return Response.wrap(raw, wire, compression, history, deadline)
            except PolicyError as exc:
                exc.request = wire
                exc.response = Response.wrap(raw, wire, compression, history, deadline)
                raise

            raw.close()
            history.append(raw)
            hop = next_hop

    def _follow_with_context(
        self,
        wire: httpx.Request,
        compression: Compression | None,
        deadline: float,
        context: Context,
    ) -> Response:
        reason = context.err()
        if reason is not None:
            raise self._transport_error(reason, wire)

        finished = threading.Event()
        future = self._pool().submit(self._follow, wire, compression, deadline)
        future.add_done_callback(lambda _: finished.set())
        context.add_cancel_callback(finished.set)
        try:
            finished.wait(context.remaining())
        finally:
            context.remove_cancel_callback(finished.set)

        if future.done():
            return future.result()
        future.add_done_callback(_discard_late_response)
        raise self._transport_error(context.err() or DeadlineExceeded("context deadline exceeded"), wire)

    def dispatch(self, request: Request, context: Context | None = None) -> Response:
        """Build ``request``, send it and wrap the result.

        Raises ``ConfigurationError``, ``EncodingError`` or ``UrlError``
        before anything is sent. ``TransportError`` and ``PolicyError``
        carry the best-effort :class:`Response` on ``.response``.
        """
        self._check()
        wire = request.build()

        if request.show_debug:
            logger.info("%s", dump_request(wire))

        if request.on_before_request is not None:
            request.on_before_request(request, wire)

        wire.headers.setdefault("User-Agent", USER_AGENT)
        self._attach_cookies(wire)

        context = context or request.context
        deadline = time.monotonic() + self.timeout
        if context is not None and context.deadline is not None:
            deadline = min(deadline, context.deadline)

        try:
            if context is None:
                response = self._follow(wire, request.compression, deadline)
            else:
                response = self._follow_with_context(wire, request.compression, deadline, context)
        except (TransportError, PolicyError) as exc:
            logger.debug("%s %s failed: %s", wire.method, sanitize_url(wire.url), exc)
            raise

        logger.debug("%s %s -> %s", wire.method, sanitize_url(wire.url), response.status_code)
        return response

    def request(self, method: str, uri: str, **fields: Any) -> Response:
        """Shortcut for ``dispatch(Request(method=method, uri=uri, **fields))``."""
        return self.dispatch(Request(method=method, uri=uri, **fields))
