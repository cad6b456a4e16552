"""Error taxonomy shared by the request builder and the client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from .response import Response


class ReqkitError(Exception):
    """Base exception for every reqkit failure.

    Carries the wire request that was being prepared or sent, the
    best-effort response when the transport produced one, and the
    underlying exception when this error wraps another.
    """

    def __init__(
        self,
        message: str,
        *,
        request: httpx.Request | None = None,
        response: Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request = request
        self.response = response
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None or str(self.cause) in self.message:
            return self.message
        return f"{self.message}: {self.cause}"


class ConfigurationError(ReqkitError):
    """Raised when the client is set up in a way that can never dispatch."""


class EncodingError(ReqkitError):
    """Raised when a body or query value cannot be turned into bytes."""


class UrlError(ReqkitError):
    """Raised for malformed request or proxy URLs."""


class DecodeError(ReqkitError):
    """Raised when a codec or JSON decoder cannot read a body."""


class TransportError(ReqkitError):
    """Raised for connect, write and read failures."""

    def __init__(
        self,
        message: str,
        *,
        timeout: bool = False,
        request: httpx.Request | None = None,
        response: Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, request=request, response=response, cause=cause)
        self._timeout = timeout

    def is_timeout(self) -> bool:
        return self._timeout


class PolicyError(ReqkitError):
    """Raised when the redirect limit is exceeded.

    ``response`` holds the last hop that was actually reached.
    """


class ContextCancelled(Exception):
    """The dispatch context was cancelled by the caller."""


class DeadlineExceeded(TimeoutError):
    """The dispatch context ran past its deadline."""


def is_timeout_error(exc: BaseException | None) -> bool:
    """Report whether ``exc`` or the error it wraps is a timeout.

    Looks at the exception itself and one level below it, which is where
    httpx keeps the socket-level error it mapped.
    """
    for candidate in (exc, exc.__cause__ if exc is not None else None):
        if candidate is None:
            continue
        if isinstance(candidate, (httpx.TimeoutException, TimeoutError)):
            return True
        if isinstance(candidate, TransportError) and candidate.is_timeout():
            return True
    return False
