from __future__ import annotations

import socket
import time

import pytest

from reqkit import Client, ClientOptions, Request
from reqkit.exceptions import TransportError


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_fast_response_within_timeout(server_url: str) -> None:
    with Client(ClientOptions(timeout=2.0)) as client:
        response = client.dispatch(Request(uri=f"{server_url}/fast"))
        assert response.status_code == 200
        assert response.body.read() == b"ok"


def test_slow_response_is_a_timeout(server_url: str) -> None:
    began = time.monotonic()
    with Client(ClientOptions(timeout=0.3)) as client:
        with pytest.raises(TransportError) as exc_info:
            client.dispatch(Request(uri=f"{server_url}/slow"))
    elapsed = time.monotonic() - began

    assert exc_info.value.is_timeout()
    assert 0.2 <= elapsed < 3.0
    assert exc_info.value.response.raw is None


def test_refused_connection_is_not_a_timeout() -> None:
    with Client(ClientOptions(timeout=2.0)) as client:
        with pytest.raises(TransportError) as exc_info:
            client.dispatch(Request(uri=f"http://127.0.0.1:{_unused_port()}/"))

    assert not exc_info.value.is_timeout()


def test_connect_timeout_uses_the_dialer_window() -> None:
    with Client(ClientOptions(timeout=5.0)) as client:
        client.set_connect_timeout(0.2)
        began = time.monotonic()
        with pytest.raises(TransportError) as exc_info:
            # private address with nothing listening; SYNs go unanswered
            client.dispatch(Request(uri="http://10.255.255.1/"))
    elapsed = time.monotonic() - began

    if not exc_info.value.is_timeout():
        pytest.skip(f"no route to a non-routable address here: {exc_info.value}")
    assert 0.15 <= elapsed < 2.0
