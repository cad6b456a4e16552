"""Command line front-end for sending one request and printing the response."""

from __future__ import annotations

import argparse
import logging
import sys

from .client import Client
from .compression import CODECS, get_compression
from .exceptions import PolicyError, ReqkitError, TransportError
from .options import ClientOptions
from .request import Request
from .response import Response


def _split_pair(raw: str, separator: str) -> tuple[str, str]:
    name, sep, value = raw.partition(separator)
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME{separator}VALUE, got {raw!r}")
    return name.strip(), value.strip()


def _header(raw: str) -> tuple[str, str]:
    return _split_pair(raw, ":")


def _query(raw: str) -> tuple[str, str]:
    return _split_pair(raw, "=")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reqkit", description="Send one HTTP request.")
    parser.add_argument("method")
    parser.add_argument("url")
    parser.add_argument("-H", "--header", dest="headers", action="append", type=_header, default=[])
    parser.add_argument("-q", "--query", dest="query", action="append", type=_query, default=[])
    parser.add_argument("-d", "--data", default=None, help="request body; @path reads a file")
    parser.add_argument("--content-type", default="")
    parser.add_argument("--compress", choices=sorted(CODECS), default=None)
    parser.add_argument("--timeout", type=float, default=None)
    parser.add_argument("--connect-timeout", type=float, default=None)
    parser.add_argument("--max-redirects", type=int, default=None)
    parser.add_argument("--proxy", default=None)
    parser.add_argument("--insecure", action="store_true", default=None)
    parser.add_argument("--debug", action="store_true")
    return parser


def _print_response(response: Response) -> None:
    raw = response.raw
    if raw is None:
        return
    print(f"{raw.http_version} {raw.status_code} {raw.reason_phrase}")
    for name, value in raw.headers.raw:
        print(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    print()
    if response.body is not None:
        with response.body as body:
            sys.stdout.write(body.text())
        print()


def _main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    body = args.data
    if body is not None and body.startswith("@"):
        with open(body[1:], "rb") as fp:
            body = fp.read()

    request = Request(
        method=args.method.upper(),
        uri=args.url,
        body=body,
        query=args.query or None,
        content_type=args.content_type,
        compression=get_compression(args.compress) if args.compress else None,
        show_debug=args.debug,
        headers=list(args.headers),
    )
    options = ClientOptions(
        timeout=args.timeout,
        insecure=args.insecure,
        max_redirects=args.max_redirects,
        proxy=args.proxy,
    )

    try:
        with Client(options) as client:
            if args.connect_timeout is not None:
                client.set_connect_timeout(args.connect_timeout)
            response = client.dispatch(request)
            _print_response(response)
    except PolicyError as exc:
        if exc.response is not None:
            _print_response(exc.response)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except TransportError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2 if exc.is_timeout() else 1
    except ReqkitError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    raise SystemExit(_main())
