"""Slow backends that let the gateway's graceful shutdown be observed."""

from __future__ import annotations

import argparse
import logging
import time
from socketserver import ThreadingMixIn
from typing import Callable
from wsgiref.simple_server import WSGIServer, make_server

from pixiu_samples.simple_http import JSON_UTF8

logger = logging.getLogger(__name__)

RECEIVE_BODY = b'{"message":"receive"}'

HTTP_PATH = "/user/"
DUBBO_PATH = "/com.dubbogo.pixiu.TripleUserService/TestByDubbo"
TRIPLE_PATH = "/com.dubbogo.pixiu.TripleUserService/TestByTriple"

SERVICES = {
    "http": ("", 1314, HTTP_PATH),
    "dubbo": ("", 20001, DUBBO_PATH),
    "triple": ("127.0.0.1", 20001, TRIPLE_PATH),
}


def slow_app(path: str, delay: float = 3.0, sleep: Callable[[float], None] = time.sleep):
    """WSGI app that waits ``delay`` seconds, then answers ``{"message":"receive"}``.

    A path ending in "/" matches everything below it; any other path must
    match exactly.
    """

    def matches(requested: str) -> bool:
        return requested.startswith(path) if path.endswith("/") else requested == path

    def app(environ, start_response):
        if not matches(environ.get("PATH_INFO", "")):
            body = b"404 page not found\n"
            start_response(
                "404 Not Found",
                [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(body)))],
            )
            return [body]
        sleep(delay)
        start_response(
            "200 OK",
            [("Content-Type", JSON_UTF8), ("Content-Length", str(len(RECEIVE_BODY)))],
        )
        return [RECEIVE_BODY]

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def main(argv=None) -> int:
    """Serve one of the slow backends until interrupted."""
    parser = argparse.ArgumentParser(description="Slow backend for shutdown checks.")
    parser.add_argument("service", nargs="?", choices=tuple(SERVICES), default="http")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--delay", type=float, default=3.0)
    args = parser.parse_args(argv)

    host, port, path = SERVICES[args.service]
    if args.host is not None:
        host = args.host
    if args.port is not None:
        port = args.port

    logging.basicConfig(level=logging.INFO)
    logger.info("Starting sample server ...")
    app = slow_app(path, args.delay)
    try:
        with make_server(host, port, app, server_class=_ThreadingWSGIServer) as server:
            server.serve_forever()
    except OSError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0