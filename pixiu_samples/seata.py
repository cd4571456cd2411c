"""Sample services for the gateway's distributed-transaction (TCC) demos.

Service A starts a global transaction and calls the "try" phase of service B
(accounts) and service C (inventory). B and C each expose try, confirm and
cancel endpoints.
"""

from __future__ import annotations

import argparse
import http
import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from socketserver import ThreadingMixIn
from typing import Callable, Optional
from wsgiref.simple_server import WSGIServer, make_server

logger = logging.getLogger(__name__)

XID_HEADER = "X_seata_xid"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
NOT_FOUND_BODY = b"404 page not found"

SERVICE_B_URL = "http://localhost:2047/service-b/try"
SERVICE_C_URL = "http://localhost:2048/service-c/try"

BEGIN_PATH = "/service-a/begin"
PHASES = {"try": "tried", "confirm": "confirmed", "cancel": "canceled"}

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass
class Account:
    """An account touched by the transaction."""

    id: int = 0
    amount: int = 0

    _JSON_FIELDS = (("id", "id"), ("Amount", "amount"))

    def to_dict(self) -> dict:
        return {"id": self.id, "Amount": self.amount}


@dataclass
class Inventory:
    """An inventory item touched by the transaction."""

    id: int = 0
    qty: int = 0

    _JSON_FIELDS = (("id", "id"), ("qty", "qty"))

    def to_dict(self) -> dict:
        return {"id": self.id, "qty": self.qty}


_KINDS = {"account": Account, "inventory": Inventory}
_DEFAULT_KIND = {"service-b": "account", "service-c": "inventory"}


def _json_type_name(value) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "null"


def _bind(record_type, raw: bytes):
    """Decode a JSON object into ``record_type``, matching keys case-insensitively."""
    if not raw.strip():
        raise ValueError("EOF")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValueError(str(exc)) from None
    record = record_type()
    if data is None:
        return record
    type_name = record_type.__name__
    if not isinstance(data, dict):
        raise ValueError(
            f"json: cannot unmarshal {_json_type_name(data)} into Go value of type main.{type_name}"
        )
    fields = {json_name.lower(): (json_name, attr) for json_name, attr in record_type._JSON_FIELDS}
    for key, value in data.items():
        match = fields.get(key.lower())
        if match is None or value is None:
            continue
        json_name, attr = match
        if (
            isinstance(value, bool)
            or not isinstance(value, int)
            or not _INT64_MIN <= value <= _INT64_MAX
        ):
            raise ValueError(
                f"json: cannot unmarshal {_json_type_name(value)} into Go struct field "
                f"{type_name}.{json_name} of type int64"
            )
        setattr(record, attr, value)
    return record


def _read_body(environ) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return environ["wsgi.input"].read(length)


def _send(start_response, status: str, body: bytes, content_type: str):
    start_response(status, [("Content-Type", content_type), ("Content-Length", str(len(body)))])
    return [body]


def _send_json(start_response, code: int, payload: dict):
    body = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    status = f"{code} {http.HTTPStatus(code).phrase}"
    return _send(start_response, status, body, JSON_CONTENT_TYPE)


def _not_found(start_response):
    return _send(start_response, "404 Not Found", NOT_FOUND_BODY, TEXT_CONTENT_TYPE)


def tcc_app(service: str = "service-b", kind: Optional[str] = None):
    """WSGI app with POST ``/<service>/try``, ``/confirm`` and ``/cancel``.

    ``kind`` is "account" or "inventory"; left out, it follows the service
    (B handles accounts, C inventory).
    """
    kind_name = kind if kind is not None else _DEFAULT_KIND.get(service)
    if kind_name not in _KINDS:
        raise ValueError(f"unknown record kind for {service!r}: {kind!r}")
    record_type = _KINDS[kind_name]
    routes = {f"/{service}/{phase}": phase for phase in PHASES}

    def app(environ, start_response):
        phase = routes.get(environ.get("PATH_INFO", ""))
        if phase is None or environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            return _not_found(start_response)
        try:
            record = _bind(record_type, _read_body(environ))
        except ValueError as exc:
            return _send_json(start_response, 400, {"success": False, "message": str(exc)})
        message = f"{kind_name} {record.id} {PHASES[phase]}!"
        if phase != "try":
            print(message)
        return _send_json(start_response, 200, {"success": True, "message": message})

    return app


def _default_opener(url: str, body: bytes, headers: dict):
    request = urllib.request.Request(url, data=body, headers=headers, method="POST")
    try:
        return urllib.request.urlopen(request)
    except urllib.error.HTTPError as exc:
        return exc


def _status_of(response) -> int:
    status = getattr(response, "status", None)
    return int(status if status is not None else response.code)


def _canonical(name: str) -> str:
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


_SKIPPED_HEADERS = {"Content-Length", "Transfer-Encoding", "Trailer"}


def _raw_response(response) -> bytes:
    """Serialise a received response, status line and headers included."""
    try:
        body = response.read()
    finally:
        close = getattr(response, "close", None)
        if close is not None:
            close()
    code = _status_of(response)
    reason = getattr(response, "reason", "") or ""
    if not reason:
        try:
            reason = http.HTTPStatus(code).phrase
        except ValueError:
            reason = ""
    lines = [f"HTTP/1.1 {code} {reason}".rstrip(" "), f"Content-Length: {len(body)}"]
    headers = getattr(response, "headers", None) or {}
    pairs = [(_canonical(name), value) for name, value in headers.items()]
    pairs = [(name, value) for name, value in pairs if name not in _SKIPPED_HEADERS]
    lines.extend(f"{name}: {value}" for name, value in sorted(pairs, key=lambda p: p[0]))
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head.encode("latin-1") + body


def begin_app(
    service_b_url: str = SERVICE_B_URL,
    service_c_url: str = SERVICE_C_URL,
    opener: Optional[Callable] = None,
):
    """WSGI app for POST ``/service-a/begin``.

    The transaction id header is passed on to the try calls of B and C.
    ``opener(url, body, headers)`` performs a call and returns a response
    with ``status``, ``reason``, ``headers`` and ``read()``. When B fails
    with a non-200 status, or C succeeds, that response is written verbatim
    as the body.
    """
    send = opener if opener is not None else _default_opener

    def app(environ, start_response):
        if (
            environ.get("PATH_INFO", "") != BEGIN_PATH
            or environ.get("REQUEST_METHOD", "GET").upper() != "POST"
        ):
            return _not_found(start_response)
        xid = environ.get("HTTP_X_SEATA_XID", "")
        print(f"xid {xid}")
        account = Account(id=1000024549, amount=200)
        inventory = Inventory(id=1000000005, qty=2)
        headers = {XID_HEADER: xid}

        def call(url: str, record):
            body = json.dumps(record.to_dict(), separators=(",", ":")).encode("utf-8")
            return send(url, body, dict(headers))

        try:
            result1 = call(service_b_url, account)
        except (OSError, ValueError, http.client.HTTPException) as exc:
            return _send_json(start_response, 400, {"success": False, "message": str(exc)})
        if _status_of(result1) != 200:
            return _send(start_response, "200 OK", _raw_response(result1), TEXT_CONTENT_TYPE)

        try:
            result2 = call(service_c_url, inventory)
        except (OSError, ValueError, http.client.HTTPException) as exc:
            return _send_json(start_response, 400, {"success": False, "message": str(exc)})
        if _status_of(result2) == 200:
            return _send(start_response, "200 OK", _raw_response(result2), TEXT_CONTENT_TYPE)
        return _send_json(start_response, 400, {"success": False, "message": "there is a error"})

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


_PORTS = {"a": 8080, "b": 8081, "c": 8082}


def main(argv=None) -> int:
    """Serve service A, B or C until interrupted."""
    parser = argparse.ArgumentParser(description="TCC sample service.")
    parser.add_argument("service", nargs="?", choices=tuple(_PORTS), default="a")
    parser.add_argument("--host", default="")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--service-b-url", default=SERVICE_B_URL)
    parser.add_argument("--service-c-url", default=SERVICE_C_URL)
    args = parser.parse_args(argv)

    if args.service == "a":
        app = begin_app(args.service_b_url, args.service_c_url)
    else:
        app = tcc_app(f"service-{args.service}")
    port = args.port if args.port is not None else _PORTS[args.service]

    logging.basicConfig(level=logging.INFO)
    try:
        with make_server(args.host, port, app, server_class=_ThreadingWSGIServer) as server:
            server.serve_forever()
    except OSError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0