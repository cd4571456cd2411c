"""Plain HTTP user backends used by the gateway's HTTP samples."""

from __future__ import annotations

import argparse
import json
import logging
import random
import string
import threading
from dataclasses import dataclass, field
from datetime import datetime
from socketserver import ThreadingMixIn
from typing import Optional
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIServer, make_server

from pixiu_samples.userdb import SEED_TIME, ZERO_TIME, _format_time

logger = logging.getLogger(__name__)

JSON_UTF8 = "application/json;charset=UTF-8"
LETTERS = string.ascii_lowercase + string.ascii_uppercase

USER_PATH = "/user/"
TRIPLE_USER_PATH = "/com.dubbogo.pixiu.TripleUserService/GetUserById"

EXIST_BODY = b'{"message":"data is exist"}'
NOT_FOUND_BODY = b"404 page not found\n"


@dataclass
class SimpleUser:
    """A user record; every field appears in its dict form."""

    id: str = ""
    name: str = ""
    age: int = 0
    time: datetime = field(default_factory=lambda: ZERO_TIME)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "time": _format_time(self.time),
        }


class SimpleUserDB:
    """Users keyed by name; adding a user replaces any with the same name."""

    def __init__(self) -> None:
        self._users: dict[str, SimpleUser] = {}
        self._lock = threading.Lock()

    def add(self, user: SimpleUser) -> bool:
        with self._lock:
            self._users[user.name] = user
            return True

    def get(self, name: str) -> Optional[SimpleUser]:
        with self._lock:
            return self._users.get(name)


def seeded_simple_db() -> SimpleUserDB:
    """Return a store holding the two sample users."""
    db = SimpleUserDB()
    db.add(SimpleUser(id="0001", name="tc", age=18, time=SEED_TIME))
    db.add(SimpleUser(id="0002", name="ic", age=88, time=SEED_TIME))
    return db


def rand_seq(n: int, rng: Optional[random.Random] = None) -> str:
    """Return ``n`` random ASCII letters."""
    source = rng if rng is not None else random
    return "".join(source.choice(LETTERS) for _ in range(n))


def _encode(user: SimpleUser) -> bytes:
    return json.dumps(user.to_dict(), separators=(",", ":")).encode("utf-8")


def _parse_time(value) -> datetime:
    if not isinstance(value, str):
        raise ValueError("time must be an RFC 3339 string")
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        raise ValueError(f"time {value!r} carries no zone offset")
    return moment


def _user_from_json(raw: bytes) -> SimpleUser:
    data = json.loads(raw)
    user = SimpleUser()
    if data is None:
        return user
    if not isinstance(data, dict):
        raise ValueError("cannot unmarshal a non-object into a user")
    if "id" in data:
        if not isinstance(data["id"], str):
            raise ValueError("id must be a string")
        user.id = data["id"]
    if "name" in data:
        if not isinstance(data["name"], str):
            raise ValueError("name must be a string")
        user.name = data["name"]
    if "age" in data:
        age = data["age"]
        if isinstance(age, bool) or not isinstance(age, int):
            raise ValueError("age must be an integer")
        user.age = age
    if "time" in data:
        user.time = _parse_time(data["time"])
    return user


def _name_from_json(raw: bytes) -> str:
    data = json.loads(raw)
    if data is None:
        return ""
    if not isinstance(data, str):
        raise ValueError("cannot unmarshal a non-string into a name")
    return data


def _read_body(environ) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return environ["wsgi.input"].read(length)


def _reply(start_response, status: str, body: bytes, content_type: Optional[str] = None):
    headers = [("Content-Length", str(len(body)))]
    if content_type:
        headers.insert(0, ("Content-Type", content_type))
    start_response(status, headers)
    return [body]


def _store_new(store: SimpleUserDB, user: SimpleUser, rand, prefix: bytes, start_response):
    user.id = rand_seq(5, rand)
    if store.add(user):
        return _reply(start_response, "200 OK", prefix + _encode(user), JSON_UTF8)
    return _reply(start_response, "200 OK", prefix)


def user_app(db: Optional[SimpleUserDB] = None, rng: Optional[random.Random] = None):
    """WSGI app serving ``/user/``: POST creates a user, GET looks one up.

    A parse error in a POST body is written to the response and the request
    goes on with an empty user, as the original backend did.
    """
    store = db if db is not None else seeded_simple_db()
    rand = rng if rng is not None else random.Random()

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if not path.startswith(USER_PATH):
            return _reply(start_response, "404 Not Found", NOT_FOUND_BODY, "text/plain; charset=utf-8")
        method = environ.get("REQUEST_METHOD", "GET").upper()
        if method == "POST":
            prefix = b""
            try:
                user = _user_from_json(_read_body(environ))
            except ValueError as exc:
                prefix = str(exc).encode("utf-8")
                user = SimpleUser()
            if store.get(user.name) is not None:
                return _reply(start_response, "200 OK", prefix + EXIST_BODY, JSON_UTF8)
            return _store_new(store, user, rand, prefix, start_response)
        if method == "GET":
            name = path[len(USER_PATH):].split("/")[0]
            if name:
                logger.info("paths: %s", name)
            else:
                query = parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)
                name = query.get("name", [""])[0]
            found = store.get(name)
            if found is not None:
                return _reply(start_response, "200 OK", _encode(found), JSON_UTF8)
            return _reply(start_response, "404 Not Found", b"")
        return _reply(start_response, "200 OK", b"")

    return app


def triple_user_app(db: Optional[SimpleUserDB] = None, rng: Optional[random.Random] = None):
    """WSGI app for the triple proxy sample's ``GetUserById`` endpoint.

    A POST body holds a JSON string name. A known name answers "data is
    exist"; otherwise a new user with a random id is stored and returned.
    """
    store = db if db is not None else seeded_simple_db()
    rand = rng if rng is not None else random.Random()

    def app(environ, start_response):
        if environ.get("PATH_INFO", "") != TRIPLE_USER_PATH:
            return _reply(start_response, "404 Not Found", NOT_FOUND_BODY, "text/plain; charset=utf-8")
        if environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            return _reply(start_response, "200 OK", b"")
        prefix = b""
        try:
            name = _name_from_json(_read_body(environ))
        except ValueError as exc:
            prefix = str(exc).encode("utf-8")
            name = ""
        if store.get(name) is not None:
            return _reply(start_response, "200 OK", prefix + EXIST_BODY, JSON_UTF8)
        return _store_new(store, SimpleUser(), rand, prefix, start_response)

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def main(argv=None) -> int:
    """Serve one of the sample user backends until interrupted."""
    parser = argparse.ArgumentParser(description="Sample HTTP user backend.")
    parser.add_argument("service", nargs="?", choices=("user", "triple"), default="user")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    if args.service == "user":
        app, host, port = user_app(), "", 1314
    else:
        app, host, port = triple_user_app(), "127.0.0.1", 20001
    if args.host is not None:
        host = args.host
    if args.port is not None:
        port = args.port

    logging.basicConfig(level=logging.INFO)
    logger.info("Starting sample server ...")
    try:
        with make_server(host, port, app, server_class=_ThreadingWSGIServer) as server:
            server.serve_forever()
    except OSError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0