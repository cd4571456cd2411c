"""The user query service behind the gateway's gRPC samples, with a JSON front."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

MSG_USER_NOT_FOUND = "user not found"
MSG_USER_QUERY_SUCCESSFULLY = "user(s) query successfully"
MSG_RECEIVE = "receive"

SERVICE_PATH = "/provider.UserProvider/GetUser"


@dataclass
class GrpcUser:
    """A user as carried in the service's messages."""

    user_id: int = 0
    name: str = ""


def _user_dict(user: Optional[GrpcUser]) -> Optional[dict]:
    if user is None:
        return None
    data: dict = {}
    if user.user_id:
        data["userId"] = user.user_id
    if user.name:
        data["name"] = user.name
    return data


@dataclass
class GetUserResponse:
    """Reply to a user query."""

    message: str = ""
    users: list[Optional[GrpcUser]] = field(default_factory=list)

    def to_dict(self) -> dict:
        """JSON form with empty fields left out."""
        data: dict = {}
        if self.message:
            data["message"] = self.message
        if self.users:
            data["users"] = [_user_dict(user) for user in self.users]
        return data


class UserQueryService:
    """Answers user queries from an in-memory table keyed by user id."""

    def __init__(self, users: Optional[dict[int, GrpcUser]] = None) -> None:
        self.users: dict[int, GrpcUser] = dict(users) if users else {}

    def get_user(self, user_id: int = 0) -> GetUserResponse:
        """Id 0 returns users 1 and 2; any other id returns that user alone."""
        if user_id == 0:
            found = [self.users.get(1), self.users.get(2)]
        else:
            user = self.users.get(user_id)
            if user is None:
                return GetUserResponse(message=MSG_USER_NOT_FOUND)
            found = [user]
        return GetUserResponse(message=MSG_USER_QUERY_SUCCESSFULLY, users=found)


def init_users(service: UserQueryService) -> None:
    """Load the two sample users into ``service``."""
    service.users[1] = GrpcUser(user_id=1, name="Kenway")
    service.users[2] = GrpcUser(user_id=2, name="Ken")


class SlowUserService:
    """A service that takes a while to answer, for graceful-shutdown checks."""

    def __init__(
        self, delay: float = 3.0, sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self.delay = delay
        self._sleep = sleep

    def get_user(self, user_id: int = 0) -> GetUserResponse:
        self._sleep(self.delay)
        return GetUserResponse(message=MSG_RECEIVE)


class _UserService(Protocol):
    def get_user(self, user_id: int = 0) -> GetUserResponse: ...


def _respond(start_response, status: str, payload: dict) -> list[bytes]:
    body = json.dumps(payload).encode("utf-8")
    start_response(
        status,
        [("Content-Type", "application/json"), ("Content-Length", str(len(body)))],
    )
    return [body]


def _read_body(environ) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return environ["wsgi.input"].read(length)


def user_query_app(service: _UserService):
    """A WSGI app that exposes ``service.get_user`` as JSON over HTTP.

    GET and POST on a path ending in ``/provider.UserProvider/GetUser`` are
    served; a POST body may carry ``{"userId": n}``.
    """

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if not path.endswith(SERVICE_PATH):
            return _respond(start_response, "404 Not Found", {"message": "not found"})
        method = environ.get("REQUEST_METHOD", "GET").upper()
        if method not in ("GET", "POST"):
            return _respond(
                start_response, "405 Method Not Allowed", {"message": "method not allowed"}
            )
        raw = _read_body(environ)
        user_id = 0
        if raw.strip():
            try:
                request = json.loads(raw)
            except ValueError as exc:
                return _respond(start_response, "400 Bad Request", {"message": str(exc)})
            if not isinstance(request, dict):
                return _respond(
                    start_response, "400 Bad Request", {"message": "request must be an object"}
                )
            user_id = request.get("userId", 0)
            if isinstance(user_id, bool) or not isinstance(user_id, int):
                return _respond(
                    start_response, "400 Bad Request", {"message": "userId must be an integer"}
                )
        response = service.get_user(user_id)
        return _respond(start_response, "200 OK", response.to_dict())

    return app