"""In-memory user store and the user provider service built on it."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, ClassVar, Optional, TextIO

VERSION = "2.7.5"

SEED_TIME = datetime(2021, 8, 1, 10, 8, 41, tzinfo=timezone.utc)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_GREEN_ON_BLACK = "\033[32;40m"
_RESET = "\033[0m"


def _format_time(moment: datetime) -> str:
    """Render a datetime as RFC 3339 with trailing fractional zeros trimmed."""
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if moment.year < 1000:
        text = f"{moment.year:04d}" + text[text.index("-"):]
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass
class User:
    """A user record; zero-valued fields are left out of its dict form."""

    JAVA_CLASS: ClassVar[str] = "com.dubbogo.pixiu.User"

    id: str = ""
    code: int = 0
    name: str = ""
    age: int = 0
    time: datetime = field(default_factory=lambda: ZERO_TIME)

    def to_dict(self) -> dict:
        data: dict = {}
        if self.id:
            data["id"] = self.id
        if self.code:
            data["code"] = self.code
        if self.name:
            data["name"] = self.name
        if self.age:
            data["age"] = self.age
        data["time"] = _format_time(self.time)
        return data

    def java_class_name(self) -> str:
        return self.JAVA_CLASS


class UserDB:
    """Users indexed both by name and by code."""

    def __init__(self) -> None:
        self._by_name: dict[str, User] = {}
        self._by_code: dict[int, User] = {}
        self._lock = threading.Lock()

    def add(self, user: User) -> bool:
        """Store a user whose name and code are both valid and unused."""
        with self._lock:
            if not user.name or user.code <= 0:
                return False
            if self._has_name(user.name) or self._has_code(user.code):
                return False
            return self.add_for_name(user) and self.add_for_code(user)

    def add_for_name(self, user: User) -> bool:
        if not user.name or user.name in self._by_name:
            return False
        self._by_name[user.name] = user
        return True

    def add_for_code(self, user: User) -> bool:
        if user.code <= 0 or user.code in self._by_code:
            return False
        self._by_code[user.code] = user
        return True

    def get_by_name(self, name: str) -> Optional[User]:
        with self._lock:
            return self._by_name.get(name)

    def get_by_code(self, code: int) -> Optional[User]:
        with self._lock:
            return self._by_code.get(code)

    def _has_name(self, name: str) -> bool:
        return bool(name) and name in self._by_name

    def _has_code(self, code: int) -> bool:
        return code > 0 and code in self._by_code


def seeded_user_db(timestamp: Optional[datetime] = None) -> UserDB:
    """Return a store holding the two sample users, stamped with ``timestamp``.

    Without a timestamp the current time is used.
    """
    stamp = timestamp if timestamp is not None else datetime.now(timezone.utc)
    db = UserDB()
    db.add(User(id="0001", code=1, name="tc", age=18, time=stamp))
    db.add(User(id="0002", code=2, name="ic", age=88, time=stamp))
    return db


class ProviderError(Exception):
    """Raised when a provider call fails."""


class UserProvider:
    """The user service exposed to the gateway."""

    def __init__(
        self,
        db: UserDB,
        reference_name: str = "UserProvider",
        *,
        timeout_delay: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        out: Optional[TextIO] = None,
    ) -> None:
        self.db = db
        self.reference_name = reference_name
        self.timeout_delay = timeout_delay
        self._sleep = sleep
        self._out = out

    def _log(self, message: str) -> None:
        stream = self._out if self._out is not None else sys.stdout
        stream.write(f"{_GREEN_ON_BLACK}{message}{_RESET}\n")

    def create_user(self, user: Optional[User]) -> User:
        self._log(f"Req CreateUser data:{user!r}")
        if user is None:
            raise ProviderError("not found")
        if self.db.get_by_name(user.name) is not None:
            raise ProviderError("data is exist")
        if self.db.add(user):
            return user
        raise ProviderError("add error")

    def get_user_by_name(self, name: str) -> Optional[User]:
        self._log(f"Req GetUserByName name:{name!r}")
        found = self.db.get_by_name(name)
        if found is not None:
            self._log(f"Req GetUserByName result:{found!r}")
        return found

    def get_user_by_code(self, code: int) -> Optional[User]:
        self._log(f"Req GetUserByCode name:{code!r}")
        found = self.db.get_by_code(code)
        if found is not None:
            self._log(f"Req GetUserByCode result:{found!r}")
        return found

    def get_user_timeout(self, name: str) -> Optional[User]:
        """Look a user up by name after a delay longer than the gateway waits."""
        self._log(f"Req GetUserByName name:{name!r}")
        self._sleep(self.timeout_delay)
        found = self.db.get_by_name(name)
        if found is not None:
            self._log(f"Req GetUserByName result:{found!r}")
        return found

    def get_user_by_name_and_age(self, name: str, age: int) -> Optional[User]:
        """Look a user up by name; the age only affects what is logged."""
        self._log(f"Req GetUserByNameAndAge name:{name}, age:{age}")
        found = self.db.get_by_name(name)
        if found is not None and found.age == age:
            self._log(f"Req GetUserByNameAndAge result:{found!r}")
        return found

    def update_user(self, user: User) -> bool:
        self._log(f"Req UpdateUser data:{user!r}")
        return self._apply_update(user.name, user)

    def update_user_by_name(self, name: str, user: User) -> bool:
        self._log(f"Req UpdateUserByName data:{user!r}")
        return self._apply_update(name, user)

    def _apply_update(self, name: str, changes: User) -> bool:
        stored = self.db.get_by_name(name)
        if stored is None:
            raise ProviderError("not found")
        if changes.id:
            stored.id = changes.id
        if changes.age >= 0:
            stored.age = changes.age
        return True

    def reference(self) -> str:
        return self.reference_name