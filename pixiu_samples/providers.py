"""Ready-made user providers for the gateway's proxy samples.

The dubbo and triple sample backends all serve the same user service. They
differ only in the name the service is registered under and in the Java class
name reported for the user objects they exchange.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pixiu_samples.userdb import SEED_TIME, User, UserDB, UserProvider


class DubboServiceUser(User):
    """User record exchanged with the dubbo backend of the triple proxy sample."""

    JAVA_CLASS = "com.dubbogo.pixiu.DubboUserService"


class TripleServiceUser(User):
    """User record exchanged with the triple backend of the triple proxy sample."""

    JAVA_CLASS = "com.dubbogo.pixiu.TripleUserService"


@dataclass(frozen=True)
class ProviderProfile:
    """How one backend registers the user service."""

    reference: str
    user_type: type = User

    @property
    def java_class_name(self) -> str:
        return self.user_type.JAVA_CLASS


DUBBO_HTTP = ProviderProfile("UserProvider", User)
DUBBO_TRIPLE = ProviderProfile("DubboUserProvider", DubboServiceUser)
TRIPLE = ProviderProfile("TripleUserProvider", TripleServiceUser)


def _seeded_db(profile: ProviderProfile) -> UserDB:
    db = UserDB()
    make = profile.user_type
    db.add(make(id="0001", code=1, name="tc", age=18, time=SEED_TIME))
    db.add(make(id="0002", code=2, name="ic", age=88, time=SEED_TIME))
    return db


def make_provider(profile: ProviderProfile, db: Optional[UserDB] = None) -> UserProvider:
    """Build a provider for ``profile``.

    Without a store, one holding the two sample users is created, with user
    records of the profile's type.
    """
    store = db if db is not None else _seeded_db(profile)
    return UserProvider(store, profile.reference)


def dubbo_http_provider(db: Optional[UserDB] = None) -> UserProvider:
    """The dubbo backend behind the HTTP proxy sample."""
    return make_provider(DUBBO_HTTP, db)


def dubbo_triple_provider(db: Optional[UserDB] = None) -> UserProvider:
    """The dubbo backend behind the triple proxy sample."""
    return make_provider(DUBBO_TRIPLE, db)


def triple_provider(db: Optional[UserDB] = None) -> UserProvider:
    """The triple backend behind the triple proxy sample."""
    return make_provider(TRIPLE, db)