import pytest

from pixiu_samples.providers import (
    DUBBO_HTTP,
    DUBBO_TRIPLE,
    TRIPLE,
    ProviderProfile,
    dubbo_http_provider,
    dubbo_triple_provider,
    make_provider,
    triple_provider,
)
from pixiu_samples.userdb import ProviderError, User, UserDB


ALL_PROFILES = [DUBBO_HTTP, DUBBO_TRIPLE, TRIPLE]


@pytest.mark.parametrize(
    "factory, reference",
    [
        (dubbo_http_provider, "UserProvider"),
        (dubbo_triple_provider, "DubboUserProvider"),
        (triple_provider, "TripleUserProvider"),
    ],
)
def test_reference_names(factory, reference):
    assert factory().reference() == reference


@pytest.mark.parametrize(
    "profile, java_class",
    [
        (DUBBO_HTTP, "com.dubbogo.pixiu.User"),
        (DUBBO_TRIPLE, "com.dubbogo.pixiu.DubboUserService"),
        (TRIPLE, "com.dubbogo.pixiu.TripleUserService"),
    ],
)
def test_seeded_users_carry_profile_java_class(profile, java_class):
    provider = make_provider(profile)
    user = provider.get_user_by_name("tc")
    assert user.java_class_name() == java_class
    assert profile.java_class_name == java_class


@pytest.mark.parametrize("profile", ALL_PROFILES)
def test_get_user_by_name_tc(profile):
    provider = make_provider(profile)
    user = provider.get_user_by_name("tc")
    assert user.id == "0001"
    assert "0001" in str(user.to_dict())


@pytest.mark.parametrize("profile", ALL_PROFILES)
def test_get_user_by_code_one(profile):
    provider = make_provider(profile)
    user = provider.get_user_by_code(1)
    assert user.id == "0001"
    assert user.name == "tc"


def test_seed_time_is_fixed():
    user = dubbo_http_provider().get_user_by_name("ic")
    assert user.to_dict() == {
        "id": "0002",
        "code": 2,
        "name": "ic",
        "age": 88,
        "time": "2021-08-01T10:08:41Z",
    }


def test_update_user_by_name_returns_true():
    provider = dubbo_http_provider()
    changes = User(id="0001", code=1, name="tc", age=15)
    assert provider.update_user_by_name("tc", changes) is True
    assert provider.get_user_by_name("tc").age == 15


def test_update_unknown_name_raises():
    provider = triple_provider()
    with pytest.raises(ProviderError, match="not found"):
        provider.update_user_by_name("nobody", User(name="nobody", age=1))


def test_create_existing_user_raises():
    provider = dubbo_triple_provider()
    with pytest.raises(ProviderError, match="data is exist"):
        provider.create_user(User(id="0009", code=9, name="tc"))


def test_create_new_user_then_find():
    provider = triple_provider()
    created = provider.create_user(User(id="0003", code=3, name="dubbogo", age=99))
    assert created.name == "dubbogo"
    assert provider.get_user_by_code(3) is created


def test_given_db_is_used():
    db = UserDB()
    provider = make_provider(ProviderProfile("Custom"), db)
    assert provider.get_user_by_name("tc") is None
    assert provider.db is db
    assert provider.reference() == "Custom"


def test_providers_do_not_share_state():
    first = dubbo_http_provider()
    second = dubbo_http_provider()
    first.create_user(User(id="0005", code=5, name="solo"))
    assert second.get_user_by_name("solo") is None


def test_lookup_is_logged(capsys):
    dubbo_http_provider().get_user_by_name("tc")
    out = capsys.readouterr().out
    assert "Req GetUserByName name:'tc'" in out