import io
import json
import random
from wsgiref.util import setup_testing_defaults

from pixiu_samples.simple_http import (
    JSON_UTF8,
    LETTERS,
    SimpleUser,
    SimpleUserDB,
    rand_seq,
    seeded_simple_db,
    triple_user_app,
    user_app,
)


def call(app, method, path, body=b"", query=""):
    environ = {}
    setup_testing_defaults(environ)
    environ.update(
        {
            "REQUEST_METHOD": method,
            "PATH_INFO": path,
            "QUERY_STRING": query,
            "CONTENT_LENGTH": str(len(body)),
            "wsgi.input": io.BytesIO(body),
        }
    )
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = dict(headers)

    chunks = app(environ, start_response)
    return captured["status"], captured["headers"], b"".join(chunks)


def test_post_creates_user():
    db = seeded_simple_db()
    app = user_app(db, random.Random(1))
    data = b'{"id":"0003","code":3,"name":"dubbogo","age":99}'
    status, headers, body = call(app, "POST", "/user/", data)
    assert status == "200 OK"
    assert "dubbogo" in body.decode()
    assert headers["Content-Type"] == JSON_UTF8
    payload = json.loads(body)
    assert payload["age"] == 99
    assert len(payload["id"]) == 5
    assert db.get("dubbogo").id == payload["id"]


def test_get_by_path():
    status, _, body = call(user_app(seeded_simple_db()), "GET", "/user/tc")
    assert status == "200 OK"
    assert "0001" in body.decode()


def test_get_by_query():
    status, _, body = call(user_app(seeded_simple_db()), "GET", "/user/", query="name=ic")
    assert status == "200 OK"
    assert json.loads(body)["id"] == "0002"


def test_get_unknown_is_404():
    status, _, body = call(user_app(seeded_simple_db()), "GET", "/user/nobody")
    assert status == "404 Not Found"
    assert body == b""


def test_post_existing_name():
    status, _, body = call(user_app(seeded_simple_db()), "POST", "/user/", b'{"name":"tc"}')
    assert status == "200 OK"
    assert json.loads(body) == {"message": "data is exist"}


def test_post_bad_json_continues_with_empty_user():
    db = SimpleUserDB()
    status, _, body = call(user_app(db, random.Random(2)), "POST", "/user/", b"{oops")
    assert status == "200 OK"
    stored = db.get("")
    assert stored.name == ""
    assert len(stored.id) == 5
    assert body.endswith(json.dumps(stored.to_dict(), separators=(",", ":")).encode())


def test_other_path_and_method():
    app = user_app(seeded_simple_db())
    assert call(app, "GET", "/other")[0] == "404 Not Found"
    assert call(app, "PUT", "/user/tc")[2] == b""


def test_seeded_user_dict():
    assert seeded_simple_db().get("tc").to_dict() == {
        "id": "0001",
        "name": "tc",
        "age": 18,
        "time": "2021-08-01T10:08:41Z",
    }


def test_zero_time_in_created_user():
    _, _, body = call(user_app(SimpleUserDB()), "POST", "/user/", b'{"name":"x"}')
    assert json.loads(body)["time"] == "0001-01-01T00:00:00Z"


def test_add_overwrites():
    db = SimpleUserDB()
    assert db.add(SimpleUser(id="a", name="n"))
    assert db.add(SimpleUser(id="b", name="n"))
    assert db.get("n").id == "b"


def test_rand_seq():
    value = rand_seq(8, random.Random(5))
    assert len(value) == 8
    assert set(value) <= set(LETTERS)
    assert value == rand_seq(8, random.Random(5))


def test_triple_existing_name():
    app = triple_user_app(seeded_simple_db())
    status, _, body = call(app, "POST", "/com.dubbogo.pixiu.TripleUserService/GetUserById", b'"tc"')
    assert status == "200 OK"
    assert body == b'{"message":"data is exist"}'


def test_triple_new_name_creates_unnamed_user():
    db = seeded_simple_db()
    app = triple_user_app(db, random.Random(3))
    _, headers, body = call(app, "POST", "/com.dubbogo.pixiu.TripleUserService/GetUserById", b'"bob"')
    payload = json.loads(body)
    assert payload["name"] == ""
    assert len(payload["id"]) == 5
    assert headers["Content-Type"] == JSON_UTF8
    assert db.get("").id == payload["id"]


def test_triple_wrong_path():
    app = triple_user_app(seeded_simple_db())
    assert call(app, "POST", "/user/", b'"tc"')[0] == "404 Not Found"