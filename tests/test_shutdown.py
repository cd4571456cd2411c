import io
import json
import time
from concurrent.futures import ThreadPoolExecutor
from wsgiref.util import setup_testing_defaults

from pixiu_samples.shutdown import DUBBO_PATH, HTTP_PATH, TRIPLE_PATH, slow_app


def call(app, method, path, body=b""):
    environ = {}
    setup_testing_defaults(environ)
    environ.update(
        {
            "REQUEST_METHOD": method,
            "PATH_INFO": path,
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


def test_http_post_receives_after_delay():
    delays = []
    app = slow_app(HTTP_PATH, sleep=delays.append)
    status, headers, body = call(app, "POST", "/user/")
    assert status == "200 OK"
    assert json.loads(body) == {"message": "receive"}
    assert delays == [3.0]
    assert headers["Content-Type"] == "application/json;charset=UTF-8"


def test_prefix_path_matches_subtree():
    app = slow_app(HTTP_PATH, sleep=lambda _: None)
    assert call(app, "GET", "/user/tc/extra")[0] == "200 OK"


def test_exact_path_rejects_others_without_waiting():
    delays = []
    app = slow_app(DUBBO_PATH, sleep=delays.append)
    status, _, _ = call(app, "POST", DUBBO_PATH + "/more")
    assert status == "404 Not Found"
    assert delays == []


def test_triple_path_served():
    app = slow_app(TRIPLE_PATH, delay=0.5, sleep=lambda _: None)
    assert call(app, "POST", TRIPLE_PATH)[2] == b'{"message":"receive"}'


def test_concurrent_requests_all_complete():
    app = slow_app(HTTP_PATH, delay=0.1)
    started = time.monotonic()
    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(call, app, "POST", "/user/")
        second = pool.submit(call, app, "POST", "/user/")
        first_status, _, first_body = first.result()
        second_status, _, second_body = second.result()
    elapsed = time.monotonic() - started
    assert first_status == "200 OK"
    assert second_status == "200 OK"
    assert json.loads(first_body) == {"message": "receive"}
    assert json.loads(second_body) == {"message": "receive"}
    assert elapsed < 0.19 + 0.5