"""A small control plane that serves the gateway its listener and cluster configuration.

The configuration is published as a versioned snapshot per node. It is either
built in code or read from ``cds.json`` and ``lds.json`` in a directory that
is watched for changes. Snapshots are served over the REST form of the
discovery protocol.
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from socketserver import ThreadingMixIn
from typing import Any, Optional, TextIO
from wsgiref.simple_server import WSGIServer, make_server

PORT = 18000
NODE_ID = "test-id"
CONFIG_DIRECTORY = "../pixiu"

HTTP_CONNECT_MANAGER_FILTER = "dgp.filter.httpconnectionmanager"
HTTP_PROXY_FILTER = "dgp.filter.http.httpproxy"

CLUSTER_TYPE = "pixiu-clusters"
LISTENER_TYPE = "pixiu-listeners"

_TYPE_PREFIX = "type.googleapis.com/"
EXTENSION_CONFIG_TYPE = _TYPE_PREFIX + "envoy.config.core.v3.TypedExtensionConfig"
RESOURCE_TYPES = frozenset(
    {
        _TYPE_PREFIX + "envoy.config.endpoint.v3.ClusterLoadAssignment",
        _TYPE_PREFIX + "envoy.config.cluster.v3.Cluster",
        _TYPE_PREFIX + "envoy.config.route.v3.RouteConfiguration",
        _TYPE_PREFIX + "envoy.config.listener.v3.Listener",
        _TYPE_PREFIX + "envoy.extensions.transport_sockets.tls.v3.Secret",
        _TYPE_PREFIX + "envoy.service.runtime.v3.Runtime",
        EXTENSION_CONFIG_TYPE,
    }
)

CDS_FILE = "cds.json"
LDS_FILE = "lds.json"

_DISCOVERY_PATHS = {"/v3/discovery:extension_configs": EXTENSION_CONFIG_TYPE}


@dataclass
class Logger:
    """Timestamped log lines; debug and info lines appear only when ``debug`` is set.

    Lines go to ``out``, or to standard error when it is unset.
    """

    debug: bool = False
    out: Optional[TextIO] = None

    def _emit(self, fmt: str, *args: Any) -> None:
        message = fmt % args if args else fmt
        stamp = time.strftime("%Y/%m/%d %H:%M:%S")
        stream = self.out if self.out is not None else sys.stderr
        stream.write(f"{stamp} {message}\n")

    def debugf(self, fmt: str, *args: Any) -> None:
        if self.debug:
            self._emit(fmt, *args)

    def infof(self, fmt: str, *args: Any) -> None:
        if self.debug:
            self._emit(fmt, *args)

    def warnf(self, fmt: str, *args: Any) -> None:
        self._emit(fmt, *args)

    def errorf(self, fmt: str, *args: Any) -> None:
        self._emit(fmt, *args)


_LOG = Logger(debug=True)


class SnapshotError(ValueError):
    """Raised when a snapshot is not fit to be served."""


@dataclass
class Snapshot:
    """A versioned set of resources, grouped by type and keyed by name."""

    version: str
    resources: dict[str, dict[str, Any]] = field(default_factory=dict)

    def consistent(self) -> None:
        """Raise :class:`SnapshotError` if the snapshot cannot be served."""
        if not self.version:
            raise SnapshotError("snapshot has no version")
        for type_url, named in self.resources.items():
            if type_url not in RESOURCE_TYPES:
                raise SnapshotError(f"unknown resource type: {type_url}")
            for name, config in named.items():
                if not name:
                    raise SnapshotError(f"{type_url} resource without a name")
                if not isinstance(config, Mapping):
                    raise SnapshotError(f"resource {name!r} is not a message")


class SnapshotCache:
    """The snapshot currently served to each node."""

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def set_snapshot(self, node_id: str, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots[node_id] = snapshot

    def get_snapshot(self, node_id: str) -> Snapshot:
        with self._lock:
            try:
                return self._snapshots[node_id]
            except KeyError:
                raise KeyError(f"no snapshot found for node {node_id}") from None


def make_http_filter() -> dict:
    """A filter chain routing every path to the ``http_bin`` cluster."""
    return {
        "filters": [
            {
                "name": HTTP_CONNECT_MANAGER_FILTER,
                "struct": {
                    "route_config": {
                        "routes": [
                            {
                                "match": {"prefix": "/"},
                                "route": {
                                    "cluster": "http_bin",
                                    "cluster_not_found_response_code": 505,
                                },
                            }
                        ]
                    },
                    "http_filters": [{"name": HTTP_PROXY_FILTER, "config": None}],
                },
            }
        ]
    }


def _listener(name: str, port: int) -> dict:
    return {
        "name": name,
        "address": {
            "socketAddress": {"address": "0.0.0.0", "port": port},
            "name": f"http_{port}",
        },
        "filterChain": make_http_filter(),
    }


def make_listeners() -> dict:
    """One HTTP listener on port 8888."""
    return {"listeners": [_listener("net/http", 8888)]}


def make_listeners2() -> dict:
    """One HTTP listener on port 8889."""
    return {"listeners": [_listener("net/http889", 8889)]}


def make_clusters() -> dict:
    """The ``http_bin`` cluster with a single backend endpoint."""
    return {
        "clusters": [
            {
                "name": "http_bin",
                "typeStr": "http",
                "endpoints": [
                    {"id": "backend", "address": {"address": "httpbin.org", "port": 80}}
                ],
                "healthChecks": [],
            }
        ]
    }


def _snapshot(version: str, clusters: dict, listeners: dict) -> Snapshot:
    return Snapshot(
        version,
        {EXTENSION_CONFIG_TYPE: {CLUSTER_TYPE: clusters, LISTENER_TYPE: listeners}},
    )


def generate_snapshot_pixiu() -> Snapshot:
    """The built-in configuration with the listener on port 8888."""
    return _snapshot("2", make_clusters(), make_listeners())


def generate_snapshot_pixiu2() -> Snapshot:
    """The built-in configuration with the listener on port 8889."""
    return _snapshot("2", make_clusters(), make_listeners2())


class _VersionCounter:
    def __init__(self, start: int) -> None:
        self._value = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value


_file_version = _VersionCounter(100)


def _read_config(path: Path) -> dict:
    """Load a JSON message; problems are logged and yield an empty message."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        _LOG.errorf("%s", exc)
        return {}
    if not isinstance(data, dict):
        _LOG.errorf("%s: expected a JSON object", path)
        return {}
    return data


def generate_snapshot_from_files(directory, version: Optional[int] = None) -> Snapshot:
    """Build a snapshot from ``cds.json`` and ``lds.json`` in ``directory``.

    Without a version, the next one of a counter starting after 100 is used.
    A file that cannot be read or parsed is logged and served as empty.
    """
    folder = Path(directory)
    clusters = _read_config(folder / CDS_FILE)
    listeners = _read_config(folder / LDS_FILE)
    number = version if version is not None else _file_version.next()
    return _snapshot(str(number), clusters, listeners)


def _scan(folder: Path) -> dict[str, tuple[int, int]]:
    stamps = {}
    for entry in folder.iterdir():
        try:
            info = entry.stat()
        except OSError:
            continue
        if entry.is_file():
            stamps[entry.name] = (info.st_mtime_ns, info.st_size)
    return stamps


def watch_directory(
    directory,
    cache: SnapshotCache,
    node_id: str = NODE_ID,
    interval: float = 1.0,
    stop: Optional[threading.Event] = None,
) -> int:
    """Reload the snapshot for ``node_id`` whenever a file in ``directory`` is written.

    Polls every ``interval`` seconds until ``stop`` is set and returns the
    number of reloads. A missing directory raises :class:`FileNotFoundError`.
    """
    folder = Path(directory)
    seen = _scan(folder)
    halt = stop if stop is not None else threading.Event()
    reloads = 0
    while not halt.wait(interval):
        current = _scan(folder)
        written = sorted(name for name, stamp in current.items() if seen.get(name) != stamp)
        seen = current
        if not written:
            continue
        for name in written:
            _LOG._emit("modified file: %s", folder / name)
        cache.set_snapshot(node_id, generate_snapshot_from_files(folder))
        reloads += 1
    return reloads


def _json_reply(start_response, status: str, payload: dict):
    body = json.dumps(payload).encode("utf-8")
    start_response(
        status, [("Content-Type", "application/json"), ("Content-Length", str(len(body)))]
    )
    return [body]


def _discovery_app(cache: SnapshotCache):
    """WSGI app answering REST discovery requests from the cache."""

    def app(environ, start_response):
        type_url = _DISCOVERY_PATHS.get(environ.get("PATH_INFO", ""))
        if type_url is None or environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            return _json_reply(start_response, "404 Not Found", {"message": "not found"})
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        raw = environ["wsgi.input"].read(length) if length > 0 else b""
        try:
            request = json.loads(raw) if raw.strip() else {}
        except ValueError as exc:
            return _json_reply(start_response, "400 Bad Request", {"message": str(exc)})
        if not isinstance(request, dict):
            return _json_reply(
                start_response, "400 Bad Request", {"message": "request must be an object"}
            )
        node = request.get("node")
        node_id = node.get("id", "") if isinstance(node, dict) else ""
        try:
            snapshot = cache.get_snapshot(node_id)
        except KeyError as exc:
            return _json_reply(start_response, "404 Not Found", {"message": exc.args[0]})
        resources = [
            {"@type": type_url, "name": name, "typed_config": config}
            for name, config in snapshot.resources.get(type_url, {}).items()
        ]
        reply = {"version_info": snapshot.version, "resources": resources, "type_url": type_url}
        return _json_reply(start_response, "200 OK", reply)

    return app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


def main(argv=None) -> int:
    """Serve the built-in or file-based configuration until interrupted."""
    parser = argparse.ArgumentParser(description="Control plane for the gateway.")
    parser.add_argument("source", nargs="?", choices=("local", "files"), default="local")
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--node-id", default=NODE_ID)
    parser.add_argument("--directory", default=CONFIG_DIRECTORY)
    parser.add_argument("--interval", type=float, default=1.0)
    args = parser.parse_args(argv)

    if args.source == "files":
        if not Path(args.directory).is_dir():
            _LOG.errorf("no such directory: %s", args.directory)
            return 1
        snapshot = generate_snapshot_from_files(args.directory)
    else:
        snapshot = generate_snapshot_pixiu()

    try:
        snapshot.consistent()
    except SnapshotError as exc:
        _LOG.errorf("config inconsistency: %r\n%s", snapshot, exc)
        return 1
    _LOG.debugf("will serve config %r", snapshot)

    cache = SnapshotCache()
    cache.set_snapshot(args.node_id, snapshot)

    stop = threading.Event()
    if args.source == "files":
        watcher = threading.Thread(
            target=watch_directory,
            args=(args.directory, cache, args.node_id, args.interval, stop),
            daemon=True,
        )
        watcher.start()

    try:
        with make_server(
            "", args.port, _discovery_app(cache), server_class=_ThreadingWSGIServer
        ) as server:
            _LOG._emit("management server listening on %d", args.port)
            server.serve_forever()
    except OSError as exc:
        _LOG.errorf("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        stop.set()
    return 0