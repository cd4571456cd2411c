# pixiu-samples

Small, self-contained backend services to put behind an API gateway and test
it against: user stores and providers, WSGI apps that create and look up
users, deliberately slow endpoints for graceful-shutdown checks, a
passed/blocked load generator for rate-limit checks, the participants of a
TCC transaction, and a small control plane that serves listener and cluster
configuration. Everything uses the standard library only.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Modules

| Module | What it provides |
| --- | --- |
| `pixiu_samples.userdb` | `User`, `UserDB` (indexed by name and by code), `seeded_user_db`, `UserProvider` and `ProviderError` |
| `pixiu_samples.providers` | `ProviderProfile`, `make_provider`, and the ready-made `dubbo_http_provider`, `dubbo_triple_provider` and `triple_provider` |
| `pixiu_samples.grpc_users` | `GrpcUser`, `GetUserResponse`, `UserQueryService`, `init_users`, `SlowUserService` and the WSGI app `user_query_app` |
| `pixiu_samples.simple_http` | `SimpleUser`, `SimpleUserDB`, `seeded_simple_db`, `rand_seq`, and the WSGI apps `user_app` and `triple_user_app` |
| `pixiu_samples.shutdown` | `slow_app`, a WSGI app that waits before it answers |
| `pixiu_samples.loadtest` | `access` and `run`, a threaded client that reports each request as passed or blocked |
| `pixiu_samples.greeting` | `GreetingService`, `GreeterServer` and their request and response records |
| `pixiu_samples.seata` | `Account`, `Inventory`, `tcc_app` (try/confirm/cancel) and `begin_app` (the transaction starter) |
| `pixiu_samples.xds` | `Logger`, `Snapshot`, `SnapshotCache`, the built-in listener and cluster resources, `generate_snapshot_from_files` and `watch_directory` |
| `pixiu_samples.lifecycle` | `install_signal_queue` and `run_until_signal` |

## Commands

Each command runs one service in the foreground until interrupted.

```
pixiu-simple-http [user|triple] [--host HOST] [--port PORT]
```

`user` (the default) serves `user_app` on port 1314: `POST /user/` with a
JSON user creates it under a random five-letter id, `GET /user/<name>` or
`GET /user/?name=<name>` looks it up. `triple` serves `triple_user_app` on
127.0.0.1:20001 at `/com.dubbogo.pixiu.TripleUserService/GetUserById`.

```
pixiu-slow-server [http|dubbo|triple] [--host HOST] [--port PORT] [--delay SECONDS]
```

Answers `{"message":"receive"}` after `--delay` seconds (default 3). `http`
serves everything under `/user/` on port 1314; `dubbo` serves
`/com.dubbogo.pixiu.TripleUserService/TestByDubbo` on port 20001; `triple`
serves `/com.dubbogo.pixiu.TripleUserService/TestByTriple` on
127.0.0.1:20001.

```
pixiu-loadtest [URL] [--workers N] [--timeout SECONDS] [--iterations N]
```

Runs `--workers` threads (default 5) that request the URL (default
`http://localhost:8888/api/v1/test-dubbo/user?name=tc`) over and over and
print a timestamped `passed` or `blocked` line for each. Any HTTP response
counts as passed; only a failed request counts as blocked. Without
`--iterations` it runs until interrupted.

```
pixiu-seata [a|b|c] [--host HOST] [--port PORT] [--service-b-url URL] [--service-c-url URL]
```

`b` (port 8081) and `c` (port 8082) serve `POST /service-b/...` and
`POST /service-c/...` with `try`, `confirm` and `cancel` for accounts and
inventory. `a` (port 8080) serves `POST /service-a/begin`, which passes the
`x_seata_xid` header on to the try calls of B and C. The default B and C
URLs are `http://localhost:2047/service-b/try` and
`http://localhost:2048/service-c/try`; pass the options to point them
elsewhere.

```
pixiu-xds [local|files] [--port PORT] [--node-id ID] [--directory DIR] [--interval SECONDS]
```

Serves a configuration snapshot on port 18000 for node `test-id`. `local`
serves the built-in one (an HTTP listener on 8888 routing to the `http_bin`
cluster); `files` reads `cds.json` and `lds.json` from `--directory`
(default `../pixiu`) and reloads them whenever a file there changes,
polling every `--interval` seconds. Clients fetch the snapshot with
`POST /v3/discovery:extension_configs` and a JSON body such as
`{"node": {"id": "test-id"}}`.

## Using the services from Python

The user store is seeded with "tc" (code 1, age 18) and "ic" (code 2,
age 88):

```python
from datetime import datetime, timezone

from pixiu_samples.userdb import seeded_user_db
from pixiu_samples.providers import dubbo_http_provider

db = seeded_user_db(datetime(2021, 8, 1, 10, 8, 41, tzinfo=timezone.utc))
provider = dubbo_http_provider(db)

print(provider.get_user_by_name("tc").to_dict())
print(provider.reference())  # "UserProvider"
```

`create_user` raises `ProviderError` when the user is missing, the name is
taken, or the store refuses it; `update_user` and `update_user_by_name`
raise it when no user has that name. `get_user_timeout` sleeps ten seconds
before answering.

The apps `user_app`, `triple_user_app`, `slow_app`, `user_query_app`,
`tcc_app` and `begin_app` are plain WSGI callables: serve them with
`wsgiref.simple_server` or any WSGI server, or call them directly in tests.
`begin_app` takes an `opener(url, body, headers)` so the calls to B and C
can be replaced.

A provider process can wait for a stop signal:

```python
from pixiu_samples.lifecycle import install_signal_queue, run_until_signal

with install_signal_queue() as signals:
    run_until_signal(signals.get)
```

Hang-up is ignored; any other of interrupt, quit or terminate returns,
after arming a timer that exits the process with status 1 if shutdown takes
longer than three seconds.

## What this package does not do

- It does not speak the dubbo, triple or gRPC wire protocols. The
  providers, `UserQueryService`, `SlowUserService`, `GreetingService` and
  `GreeterServer` are Python objects; only `user_query_app` exposes a query
  service, as JSON over HTTP, and there is no command that serves it.
- It does not register services with a registry such as ZooKeeper.
- The control plane serves snapshots over a REST JSON endpoint only, not a
  gRPC discovery stream.
- It is not a gateway; it provides the backends and fixtures to test one.