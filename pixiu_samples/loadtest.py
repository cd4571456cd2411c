"""Keep several workers hitting a gateway URL, reporting each pass or block."""

from __future__ import annotations

import argparse
import http.client
import itertools
import sys
import threading
import time
import urllib.error
import urllib.request
from collections import Counter
from datetime import datetime
from typing import Callable, Optional, TextIO

DEFAULT_URL = "http://localhost:8888/api/v1/test-dubbo/user?name=tc"
PAUSE = 0.1


def _default_opener(url: str, timeout: float):
    return urllib.request.urlopen(url, timeout=timeout)


class _LockedWriter:
    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._stream.write(text)
            self._stream.flush()


def access(
    url: str,
    timeout: float = 2.0,
    opener: Optional[Callable] = None,
    out: Optional[TextIO] = None,
) -> bool:
    """Fetch ``url`` once, pause briefly, and report "passed" or "blocked".

    Any HTTP response, whatever its status, counts as passed; only a failed
    request counts as blocked.
    """
    open_url = opener if opener is not None else _default_opener
    stream = out if out is not None else sys.stdout
    response = None
    error: Optional[BaseException] = None
    try:
        response = open_url(url, timeout)
    except urllib.error.HTTPError as exc:
        response = exc
    except (OSError, http.client.HTTPException) as exc:
        error = exc
    time.sleep(PAUSE)
    stamp = datetime.now().astimezone().isoformat(sep=" ")
    if error is not None:
        stream.write(f"{stamp} blocked {error}\n")
        return False
    stream.write(f"{stamp} passed\n")
    response.close()
    return True


def run(
    url: str = DEFAULT_URL,
    workers: int = 5,
    timeout: float = 2.0,
    iterations: Optional[int] = None,
) -> Counter:
    """Run ``workers`` threads, each calling :func:`access` repeatedly.

    With ``iterations`` unset the workers never stop. Returns the tally of
    "passed" and "blocked" outcomes.
    """
    tally: Counter = Counter()
    lock = threading.Lock()
    writer = _LockedWriter(sys.stdout)

    def worker() -> None:
        rounds = itertools.repeat(None) if iterations is None else range(iterations)
        for _ in rounds:
            outcome = "passed" if access(url, timeout, out=writer) else "blocked"
            with lock:
                tally[outcome] += 1

    threads = [threading.Thread(target=worker, daemon=True) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return tally


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Hammer a gateway URL from several workers.")
    parser.add_argument("url", nargs="?", default=DEFAULT_URL)
    parser.add_argument("--workers", type=int, default=5)
    parser.add_argument("--timeout", type=float, default=2.0)
    parser.add_argument("--iterations", type=int, default=None)
    args = parser.parse_args(argv)
    try:
        run(args.url, args.workers, args.timeout, args.iterations)
    except KeyboardInterrupt:
        return 0
    return 0