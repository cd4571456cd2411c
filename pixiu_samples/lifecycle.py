"""Process lifecycle for the sample providers: wait for a stop signal, then leave."""

from __future__ import annotations

import logging
import os
import queue
import signal
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

SURVIVAL_TIMEOUT = 3.0

_RELOAD_SIGNAL = getattr(signal, "SIGHUP", None)


def _watched_signals() -> list[signal.Signals]:
    names = ("SIGINT", "SIGHUP", "SIGQUIT", "SIGTERM")
    return [getattr(signal, name) for name in names if hasattr(signal, name)]


def _signal_name(sig: int) -> str:
    try:
        return signal.Signals(sig).name
    except ValueError:
        return str(sig)


@contextmanager
def install_signal_queue() -> Iterator["queue.Queue[signal.Signals]"]:
    """Route interrupt, hang-up, quit and terminate signals into a queue.

    The previous handlers are restored when the context ends. Must be used
    from the main thread.
    """
    received: "queue.Queue[signal.Signals]" = queue.Queue()
    previous = {}

    def _enqueue(signum, _frame) -> None:
        received.put(signal.Signals(signum))

    try:
        for sig in _watched_signals():
            previous[sig] = signal.signal(sig, _enqueue)
        yield received
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _force_exit() -> None:
    logger.warning("app exit now by force...")
    os._exit(1)


def run_until_signal(
    next_signal: Callable[[], int],
    survival_timeout: float = SURVIVAL_TIMEOUT,
    on_force_exit: Optional[Callable[[], None]] = None,
) -> int:
    """Block on ``next_signal`` until a signal other than hang-up arrives.

    Hang-up is ignored. For any other signal a daemon timer is armed that
    calls ``on_force_exit`` (by default, exiting the process with status 1)
    after ``survival_timeout`` seconds, and the signal is returned so the
    caller can finish normally before the timer fires.
    """
    while True:
        sig = next_signal()
        logger.info("get signal %s", _signal_name(sig))
        if _RELOAD_SIGNAL is not None and sig == _RELOAD_SIGNAL:
            continue
        timer = threading.Timer(survival_timeout, on_force_exit or _force_exit)
        timer.daemon = True
        timer.start()
        print("provider app exit now...")
        return sig