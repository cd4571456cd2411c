import logging
import signal
import threading

from pixiu_samples.lifecycle import install_signal_queue, run_until_signal


def _feed(*signals):
    return iter(signals).__next__


def test_hangup_is_ignored_and_terminate_returned():
    result = run_until_signal(
        _feed(signal.SIGHUP, signal.SIGHUP, signal.SIGTERM), 60.0, lambda: None
    )
    assert result == signal.SIGTERM


def test_interrupt_stops_immediately():
    result = run_until_signal(_feed(signal.SIGINT, signal.SIGTERM), 60.0, lambda: None)
    assert result == signal.SIGINT


def test_exit_message_printed(capsys):
    run_until_signal(_feed(signal.SIGQUIT), 60.0, lambda: None)
    assert "provider app exit now..." in capsys.readouterr().out


def test_no_exit_message_while_only_hangups(capsys):
    calls = iter([signal.SIGHUP])

    def next_signal():
        try:
            return next(calls)
        except StopIteration:
            raise LookupError("no more signals")

    try:
        run_until_signal(next_signal, 60.0, lambda: None)
    except LookupError:
        pass
    assert "provider app exit now..." not in capsys.readouterr().out


def test_signals_are_logged(caplog):
    caplog.set_level(logging.INFO, logger="pixiu_samples.lifecycle")
    run_until_signal(_feed(signal.SIGHUP, signal.SIGTERM), 60.0, lambda: None)
    assert "get signal SIGHUP" in caplog.text
    assert "get signal SIGTERM" in caplog.text


def test_force_exit_callback_fires_after_timeout():
    fired = threading.Event()
    run_until_signal(_feed(signal.SIGTERM), 0.01, fired.set)
    assert fired.wait(2.0)


def test_force_exit_not_armed_by_hangup():
    fired = threading.Event()
    calls = iter([signal.SIGHUP])

    def next_signal():
        try:
            return next(calls)
        except StopIteration:
            raise LookupError("done")

    try:
        run_until_signal(next_signal, 0.01, fired.set)
    except LookupError:
        pass
    assert not fired.wait(0.2)


def test_signal_queue_receives_raised_signal():
    with install_signal_queue() as received:
        signal.raise_signal(signal.SIGTERM)
        assert received.get(timeout=1.0) == signal.SIGTERM


def test_signal_queue_restores_previous_handlers():
    before = signal.getsignal(signal.SIGTERM)
    with install_signal_queue() as received:
        signal.raise_signal(signal.SIGTERM)
        assert received.get(timeout=1.0) == signal.SIGTERM
    assert signal.getsignal(signal.SIGTERM) is before


def test_queue_drives_run_until_signal():
    with install_signal_queue() as received:
        signal.raise_signal(signal.SIGHUP)
        signal.raise_signal(signal.SIGINT)
        result = run_until_signal(
            lambda: received.get(timeout=1.0), 60.0, lambda: None
        )
    assert result == signal.SIGINT