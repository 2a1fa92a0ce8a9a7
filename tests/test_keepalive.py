import threading
import time

import pytest

from ftpclient.core.errors import TransportError
from ftpclient.core.keepalive import KeepAliveMonitor


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def always_sent():
    return True


def test_noop_due_after_idle_timeout():
    clock = FakeClock()
    monitor = KeepAliveMonitor(always_sent, idle_timeout=10, clock=clock)

    clock.now = 5
    assert not monitor.poll()
    clock.now = 10
    assert monitor.poll()
    clock.now = 15
    assert not monitor.poll()
    clock.now = 20
    assert monitor.poll()
    assert monitor.noops_sent == 2


def test_progress_postpones_noop():
    clock = FakeClock()
    monitor = KeepAliveMonitor(always_sent, idle_timeout=10, clock=clock)

    clock.now = 8
    monitor.report_progress(4096)
    clock.now = 12
    assert not monitor.poll()
    assert monitor.bytes_reported == 4096


def test_progress_ignored_when_not_progress_aware():
    clock = FakeClock()
    monitor = KeepAliveMonitor(always_sent, idle_timeout=10, progress_aware=False, clock=clock)

    clock.now = 8
    monitor.report_progress(4096)
    clock.now = 10
    assert monitor.poll()


def test_skipped_noop_is_not_counted():
    clock = FakeClock()
    monitor = KeepAliveMonitor(lambda: False, idle_timeout=1, clock=clock)
    clock.now = 5
    assert not monitor.poll()
    assert monitor.noops_sent == 0


def test_send_failure_stops_monitor():
    clock = FakeClock()

    def broken():
        raise TransportError("control connection reset")

    monitor = KeepAliveMonitor(broken, idle_timeout=1, clock=clock)
    clock.now = 2
    assert not monitor.poll()
    assert isinstance(monitor.error, TransportError)
    clock.now = 10
    assert not monitor.poll()


def test_idle_timeout_must_be_positive():
    with pytest.raises(ValueError):
        KeepAliveMonitor(always_sent, idle_timeout=0)


def test_thread_sends_noop_when_transfer_stalls():
    sent = threading.Event()

    def send():
        sent.set()
        return True

    with KeepAliveMonitor(send, idle_timeout=0.05, check_interval=0.01) as monitor:
        assert sent.wait(2.0)
    assert monitor.noops_sent >= 1
    assert not monitor.is_running


def test_thread_stays_quiet_while_data_flows():
    monitor = KeepAliveMonitor(always_sent, idle_timeout=0.2, check_interval=0.01)
    with monitor:
        deadline = time.monotonic() + 0.5
        while time.monotonic() < deadline:
            monitor.report_progress(1024)
            time.sleep(0.01)
    assert monitor.noops_sent == 0


def test_stop_is_idempotent():
    monitor = KeepAliveMonitor(always_sent, idle_timeout=1).start()
    monitor.stop()
    monitor.stop()
    assert not monitor.is_running
