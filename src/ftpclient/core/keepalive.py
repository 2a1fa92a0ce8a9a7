"""
Control connection keep-alive
Sends NOOP on the control connection while a slow data transfer runs
"""

import logging
import threading
import time

from .errors import FTPError

logger = logging.getLogger(__name__)


class KeepAliveMonitor:
    """
    Background NOOP sender for the lifetime of one transfer

    The monitor never reads replies. send_noop (normally
    ControlConnection.send_keepalive) decides whether sending is safe and
    reports whether it sent anything.
    """

    def __init__(self, send_noop, idle_timeout, check_interval=None,
                 progress_aware=True, clock=time.monotonic):
        """
        Args:
            send_noop: Callable returning True when a NOOP was written
            idle_timeout: Seconds of inactivity before a NOOP is due
            check_interval: Seconds between checks (default: a quarter of idle_timeout, at most 1s)
            progress_aware: Treat reported transfer progress as activity
            clock: Monotonic time source
        """
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")

        self.send_noop = send_noop
        self.idle_timeout = idle_timeout
        self.check_interval = check_interval or min(idle_timeout / 4.0, 1.0)
        self.progress_aware = progress_aware
        self.clock = clock

        self.noops_sent = 0
        self.bytes_reported = 0
        self.error = None

        self._last_activity = clock()
        self._stop_event = threading.Event()
        self._thread = None

    def report_progress(self, nbytes):
        """Record that nbytes moved over the data connection"""
        self.bytes_reported += nbytes
        if self.progress_aware and nbytes:
            self._last_activity = self.clock()

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def poll(self):
        """
        Run one check, sending a NOOP if one is due

        Returns:
            bool: True if a NOOP was sent
        """
        if self._stop_event.is_set():
            return False

        now = self.clock()
        if now - self._last_activity < self.idle_timeout:
            return False

        try:
            sent = self.send_noop()
        except (FTPError, OSError) as e:
            logger.warning("Keep-alive NOOP failed, giving up: %s", e)
            self.error = e
            self._stop_event.set()
            return False

        if not sent:
            return False
        self._last_activity = now
        self.noops_sent += 1
        return True

    def _run(self):
        while not self._stop_event.wait(self.check_interval):
            self.poll()

    def start(self):
        """Start the background thread"""
        if self._thread is not None:
            return self
        self._last_activity = self.clock()
        self._thread = threading.Thread(target=self._run, name="ftp-keepalive", daemon=True)
        self._thread.start()
        return self

    def stop(self):
        """Stop the monitor and wait for its thread"""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        if self.noops_sent:
            logger.debug("Keep-alive stopped after %d NOOP(s)", self.noops_sent)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
