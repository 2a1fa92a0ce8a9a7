"""
Transfer module
Byte streams over a negotiated data connection, with progress tracking
"""

import logging
import re
import time
from enum import Enum

from .errors import FTPError, TransportError
from .state import TransferType

logger = logging.getLogger(__name__)

_LONE_LF = re.compile(rb'(?<!\r)\n')


class TransferDirection(Enum):
    """Direction of a file transfer"""
    DOWNLOAD = "download"
    UPLOAD = "upload"
    APPEND = "append"


class TransferStatus(Enum):
    """Status of a transfer"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class NetASCIIDecoder:
    """CRLF -> LF for ASCII downloads, safe across chunk boundaries"""

    def __init__(self):
        self._pending_cr = False

    def decode(self, data, final=False):
        if self._pending_cr:
            data = b'\r' + data
            self._pending_cr = False
        if data.endswith(b'\r') and not final:
            data = data[:-1]
            self._pending_cr = True
        return data.replace(b'\r\n', b'\n')


class NetASCIIEncoder:
    """LF -> CRLF for ASCII uploads, leaving existing CRLF alone"""

    def __init__(self):
        self._last_was_cr = False

    def encode(self, data):
        if not data:
            return data
        converted = _LONE_LF.sub(b'\r\n', data)
        if data[:1] == b'\n' and self._last_was_cr:
            converted = converted[1:]
        self._last_was_cr = data[-1:] == b'\r'
        return converted


class Transfer:
    """
    Represents a single file transfer in progress

    Downloads are read with read() or by iterating; uploads are fed with
    write(). close() shuts the data connection and returns the server's
    completion reply; abort() interrupts the transfer with ABOR.
    """

    def __init__(self, session, data_conn, direction, remote_path,
                 transfer_type=TransferType.BINARY, monitor=None, offset=0,
                 buffer_size=8192, initial_reply=None):
        """
        Initialize transfer

        Args:
            session: FTPClient that owns the control connection
            data_conn: Established DataConnection
            direction: TransferDirection
            remote_path: Remote file path
            transfer_type: TransferType in effect (ASCII enables line translation)
            monitor: Running KeepAliveMonitor, if any
            offset: Restart offset sent with REST
            buffer_size: Default read size
            initial_reply: Preliminary (1xx) reply that opened the transfer
        """
        self.session = session
        self.data_conn = data_conn
        self.direction = direction
        self.remote_path = remote_path
        self.transfer_type = transfer_type
        self.monitor = monitor
        self.offset = offset
        self.buffer_size = buffer_size
        self.initial_reply = initial_reply

        self.status = TransferStatus.RUNNING
        self.bytes_transferred = 0
        self.start_time = time.time()
        self.end_time = None
        self.error = None
        self.final_reply = None

        self._closed = False
        self._eof = False
        ascii_mode = transfer_type is TransferType.ASCII
        self._decoder = NetASCIIDecoder() if ascii_mode else None
        self._encoder = NetASCIIEncoder() if ascii_mode else None

    @property
    def closed(self):
        return self._closed

    @property
    def speed(self):
        """Get transfer speed in bytes/second"""
        end = self.end_time or time.time()
        elapsed = end - self.start_time
        if elapsed > 0:
            return self.bytes_transferred / elapsed
        return 0

    def readable(self):
        return self.direction is TransferDirection.DOWNLOAD

    def writable(self):
        return self.direction is not TransferDirection.DOWNLOAD

    def _check_open(self, readable):
        if self._closed:
            raise ValueError("I/O operation on closed transfer")
        if readable != self.readable():
            mode = "read from" if readable else "write to"
            raise ValueError(f"Cannot {mode} a {self.direction.value} transfer")

    def _record(self, nbytes):
        self.bytes_transferred += nbytes
        if self.monitor is not None:
            self.monitor.report_progress(nbytes)

    def _fail(self, error):
        """Mid-stream transport failure: the session cannot be reused"""
        self.status = TransferStatus.FAILED
        self.error = error
        self.end_time = time.time()
        self._closed = True
        self.data_conn.close()
        self._stop_monitor()
        self.session._invalidate()

    def _stop_monitor(self):
        if self.monitor is not None:
            self.monitor.stop()

    def _recv_chunk(self, size):
        try:
            data = self.data_conn.recv(size)
        except TransportError as e:
            self._fail(e)
            raise
        self._record(len(data))
        return data

    def read(self, size=-1):
        """
        Read bytes from a download

        Args:
            size: Maximum bytes to return; negative reads to end of file

        Returns:
            bytes: Data, b'' at end of file
        """
        self._check_open(readable=True)
        if size is None or size < 0:
            return b''.join(iter(lambda: self.read(self.buffer_size), b''))

        while not self._eof:
            raw = self._recv_chunk(size or self.buffer_size)
            if not raw:
                self._eof = True
            if self._decoder is None:
                return raw
            data = self._decoder.decode(raw, final=self._eof)
            if data or self._eof:
                return data
        return b''

    def __iter__(self):
        return iter(lambda: self.read(self.buffer_size), b'')

    def write(self, data):
        """
        Write bytes to an upload

        Returns:
            int: Number of caller bytes accepted
        """
        self._check_open(readable=False)
        if isinstance(data, str):
            raise TypeError("Transfer.write() expects bytes")

        payload = self._encoder.encode(data) if self._encoder else data
        try:
            self.data_conn.send(payload)
        except TransportError as e:
            self._fail(e)
            raise
        self._record(len(data))
        return len(data)

    def close(self):
        """
        Finish the transfer and read the completion reply

        Returns:
            FTPReply: Completion reply (negative if the server reports failure)
        """
        if self._closed:
            return self.final_reply
        self._closed = True

        self.data_conn.close()
        self._stop_monitor()
        try:
            reply = self.session._finish_transfer()
        except FTPError as e:
            self.status = TransferStatus.FAILED
            self.error = e
            raise
        finally:
            self.end_time = time.time()

        self.final_reply = reply
        self.status = TransferStatus.COMPLETED if reply.is_success else TransferStatus.FAILED
        logger.debug("%s of %s finished: %d bytes, %s", self.direction.value,
                     self.remote_path, self.bytes_transferred, reply)
        return reply

    def abort(self):
        """
        Interrupt the transfer with ABOR

        A download that already reached end of file is closed normally instead.

        Returns:
            FTPReply: Final reply after the abort exchange
        """
        if self._closed:
            return self.final_reply
        if self._eof:
            # nothing left to interrupt, the completion reply is already owed
            return self.close()
        self._closed = True
        self._stop_monitor()

        try:
            reply = self.session._abort_transfer(self.data_conn.close)
        except FTPError as e:
            self.status = TransferStatus.FAILED
            self.error = e
            raise
        finally:
            self.data_conn.close()
            self.end_time = time.time()

        self.final_reply = reply
        self.status = TransferStatus.ABORTED
        return reply

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return (f"Transfer({self.direction.value} {self.remote_path!r}, "
                f"status={self.status.value}, bytes={self.bytes_transferred})")
