"""
Connection module for handling socket communications
Manages control and data connections
"""

import ipaddress
import logging
import socket
import threading
from contextlib import contextmanager

from .commands import format_command, loggable_command
from .errors import (DataChannelSecurityError, ProtocolError, TransportError,
                     TransportTimeoutError)
from .reply import ReplyReader

logger = logging.getLogger(__name__)

CRLF = '\r\n'
NOOP_REPLY_CODE = 200
SERVICE_NOT_AVAILABLE = 421

# How long to wait for the ABOR reply after a 2xx that ended the transfer
ABOR_REPLY_GRACE = 1.0

# Telnet "Interrupt Process" and "Synch" used ahead of ABOR (RFC 959 4.1.3)
TELNET_IP = b'\xff\xf4'
TELNET_SYNCH = b'\xff\xf2'


def same_host(first, second):
    """Compare two addresses, treating IPv4-mapped IPv6 as plain IPv4"""
    def normalise(host):
        address = ipaddress.ip_address(host.split('%', 1)[0])
        if address.version == 6 and address.ipv4_mapped:
            return address.ipv4_mapped
        return address

    try:
        return normalise(first) == normalise(second)
    except ValueError:
        return first == second


class BaseConnection:
    """
    Manages a single socket connection

    Also the generic line primitive (send_line/read_line) that
    single-roundtrip protocol clients build on.
    """

    def __init__(self, sock=None, timeout=30, encoding='utf-8'):
        """
        Initialize connection

        Args:
            sock: Already connected socket, if any
            timeout: Socket timeout in seconds
            encoding: Text encoding for line I/O
        """
        self.sock = sock
        self.timeout = timeout
        self.encoding = encoding
        self._buffer = bytearray()
        self._lock = threading.Lock()
        if sock is not None:
            sock.settimeout(timeout)

    @property
    def is_connected(self):
        return self.sock is not None

    @contextmanager
    def _translating(self, action):
        """Turn socket exceptions into TransportError"""
        try:
            yield
        except socket.timeout as e:
            raise TransportTimeoutError(f"Timed out {action}") from e
        except OSError as e:
            raise TransportError(f"Failed {action}: {e}") from e

    def connect(self, host, port):
        """
        Establish connection to a server

        Args:
            host: Remote host
            port: Remote port
        """
        with self._translating(f"connecting to {host}:{port}"):
            self.sock = socket.create_connection((host, port), timeout=self.timeout)
        self._buffer.clear()

    @property
    def peer_address(self):
        return self.sock.getpeername() if self.sock else None

    @property
    def local_address(self):
        return self.sock.getsockname() if self.sock else None

    @property
    def family(self):
        return self.sock.family if self.sock else None

    def send(self, data):
        """
        Send data through socket

        Args:
            data: String or bytes to send
        """
        if not self.is_connected:
            raise TransportError("Not connected")

        if isinstance(data, str):
            data = data.encode(self.encoding)

        with self._translating("sending"), self._lock:
            self.sock.sendall(data)

    def recv(self, buffer_size=8192):
        """
        Receive data from socket

        Returns:
            bytes: Received data, b'' once the peer has closed
        """
        if not self.is_connected:
            raise TransportError("Not connected")
        if self._buffer:
            data = bytes(self._buffer[:buffer_size])
            del self._buffer[:buffer_size]
            return data
        with self._translating("receiving"):
            return self.sock.recv(buffer_size)

    def send_line(self, text):
        """Send one line of text, appending CRLF"""
        self.send(text + CRLF)

    def read_line(self):
        """
        Receive a line of text (until LF)

        Returns:
            str: Line without CRLF, or None at end of stream
        """
        while True:
            end = self._buffer.find(b'\n')
            if end >= 0:
                raw = bytes(self._buffer[:end + 1])
                del self._buffer[:end + 1]
                return raw.decode(self.encoding, errors='replace').rstrip('\r\n')

            if not self.is_connected:
                raise TransportError("Not connected")
            with self._translating("reading line"):
                chunk = self.sock.recv(8192)
            if not chunk:
                if self._buffer:
                    raw = bytes(self._buffer)
                    self._buffer.clear()
                    return raw.decode(self.encoding, errors='replace').rstrip('\r')
                return None
            self._buffer.extend(chunk)

    def close(self):
        """
        Close the connection

        Returns:
            bool: True if this call closed the socket, False if already closed
        """
        with self._lock:
            sock, self.sock = self.sock, None
        if sock is None:
            return False
        try:
            sock.close()
        except OSError as e:
            logger.debug("Error closing socket: %s", e)
        return True


class ControlConnection(BaseConnection):
    """Manages the FTP control connection"""

    def __init__(self, timeout=30, encoding='utf-8', abort_reply_grace=ABOR_REPLY_GRACE):
        """
        Initialize control connection

        Args:
            timeout: Read timeout in seconds
            encoding: Control channel encoding
            abort_reply_grace: Seconds to wait for a trailing ABOR reply
        """
        super().__init__(timeout=timeout, encoding=encoding)
        self.abort_reply_grace = abort_reply_grace
        self.reader = ReplyReader(self.read_line)
        self.last_reply = None
        self._command_lock = threading.RLock()

        # Keep-alive coordination for the transfer in progress
        self._transfer_active = False
        self._completion_requested = False
        self._unacked_noops = 0

    @contextmanager
    def _guard(self):
        """Translate socket failures and close the connection on fatal errors"""
        try:
            with self._translating("on control connection"):
                yield
        except (TransportError, ProtocolError):
            self.close()
            raise

    def connect(self, host, port=21):
        """
        Connect and read the server greeting

        Returns:
            FTPReply: Greeting (the completion reply after a 120)
        """
        super().connect(host, port)
        logger.info("Connected to %s:%s", host, port)

        with self._command_lock:
            reply = self.read_reply()
            # 120 means "ready in nnn minutes"; the real greeting follows
            if reply.is_preliminary:
                reply = self.read_reply()
        return reply

    def read_reply(self):
        """Read exactly one reply and remember it as last_reply"""
        with self._guard():
            reply = self.reader.read_reply()

        logger.debug("<<< %s", reply)
        self.last_reply = reply
        if reply.code == SERVICE_NOT_AVAILABLE:
            logger.warning("Server closing control connection: %s", reply)
            self.close()
        return reply

    def send_command(self, verb, *args):
        """
        Send one command and wait for its reply

        Args:
            verb: Command name
            *args: Command arguments

        Returns:
            FTPReply: Server reply (negative replies included)
        """
        line = format_command(verb, *args)
        with self._command_lock:
            logger.debug(">>> %s", loggable_command(verb, *args))
            with self._guard():
                self.send_line(line)
            return self.read_reply()

    # ===== Transfer coordination =====

    def begin_transfer(self):
        """Mark that a transfer's completion reply is outstanding"""
        with self._command_lock:
            self._transfer_active = True
            self._completion_requested = False
            self._unacked_noops = 0

    @property
    def transfer_active(self):
        return self._transfer_active

    def send_keepalive(self):
        """
        Write a NOOP while a transfer is running, without reading its reply

        Returns:
            bool: True if a NOOP was written
        """
        if not self._command_lock.acquire(blocking=False):
            return False
        try:
            if (not self._transfer_active or self._completion_requested
                    or not self.is_connected):
                return False
            with self._guard():
                self.send_line('NOOP')
            self._unacked_noops += 1
            logger.debug(">>> NOOP (keep-alive, %d unacknowledged)", self._unacked_noops)
            return True
        finally:
            self._command_lock.release()

    def complete_transfer(self):
        """
        Read the completion reply of the running transfer

        Keep-alive acknowledgements are consumed whether they arrive
        before or after the completion reply.
        """
        self._completion_requested = True
        with self._command_lock:
            try:
                reply = self._read_skipping_noop_acks()
                self._drain_noop_acks()
            finally:
                self._transfer_active = False
                self._completion_requested = False
            self.last_reply = reply
            return reply

    def abort_transfer(self, before_read=None):
        """
        Send ABOR as urgent data and drain the replies it produces

        Args:
            before_read: Callable run after ABOR is written, before any reply is
                read (used to close the data socket)

        Returns:
            FTPReply: Final reply
        """
        self._completion_requested = True
        with self._command_lock:
            in_transfer = self._transfer_active
            try:
                logger.debug(">>> ABOR")
                with self._guard():
                    if not self.is_connected:
                        raise TransportError("Not connected")
                    self.sock.sendall(TELNET_IP + TELNET_SYNCH[:1], socket.MSG_OOB)
                    self.sock.sendall(TELNET_SYNCH[1:])
                    self.send_line('ABOR')
                if before_read is not None:
                    before_read()

                reply = self._read_skipping_noop_acks()
                if in_transfer and self.is_connected:
                    if not reply.is_success:
                        # 426 for the interrupted transfer, then the reply to ABOR itself
                        reply = self._read_skipping_noop_acks()
                    else:
                        # the transfer may have finished before ABOR arrived, in
                        # which case the ABOR reply is still on its way
                        self._drain_noop_acks()
                        if self._reply_waiting(self.abort_reply_grace):
                            reply = self.read_reply()
                self._drain_noop_acks()
            finally:
                self._transfer_active = False
                self._completion_requested = False
            self.last_reply = reply
            return reply

    def _read_skipping_noop_acks(self):
        reply = self.read_reply()
        while self._unacked_noops and reply.code == NOOP_REPLY_CODE:
            self._unacked_noops -= 1
            reply = self.read_reply()
        return reply

    def _reply_waiting(self, grace):
        """Wait up to grace seconds for more reply data, without consuming it"""
        if self._buffer:
            return True
        try:
            self.sock.settimeout(grace)
            chunk = self.sock.recv(8192)
        except socket.timeout:
            return False
        except OSError as e:
            self.close()
            raise TransportError(f"Failed reading on control connection: {e}") from e
        finally:
            if self.sock is not None:
                self.sock.settimeout(self.timeout)
        if not chunk:
            return False
        self._buffer.extend(chunk)
        return True

    def _drain_noop_acks(self):
        while self._unacked_noops and self.is_connected:
            self._unacked_noops -= 1
            ack = self.read_reply()
            if ack.code != NOOP_REPLY_CODE:
                logger.warning("Unexpected reply while draining keep-alive: %s", ack)

    def close(self):
        closed = super().close()
        if closed:
            logger.info("Control connection closed")
        return closed


class DataConnection:
    """
    Manages one FTP data connection for a single transfer

    Passive handles are connected on creation. Active handles hold a
    listening socket until establish() accepts the server's connection.
    """

    def __init__(self, mode, sock=None, listener=None, expected_peer=None,
                 remote_verification=True, timeout=30):
        """
        Args:
            mode: DataChannelMode the handle was negotiated in
            sock: Connected data socket (passive)
            listener: Listening socket awaiting the server (active)
            expected_peer: Control connection peer host
            remote_verification: Reject peers other than expected_peer
            timeout: Data socket timeout in seconds
        """
        self.mode = mode
        self.expected_peer = expected_peer
        self.remote_verification = remote_verification
        self.timeout = timeout
        self.connection = None
        self.server_socket = listener
        self._lock = threading.Lock()
        if sock is not None:
            self._adopt(sock)

    def _adopt(self, sock):
        peer = sock.getpeername()[0]
        if (self.remote_verification and self.expected_peer is not None
                and not same_host(peer, self.expected_peer)):
            logger.warning("Rejected data connection from %s (server is %s)",
                           peer, self.expected_peer)
            try:
                sock.close()
            finally:
                self.close()
            raise DataChannelSecurityError(peer, self.expected_peer)
        self.connection = BaseConnection(sock, timeout=self.timeout)

    @property
    def is_established(self):
        return self.connection is not None and self.connection.is_connected

    def establish(self):
        """Accept the server's inbound connection (active mode only)"""
        if self.connection is not None:
            return
        if self.server_socket is None:
            raise TransportError("Data connection already closed")

        try:
            sock, addr = self.server_socket.accept()
        except socket.timeout as e:
            self.close()
            raise TransportTimeoutError("Timed out waiting for data connection") from e
        except OSError as e:
            self.close()
            raise TransportError(f"Data connection failed: {e}") from e
        finally:
            self._close_listener()

        logger.info("Data connection accepted from %s:%s", addr[0], addr[1])
        self._adopt(sock)

    def recv(self, buffer_size=8192):
        """Receive data; b'' means the server finished sending"""
        if self.connection is None:
            raise TransportError("Data connection not established")
        return self.connection.recv(buffer_size)

    def send(self, data):
        """Send data through data connection"""
        if self.connection is None:
            raise TransportError("Data connection not established")
        self.connection.send(data)

    def _close_listener(self):
        listener, self.server_socket = self.server_socket, None
        if listener is not None:
            try:
                listener.close()
            except OSError as e:
                logger.debug("Error closing data listener: %s", e)

    def close(self):
        """Close data connection"""
        with self._lock:
            if self.connection:
                self.connection.close()
            self._close_listener()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
