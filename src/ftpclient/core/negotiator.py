"""
Data channel negotiation
Opens the per-transfer data connection in passive or active mode
"""

import ipaddress
import logging
import random
import socket
from enum import Enum

from .connection import DataConnection
from .errors import TransportError, TransportTimeoutError
from .reply import ReplyParser

logger = logging.getLogger(__name__)

ENTERING_PASSIVE_MODE = 227
ENTERING_EXTENDED_PASSIVE_MODE = 229


class DataChannelMode(Enum):
    """Who opens the data connection"""
    ACTIVE = "active"    # client listens, server connects
    PASSIVE = "passive"  # server listens, client connects


class DataChannelNegotiator:
    """Sets up one data connection per transfer for a control connection"""

    def __init__(self, control, config, connect=None):
        """
        Args:
            control: ControlConnection of the session
            config: FTPClientConfig with timeouts and data channel settings
            connect: Callable like socket.create_connection, used for passive mode
        """
        self.control = control
        self.config = config
        self._connect = connect or socket.create_connection

    def open(self, mode=None, family=None):
        """
        Negotiate a data connection

        Args:
            mode: DataChannelMode (defaults to the configured mode)
            family: socket.AF_INET or socket.AF_INET6 (defaults to the
                control connection's family)

        Returns:
            DataConnection, or None if the server refused the negotiation
            command (its reply is in control.last_reply)
        """
        mode = mode or self.config.data_channel_mode
        family = family or self.control.family or socket.AF_INET

        if mode is DataChannelMode.PASSIVE:
            return self._open_passive(family)
        return self._open_active(family)

    # ===== Passive =====

    def _open_passive(self, family):
        endpoint = None
        if family == socket.AF_INET6 or self.config.prefer_extended_passive:
            endpoint = self._extended_passive()
            if endpoint is None and family == socket.AF_INET6:
                return None

        if endpoint is None:
            endpoint = self._passive()
            if endpoint is None:
                return None

        host, port = endpoint
        logger.info("Opening passive data connection to %s:%s", host, port)
        try:
            sock = self._connect((host, port), self.config.data_timeout)
        except socket.timeout as e:
            raise TransportTimeoutError(f"Timed out connecting data channel to {host}:{port}") from e
        except OSError as e:
            raise TransportError(f"Failed to open data channel to {host}:{port}: {e}") from e

        return DataConnection(
            DataChannelMode.PASSIVE,
            sock=sock,
            expected_peer=self._control_peer_host(),
            remote_verification=self.config.remote_verification,
            timeout=self.config.data_timeout,
        )

    def _passive(self):
        reply = self.control.send_command('PASV')
        if reply.code != ENTERING_PASSIVE_MODE:
            return None

        host, port = ReplyParser.parse_pasv_reply(reply)
        if self.config.passive_nat_workaround:
            host = self._nat_workaround(host)
        return host, port

    def _extended_passive(self):
        reply = self.control.send_command('EPSV')
        if reply.code != ENTERING_EXTENDED_PASSIVE_MODE:
            logger.debug("EPSV refused: %s", reply)
            return None
        return self._control_peer_host(), ReplyParser.parse_epsv_reply(reply)

    def _nat_workaround(self, host):
        """Use the control peer when a public server advertises a private address"""
        server = self._control_peer_host()
        try:
            advertised = ipaddress.ip_address(host)
            actual = ipaddress.ip_address(server)
        except ValueError:
            return host

        if (advertised.is_private or advertised.is_unspecified) and not actual.is_private:
            logger.debug("Server advertised %s, using control peer %s instead", host, server)
            return server
        return host

    def _control_peer_host(self):
        peer = self.control.peer_address
        if peer is None:
            raise TransportError("Not connected")
        return peer[0]

    # ===== Active =====

    def _open_active(self, family):
        bind_host = self.config.active_bind_address or self.control.local_address[0]
        listener = self._listen(family, bind_host)
        host, port = listener.getsockname()[:2]
        advertised = self.config.active_external_address or host

        try:
            if family == socket.AF_INET6:
                reply = self.control.send_command(
                    'EPRT', ReplyParser.format_eprt_argument(advertised, port))
            else:
                reply = self.control.send_command(
                    'PORT', ReplyParser.format_port_argument(advertised, port))
        except Exception:
            listener.close()
            raise

        if not reply.is_success:
            listener.close()
            return None

        logger.info("Listening for active data connection on %s:%s", host, port)
        return DataConnection(
            DataChannelMode.ACTIVE,
            listener=listener,
            expected_peer=self._control_peer_host(),
            remote_verification=self.config.remote_verification,
            timeout=self.config.data_timeout,
        )

    def _candidate_ports(self):
        if self.config.active_port_range is None:
            return [0]
        low, high = self.config.active_port_range
        return random.sample(range(low, high + 1), high - low + 1)

    def _listen(self, family, bind_host):
        last_error = None
        for port in self._candidate_ports():
            listener = socket.socket(family, socket.SOCK_STREAM)
            try:
                listener.bind((bind_host, port))
                listener.listen(1)
            except OSError as e:
                listener.close()
                last_error = e
                continue
            listener.settimeout(self.config.data_timeout)
            return listener

        raise TransportError(
            f"Could not bind active data port on {bind_host} "
            f"in range {self.config.active_port_range}: {last_error}")
