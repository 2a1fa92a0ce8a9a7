"""
Main FTP Client class
Coordinates the control connection, data channels and listing parsing
"""

import dataclasses
import logging
from contextlib import contextmanager

from ..listing.engine import ListingParser
from ..listing.mlsx import MLSX, parse_time
from .commands import Authenticator, LoginState
from .config import FTPClientConfig
from .connection import ControlConnection
from .errors import (DataChannelSecurityError, FTPError, ProtocolError,
                     SessionBusyError, TransportError)
from .keepalive import KeepAliveMonitor
from .negotiator import DataChannelNegotiator
from .reply import ReplyParser
from .state import TransferStateTracker, TransferType
from .transfer import Transfer, TransferDirection

logger = logging.getLogger(__name__)


class FTPClient:
    """
    One FTP session: a control connection plus at most one open transfer

    Negative replies are returned, never raised. Transport and protocol
    errors invalidate the session and propagate.
    """

    def __init__(self, config=None, **overrides):
        """
        Initialize FTP client

        Args:
            config: FTPClientConfig (defaults are used when omitted)
            **overrides: Individual FTPClientConfig fields to override
        """
        config = config or FTPClientConfig()
        self.config = dataclasses.replace(config, **overrides) if overrides else config

        self.control = ControlConnection(timeout=self.config.timeout,
                                         encoding=self.config.encoding,
                                         abort_reply_grace=self.config.abort_reply_grace)
        self.negotiator = DataChannelNegotiator(self.control, self.config)
        self.state = TransferStateTracker(self.control)
        self.authenticator = Authenticator(self.control)
        self.listing_parser = ListingParser(
            max_unparsed_fraction=self.config.max_unparsed_fraction,
            allow_empty=self.config.allow_empty_listing,
        )

        self.host = None
        self._system_type = None
        self._active_transfer = None

    # ===== Session lifecycle =====

    @property
    def is_connected(self):
        return self.control.is_connected

    @property
    def is_logged_in(self):
        return self.is_connected and self.authenticator.is_logged_in

    @property
    def last_reply(self):
        return self.control.last_reply

    @contextmanager
    def _session_guard(self):
        """Invalidate the session on fatal errors"""
        if self._active_transfer is not None:
            raise SessionBusyError(
                f"Transfer of {self._active_transfer.remote_path!r} is still open")
        try:
            yield
        except (TransportError, ProtocolError):
            self._invalidate()
            raise

    def _invalidate(self):
        transfer, self._active_transfer = self._active_transfer, None
        if transfer is not None:
            transfer.data_conn.close()
            transfer._stop_monitor()
        self.control.close()
        self.state.reset()
        self.authenticator.reset()
        self._system_type = None

    def connect(self, host, port=21):
        """
        Connect to FTP server

        Args:
            host: Server hostname/IP
            port: Server port (default 21)

        Returns:
            FTPReply: Welcome reply from server
        """
        if self.is_connected:
            self.disconnect()

        self.host = host
        with self._session_guard():
            reply = self.control.connect(host, port)
        if reply.is_negative:
            self.control.close()
        return reply

    def login(self, username='anonymous', password='anonymous@', account=None):
        """
        Login to FTP server

        Args:
            username: Username (default: anonymous)
            password: Password (default: anonymous@)
            account: Account, sent only when the server asks for one

        Returns:
            FTPReply: Final login reply
        """
        with self._session_guard():
            reply = self.authenticator.login(username, password, account)
        if self.authenticator.state is LoginState.CLOSED:
            self._invalidate()
        return reply

    def disconnect(self):
        """Send QUIT if possible and close the connection; safe to call twice"""
        if self._active_transfer is not None:
            logger.debug("Disconnecting with an open transfer")
            self._invalidate()
            return

        if self.is_connected:
            try:
                self.control.send_command('QUIT')
            except (TransportError, ProtocolError) as e:
                logger.debug("QUIT failed during disconnect: %s", e)
        self._invalidate()

    close = disconnect

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    # ===== Simple commands =====

    def send_command(self, verb, *args):
        """
        Execute any FTP command that does not open a data connection

        Returns:
            FTPReply: Server reply
        """
        with self._session_guard():
            return self.control.send_command(verb, *args)

    def noop(self):
        return self.send_command('NOOP')

    def pwd(self):
        """
        Current remote directory

        Returns:
            str, or the FTPReply if the server refused
        """
        reply = self.send_command('PWD')
        path = ReplyParser.parse_pwd_reply(reply)
        return reply if path is None else path

    def cwd(self, path):
        return self.send_command('CWD', path)

    def cdup(self):
        return self.send_command('CDUP')

    def mkd(self, path):
        return self.send_command('MKD', path)

    def rmd(self, path):
        return self.send_command('RMD', path)

    def delete(self, path):
        return self.send_command('DELE', path)

    def rename(self, old_name, new_name):
        """
        Rename file/directory (combines RNFR and RNTO)

        Returns:
            FTPReply: Final reply
        """
        reply = self.send_command('RNFR', old_name)
        if reply.code == 350:
            return self.send_command('RNTO', new_name)
        return reply

    def size(self, path):
        """
        Get size of remote file

        Returns:
            int: File size in bytes, or None if the server refused
        """
        return ReplyParser.parse_size_reply(self.send_command('SIZE', path))

    def modification_time(self, path):
        """
        Last modification time of a remote file (MDTM, RFC 3659)

        Returns:
            datetime: UTC-aware timestamp, or None if refused or unparseable
        """
        reply = self.send_command('MDTM', path)
        if not reply.is_success:
            return None
        return parse_time(reply.message.strip())

    def system_type(self):
        """
        Server system type from SYST, cached per connection

        Returns:
            str or None
        """
        if self._system_type is None:
            reply = self.send_command('SYST')
            if reply.is_success:
                self._system_type = reply.lines[0].strip()
        return self._system_type

    def features(self):
        """
        Extensions advertised by FEAT

        Returns:
            dict: Feature name -> parameters ('' when none); empty if unsupported
        """
        reply = self.send_command('FEAT')
        if not reply.is_success:
            return {}

        features = {}
        for line in reply.lines[1:-1]:
            name, _, params = line.strip().partition(' ')
            if name:
                features[name.upper()] = params
        return features

    # ===== Transfer state =====

    def set_transfer_type(self, transfer_type, byte_size=None):
        with self._session_guard():
            return self.state.ensure_type(transfer_type, byte_size)

    def set_transfer_mode(self, mode):
        with self._session_guard():
            return self.state.ensure_mode(mode)

    def set_file_structure(self, structure):
        with self._session_guard():
            return self.state.ensure_structure(structure)

    # ===== Data transfers =====

    def _open_transfer(self, verb, path, direction, transfer_type, offset=0):
        """
        Negotiate a data connection and start a transfer command

        Returns:
            Transfer, or the negative FTPReply that stopped it
        """
        with self._session_guard():
            reply = self.state.ensure_type(transfer_type)
            if reply is not None and not reply.is_success:
                return reply

            data_conn = self.negotiator.open()
            if data_conn is None:
                return self.control.last_reply

            try:
                if offset:
                    reply = self.control.send_command('REST', offset)
                    if not reply.is_intermediate:
                        data_conn.close()
                        return reply

                args = (path,) if path else ()
                reply = self.control.send_command(verb, *args)
                if not reply.is_preliminary:
                    data_conn.close()
                    return reply

                self.control.begin_transfer()
                data_conn.establish()
            except DataChannelSecurityError:
                data_conn.close()
                # the server still owes a reply for the refused transfer
                if self.control.transfer_active:
                    self.control.complete_transfer()
                raise
            except BaseException:
                data_conn.close()
                raise

        monitor = None
        if self.config.keepalive_idle_timeout > 0:
            monitor = KeepAliveMonitor(
                self.control.send_keepalive,
                self.config.keepalive_idle_timeout,
                progress_aware=self.config.keepalive_progress_aware,
            ).start()

        transfer = Transfer(self, data_conn, direction, path,
                            transfer_type=transfer_type, monitor=monitor,
                            offset=offset, buffer_size=self.config.buffer_size,
                            initial_reply=reply)
        self._active_transfer = transfer
        return transfer

    def _finish_transfer(self):
        """Called by Transfer.close() once the data socket is closed"""
        self._active_transfer = None
        try:
            return self.control.complete_transfer()
        except (TransportError, ProtocolError):
            self._invalidate()
            raise

    def _abort_transfer(self, close_data):
        """Called by Transfer.abort() while the data socket is still open"""
        self._active_transfer = None
        try:
            return self.control.abort_transfer(before_read=close_data)
        except (TransportError, ProtocolError):
            self._invalidate()
            raise

    def retrieve(self, path, offset=0, transfer_type=TransferType.BINARY):
        """
        Start downloading a file

        Args:
            path: Remote file path
            offset: Byte offset for resume (sent with REST)
            transfer_type: TransferType for the download

        Returns:
            Transfer to read from, or the negative FTPReply
        """
        return self._open_transfer('RETR', path, TransferDirection.DOWNLOAD,
                                   transfer_type, offset)

    def store(self, path, offset=0, transfer_type=TransferType.BINARY):
        """
        Start uploading a file

        Returns:
            Transfer to write to, or the negative FTPReply
        """
        return self._open_transfer('STOR', path, TransferDirection.UPLOAD,
                                   transfer_type, offset)

    def append(self, path, transfer_type=TransferType.BINARY):
        """
        Start appending to a remote file

        Returns:
            Transfer to write to, or the negative FTPReply
        """
        return self._open_transfer('APPE', path, TransferDirection.APPEND, transfer_type)

    def store_unique(self, transfer_type=TransferType.BINARY):
        """
        Start uploading under a name the server picks (STOU)

        Returns:
            Transfer to write to, with remote_path set to the server's name
            when its reply announced one, or the negative FTPReply
        """
        transfer = self._open_transfer('STOU', None, TransferDirection.UPLOAD, transfer_type)
        if isinstance(transfer, Transfer):
            transfer.remote_path = ReplyParser.parse_unique_name(transfer.initial_reply)
        return transfer

    # ===== Local file copies =====

    def _copy_from(self, transfer, fileobj, progress_callback):
        """Drain a download into fileobj and return the completion reply"""
        if not isinstance(transfer, Transfer):
            return transfer
        try:
            for chunk in transfer:
                fileobj.write(chunk)
                if progress_callback:
                    progress_callback(transfer.bytes_transferred)
        except FTPError:
            raise
        except BaseException:
            # the local side failed; the server still owes its replies
            if not transfer.closed:
                transfer.abort()
            raise
        return transfer.close()

    def _copy_to(self, transfer, fileobj, progress_callback):
        """Feed fileobj into an upload and return the completion reply"""
        if not isinstance(transfer, Transfer):
            return transfer
        try:
            while True:
                chunk = fileobj.read(transfer.buffer_size)
                if not chunk:
                    break
                transfer.write(chunk)
                if progress_callback:
                    progress_callback(transfer.bytes_transferred)
        except FTPError:
            raise
        except BaseException:
            if not transfer.closed:
                transfer.abort()
            raise
        return transfer.close()

    def retrieve_file(self, path, fileobj, offset=0, transfer_type=TransferType.BINARY,
                      progress_callback=None):
        """
        Download a remote file into a binary file object

        Args:
            path: Remote file path
            fileobj: Object with write(bytes)
            offset: Byte offset for resume (sent with REST)
            transfer_type: TransferType for the download
            progress_callback: Called with bytes_transferred after each chunk

        Returns:
            FTPReply: Completion reply, or the negative reply that refused the transfer
        """
        transfer = self.retrieve(path, offset, transfer_type)
        return self._copy_from(transfer, fileobj, progress_callback)

    def store_file(self, path, fileobj, offset=0, transfer_type=TransferType.BINARY,
                   progress_callback=None):
        """
        Upload a binary file object to a remote path

        Returns:
            FTPReply: Completion reply, or the negative reply that refused the transfer
        """
        transfer = self.store(path, offset, transfer_type)
        return self._copy_to(transfer, fileobj, progress_callback)

    def append_file(self, path, fileobj, transfer_type=TransferType.BINARY,
                    progress_callback=None):
        """Append a binary file object to a remote file (APPE)"""
        transfer = self.append(path, transfer_type)
        return self._copy_to(transfer, fileobj, progress_callback)

    def store_unique_file(self, fileobj, transfer_type=TransferType.BINARY,
                          progress_callback=None):
        """
        Upload a binary file object under a server-chosen name

        Returns:
            tuple: (remote name or None, FTPReply)
        """
        transfer = self.store_unique(transfer_type)
        if not isinstance(transfer, Transfer):
            return None, transfer
        return transfer.remote_path, self._copy_to(transfer, fileobj, progress_callback)

    def abort(self):
        """
        Abort the open transfer (or send a bare ABOR if none is open)

        Returns:
            FTPReply: Final reply
        """
        transfer = self._active_transfer
        if transfer is not None:
            return transfer.abort()
        with self._session_guard():
            return self.control.abort_transfer()

    # ===== Listings =====

    def _read_text_lines(self, verb, path):
        """
        Run a listing command and collect its lines

        Returns:
            list of str, or the negative FTPReply
        """
        transfer = self._open_transfer(verb, path, TransferDirection.DOWNLOAD,
                                       TransferType.ASCII)
        if not isinstance(transfer, Transfer):
            return transfer

        with transfer:
            raw = transfer.read()
        reply = transfer.final_reply
        if not reply.is_success:
            return reply
        return raw.decode(self.config.encoding, errors='replace').splitlines()

    def list_lines(self, path=None):
        """
        Raw LIST output, one string per line (or the negative FTPReply)

        Sends "LIST -a" when config.list_hidden is set.
        """
        if self.config.list_hidden:
            path = f'-a {path}' if path else '-a'
        return self._read_text_lines('LIST', path)

    def name_list(self, path=None):
        """NLST output, one name per line (or the negative FTPReply)"""
        return self._read_text_lines('NLST', path)

    def list(self, path=None):
        """
        List a directory as parsed entries

        Returns:
            list of ListEntry, or the negative FTPReply

        Raises:
            UnrecognizedListingFormatError: No dialect understood the listing
        """
        lines = self.list_lines(path)
        if not isinstance(lines, list):
            return lines

        hint = self.config.system_key
        if hint is None and lines:
            hint = self.system_type()
        return self.listing_parser.parse(lines, hint)

    def mlsd(self, path=None):
        """
        Machine listing (RFC 3659 MLSD) as parsed entries

        Returns:
            list of ListEntry, or the negative FTPReply
        """
        lines = self._read_text_lines('MLSD', path)
        if not isinstance(lines, list):
            return lines
        return self.listing_parser.parse_with(MLSX, lines)
