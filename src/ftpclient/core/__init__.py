from .errors import (FTPError, TransportError, ConnectionClosedError,
                     TransportTimeoutError, ProtocolError, MalformedReplyError,
                     NegativeReplyError, DataChannelSecurityError,
                     UnrecognizedListingFormatError, SessionBusyError)
from .reply import FTPReply, ReplyReader, ReplyParser
from .state import TransferType, TransferMode, FileStructure, TransferStateTracker
from .config import FTPClientConfig
from .negotiator import DataChannelMode, DataChannelNegotiator
from .connection import ControlConnection, DataConnection
from .commands import Authenticator, LoginState
from .keepalive import KeepAliveMonitor
from .transfer import Transfer, TransferDirection, TransferStatus
from .client import FTPClient

__all__ = ['FTPError', 'TransportError', 'ConnectionClosedError',
           'TransportTimeoutError', 'ProtocolError', 'MalformedReplyError',
           'NegativeReplyError', 'DataChannelSecurityError',
           'UnrecognizedListingFormatError', 'SessionBusyError',
           'FTPReply', 'ReplyReader', 'ReplyParser',
           'TransferType', 'TransferMode', 'FileStructure', 'TransferStateTracker',
           'FTPClientConfig',
           'DataChannelMode', 'DataChannelNegotiator',
           'ControlConnection', 'DataConnection',
           'Authenticator', 'LoginState',
           'KeepAliveMonitor',
           'Transfer', 'TransferDirection', 'TransferStatus',
           'FTPClient']
