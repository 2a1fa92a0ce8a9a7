"""
FTP client library: control/data connections, transfers and listing parsing
"""

import logging

from .core import (FTPClient, FTPClientConfig, FTPReply, Transfer, TransferType,
                   TransferMode, FileStructure, DataChannelMode, FTPError,
                   TransportError, ConnectionClosedError, TransportTimeoutError,
                   ProtocolError, MalformedReplyError, NegativeReplyError,
                   DataChannelSecurityError, UnrecognizedListingFormatError,
                   SessionBusyError)
from .listing import EntryType, ListEntry, ListingDialect, ListingParser

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ['FTPClient', 'FTPClientConfig', 'FTPReply', 'Transfer', 'TransferType',
           'TransferMode', 'FileStructure', 'DataChannelMode', 'FTPError',
           'TransportError', 'ConnectionClosedError', 'TransportTimeoutError',
           'ProtocolError', 'MalformedReplyError', 'NegativeReplyError',
           'DataChannelSecurityError', 'UnrecognizedListingFormatError',
           'SessionBusyError', 'EntryType', 'ListEntry', 'ListingDialect',
           'ListingParser']
