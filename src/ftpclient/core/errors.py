"""
Exception hierarchy for the FTP engine
Transport and protocol errors are fatal for a session, the rest are recoverable
"""


class FTPError(Exception):
    """Base class for every error raised by the package"""


class TransportError(FTPError):
    """Socket level failure (reset, refused, closed). Invalidates the session."""


class ConnectionClosedError(TransportError):
    """The peer closed the control connection without a reply"""


class TransportTimeoutError(TransportError):
    """A control read or data connect/accept/read timed out"""


class ProtocolError(FTPError):
    """The server broke the reply grammar. Invalidates the session."""


class MalformedReplyError(ProtocolError):
    """A reply line or multi-line terminator could not be parsed"""

    def __init__(self, message, line=None):
        super().__init__(message)
        self.line = line


class NegativeReplyError(FTPError):
    """
    Raised only on request, by FTPReply.raise_for_status()

    Negative replies are normally handed back to the caller as data.
    """

    def __init__(self, reply):
        super().__init__(str(reply))
        self.reply = reply


class DataChannelSecurityError(FTPError):
    """The data connection peer is not the control connection peer"""

    def __init__(self, peer, expected):
        super().__init__(
            f"Host attempting data connection {peer} is not same as server {expected}")
        self.peer = peer
        self.expected = expected


class UnrecognizedListingFormatError(FTPError):
    """No listing dialect could make sense of a directory listing"""

    def __init__(self, lines, total=None, dialect=None):
        """
        Args:
            lines: Lines left unparsed by the closest dialect
            total: Number of non-empty lines in the listing
            dialect: Name of the closest dialect, if any parsed a line
        """
        total = len(lines) if total is None else total
        preview = '; '.join(lines[:3])
        closest = f" (closest: {dialect})" if dialect else ""
        super().__init__(f"Unrecognized listing format, {len(lines)} of {total} lines "
                         f"unparsed{closest}: {preview}")
        self.lines = list(lines)
        self.total = total
        self.dialect = dialect


class SessionBusyError(FTPError):
    """A command was issued while a data transfer is still open"""
