"""
Reply parsing for the FTP control connection
Turns raw server lines into structured replies
"""

import ipaddress
import re

from .errors import ConnectionClosedError, MalformedReplyError, NegativeReplyError

REPLY_CODE_LEN = 3

_CODE_PATTERN = re.compile(r'^\d{3}')
_PASV_PATTERN = re.compile(r'\((\d+),(\d+),(\d+),(\d+),(\d+),(\d+)\)')
_EPSV_PATTERN = re.compile(r'\(([^)]*)\)')
_UNIQUE_NAME_PATTERN = re.compile(r'FILE:\s*(.+?)\s*$', re.IGNORECASE)


class FTPReply:
    """Represents an FTP server reply"""

    def __init__(self, code, lines, raw_lines=None):
        """
        Initialize FTP reply

        Args:
            code: Reply code (e.g., 220, 230)
            lines: Message lines with the code prefixes removed
            raw_lines: Lines exactly as received from the server
        """
        self.code = code
        self.lines = list(lines)
        self.raw_lines = list(raw_lines) if raw_lines is not None else list(lines)

    @property
    def message(self):
        """Message text, one line per reply line"""
        return '\n'.join(self.lines)

    @property
    def is_preliminary(self):
        """Check if reply is preliminary (1xx)"""
        return 100 <= self.code < 200

    @property
    def is_success(self):
        """Check if reply indicates success (2xx)"""
        return 200 <= self.code < 300

    @property
    def is_intermediate(self):
        """Check if reply is intermediate (3xx)"""
        return 300 <= self.code < 400

    @property
    def is_negative(self):
        """Check if reply is a failure (4xx or 5xx)"""
        return self.code >= 400

    @property
    def is_transient_error(self):
        """Check if reply is transient error (4xx)"""
        return 400 <= self.code < 500

    @property
    def is_permanent_error(self):
        """Check if reply is permanent error (5xx)"""
        return 500 <= self.code < 600

    def raise_for_status(self):
        """Raise NegativeReplyError for 4xx/5xx replies, return self otherwise"""
        if self.is_negative:
            raise NegativeReplyError(self)
        return self

    def __str__(self):
        """String representation"""
        return f"{self.code} {self.message}"

    def __repr__(self):
        """Debug representation"""
        return f"FTPReply(code={self.code}, lines={self.lines!r})"


class ReplyReader:
    """
    Reads one complete reply per call from a line source

    The line source is a callable returning the next line without its
    terminator, or None once the stream has ended.
    """

    def __init__(self, read_line):
        self._read_line = read_line

    @classmethod
    def from_text(cls, text):
        """Build a reader over an in-memory block of reply text"""
        lines = iter(text.splitlines())
        return cls(lambda: next(lines, None))

    def read_reply(self):
        """
        Read a single (possibly multi-line) reply

        Returns:
            FTPReply: Parsed reply

        Raises:
            ConnectionClosedError: The stream ended before any reply line
            MalformedReplyError: Bad code, bad separator or bad terminator
        """
        first_line = self._read_line()
        if first_line is None:
            raise ConnectionClosedError("Connection closed without indication")

        if not _CODE_PATTERN.match(first_line):
            raise MalformedReplyError(f"Could not parse reply code: {first_line!r}", first_line)

        code_text = first_line[:REPLY_CODE_LEN]
        code = int(code_text)

        if len(first_line) == REPLY_CODE_LEN:
            return FTPReply(code, [''], [first_line])

        separator = first_line[REPLY_CODE_LEN]
        if separator == ' ':
            return FTPReply(code, [first_line[REPLY_CODE_LEN + 1:]], [first_line])
        if separator != '-':
            raise MalformedReplyError(f"Invalid reply separator: {first_line!r}", first_line)

        raw_lines = [first_line]
        lines = [first_line[REPLY_CODE_LEN + 1:]]
        while True:
            line = self._read_line()
            if line is None:
                raise MalformedReplyError(
                    f"Stream ended inside multi-line {code_text} reply", raw_lines[-1])
            raw_lines.append(line)

            if line == code_text or line.startswith(code_text + ' '):
                lines.append(line[REPLY_CODE_LEN + 1:])
                return FTPReply(code, lines, raw_lines)

            if _is_terminator(line):
                raise MalformedReplyError(
                    f"Multi-line {code_text} reply terminated by {line[:REPLY_CODE_LEN]}", line)

            if line.startswith(code_text + '-'):
                line = line[REPLY_CODE_LEN + 1:]
            lines.append(line)


def _is_terminator(line):
    return (len(line) > REPLY_CODE_LEN and _CODE_PATTERN.match(line)
            and line[REPLY_CODE_LEN] == ' ')


class ReplyParser:
    """Extracts structured values from the text of specific replies"""

    @staticmethod
    def parse_pasv_reply(reply):
        """
        Parse PASV reply to extract host and port

        Args:
            reply: FTPReply object from PASV command

        Returns:
            tuple: (host, port)

        Example:
            "227 Entering Passive Mode (192,168,1,1,234,56)"
            Returns: ("192.168.1.1", 60024)  # 234*256 + 56
        """
        match = _PASV_PATTERN.search(reply.message)
        if not match:
            raise MalformedReplyError(f"Could not parse passive host information: {reply}")

        numbers = [int(part) for part in match.groups()]
        if any(n > 255 for n in numbers):
            raise MalformedReplyError(f"Passive host information out of range: {reply}")

        h1, h2, h3, h4, p1, p2 = numbers
        return f"{h1}.{h2}.{h3}.{h4}", p1 * 256 + p2

    @staticmethod
    def parse_epsv_reply(reply):
        """
        Parse EPSV reply to extract the data port

        Args:
            reply: FTPReply object from EPSV command

        Returns:
            int: Port number

        Example:
            "229 Entering Extended Passive Mode (|||6446|)"
            Returns: 6446
        """
        match = _EPSV_PATTERN.search(reply.message)
        if not match:
            raise MalformedReplyError(f"Could not parse extended passive reply: {reply}")

        body = match.group(1)
        if len(body) < 5:
            raise MalformedReplyError(f"Could not parse extended passive reply: {reply}")

        delim = body[0]
        fields = body.split(delim)
        # "|||6446|" splits into ['', '', '', '6446', '']
        if len(fields) != 5 or body[1] != delim or body[2] != delim or fields[4] != '':
            raise MalformedReplyError(f"Bad delimiters in extended passive reply: {reply}")

        try:
            port = int(fields[3])
        except ValueError:
            raise MalformedReplyError(f"Bad port in extended passive reply: {reply}") from None
        if not 0 < port < 65536:
            raise MalformedReplyError(f"Port out of range in extended passive reply: {reply}")
        return port

    @staticmethod
    def format_port_argument(host, port):
        """
        Format PORT command argument

        Args:
            host: IPv4 address string (e.g., "192.168.1.1")
            port: Port number

        Returns:
            str: Formatted argument (e.g., "192,168,1,1,234,56")
        """
        address = ipaddress.ip_address(host)
        if address.version != 4:
            raise ValueError(f"PORT requires an IPv4 address: {host}")

        octets = str(address).split('.')
        return ','.join(octets + [str(port // 256), str(port % 256)])

    @staticmethod
    def format_eprt_argument(host, port):
        """
        Format EPRT command argument (RFC 2428)

        Example:
            format_eprt_argument("::1", 5282)
            Returns: "|2|::1|5282|"
        """
        address = ipaddress.ip_address(host)
        family = 1 if address.version == 4 else 2
        return f"|{family}|{address}|{port}|"

    @staticmethod
    def parse_size_reply(reply):
        """
        Parse SIZE reply to extract file size

        Returns:
            int: File size in bytes, or None if unavailable
        """
        if not reply.is_success:
            return None

        try:
            return int(reply.message.strip())
        except ValueError:
            return None

    @staticmethod
    def parse_pwd_reply(reply):
        """
        Parse PWD reply to extract current directory

        Example:
            '257 "/home/user" is current directory'
            Returns: "/home/user"
        """
        if not reply.is_success:
            return None

        match = re.search(r'"((?:[^"]|"")*)"', reply.message)
        if match:
            return match.group(1).replace('""', '"')

        return None

    @staticmethod
    def parse_unique_name(reply):
        """
        Server-chosen file name from a STOU preliminary reply (RFC 1123 4.1.2.9)

        Example:
            "150 FILE: upload.1"
            Returns: "upload.1"
        """
        if reply is None:
            return None
        match = _UNIQUE_NAME_PATTERN.search(reply.message)
        return match.group(1) if match else None
