"""
Command formatting and the login exchange
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)

# Replies that steer the login exchange (RFC 959 5.4)
COMMAND_SUPERFLUOUS = 202
USER_LOGGED_IN = 230
NEED_PASSWORD = 331
NEED_ACCOUNT = 332
SERVICE_NOT_AVAILABLE = 421

_MASKED_VERBS = ('PASS', 'ACCT')


def format_command(verb, *args):
    """
    Format command line for sending (without CRLF)

    Args:
        verb: Command name
        *args: Command arguments

    Returns:
        str: e.g. "RETR file.txt"
    """
    verb = verb.upper()
    for arg in args:
        if '\r' in str(arg) or '\n' in str(arg):
            raise ValueError(f"Line breaks are not allowed in {verb} arguments")
    if args:
        return f"{verb} {' '.join(str(a) for a in args)}"
    return verb


def loggable_command(verb, *args):
    """Command line with secrets replaced, for logging"""
    if verb.upper() in _MASKED_VERBS and args:
        return f"{verb.upper()} ******"
    return format_command(verb, *args)


class LoginState(Enum):
    """Where the login exchange currently stands"""
    NOT_STARTED = "not_started"
    AWAITING_PASSWORD = "awaiting_password"
    AWAITING_ACCOUNT = "awaiting_account"
    LOGGED_IN = "logged_in"
    FAILED = "failed"
    CLOSED = "closed"


class Authenticator:
    """Drives USER / PASS / ACCT over a control connection"""

    def __init__(self, control):
        """
        Args:
            control: ControlConnection to authenticate
        """
        self.control = control
        self.state = LoginState.NOT_STARTED

    @property
    def is_logged_in(self):
        return self.state is LoginState.LOGGED_IN

    def login(self, username, password, account=None):
        """
        Run the login exchange

        Args:
            username: User name
            password: Password (sent only if the server asks)
            account: Account information (sent only if the server asks)

        Returns:
            FTPReply: The last reply of the exchange
        """
        self.state = LoginState.NOT_STARTED
        reply = self.control.send_command('USER', username)
        self._advance(reply)

        if self.state is LoginState.AWAITING_PASSWORD:
            reply = self.control.send_command('PASS', password)
            self._advance(reply)

        if self.state is LoginState.AWAITING_ACCOUNT:
            if account is None:
                logger.debug("Server requested an account but none was given")
                return reply
            reply = self.control.send_command('ACCT', account)
            self._advance(reply)

        return reply

    def _advance(self, reply):
        if reply.code in (USER_LOGGED_IN, COMMAND_SUPERFLUOUS):
            self.state = LoginState.LOGGED_IN
        elif reply.code == NEED_PASSWORD and self.state is LoginState.NOT_STARTED:
            self.state = LoginState.AWAITING_PASSWORD
        elif reply.code == NEED_ACCOUNT and self.state is not LoginState.AWAITING_ACCOUNT:
            self.state = LoginState.AWAITING_ACCOUNT
        elif reply.code == SERVICE_NOT_AVAILABLE:
            self.state = LoginState.CLOSED
        else:
            self.state = LoginState.FAILED

        if self.state is LoginState.FAILED:
            logger.info("Login failed: %s", reply)

    def reset(self):
        self.state = LoginState.NOT_STARTED
