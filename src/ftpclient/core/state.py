"""
Transfer state tracking
Remembers negotiated TYPE/MODE/STRU so redundant commands are not sent
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class TransferType(Enum):
    """Representation types (RFC 959 TYPE)"""
    ASCII = "A"
    BINARY = "I"
    EBCDIC = "E"
    LOCAL = "L"


class TransferMode(Enum):
    """Transmission modes (RFC 959 MODE)"""
    STREAM = "S"
    BLOCK = "B"
    COMPRESSED = "C"


class FileStructure(Enum):
    """File structures (RFC 959 STRU)"""
    FILE = "F"
    RECORD = "R"
    PAGE = "P"


class TransferState:
    """Values the server has acknowledged; None means never negotiated"""

    def __init__(self):
        self.type = None
        self.mode = None
        self.structure = None

    def __repr__(self):
        return f"TransferState(type={self.type}, mode={self.mode}, structure={self.structure})"


class TransferStateTracker:
    """Sends mode-setting commands only when the requested value changes"""

    def __init__(self, control):
        """
        Args:
            control: ControlConnection used to issue commands
        """
        self.control = control
        self.state = TransferState()

    def reset(self):
        """Forget everything, e.g. after reconnecting"""
        self.state = TransferState()

    def ensure_type(self, transfer_type, byte_size=None):
        """
        Make sure the server uses the given representation type

        Args:
            transfer_type: TransferType member
            byte_size: Logical byte size, required for TransferType.LOCAL

        Returns:
            FTPReply or None if the type was already in effect
        """
        if transfer_type is TransferType.LOCAL:
            if not byte_size:
                raise ValueError("TransferType.LOCAL requires a byte size")
            wanted = (transfer_type, int(byte_size))
            args = (transfer_type.value, str(int(byte_size)))
        else:
            wanted = (transfer_type, None)
            args = (transfer_type.value,)

        return self._ensure('type', wanted, 'TYPE', args)

    def ensure_mode(self, mode):
        """Make sure the server uses the given transmission mode"""
        return self._ensure('mode', mode, 'MODE', (mode.value,))

    def ensure_structure(self, structure):
        """Make sure the server uses the given file structure"""
        return self._ensure('structure', structure, 'STRU', (structure.value,))

    def _ensure(self, attribute, wanted, verb, args):
        if getattr(self.state, attribute) == wanted:
            return None

        reply = self.control.send_command(verb, *args)
        if reply.is_success:
            setattr(self.state, attribute, wanted)
        else:
            logger.debug("%s %s refused: %s", verb, ' '.join(args), reply)
        return reply

    @property
    def current_type(self):
        """The cached TransferType, or None"""
        return self.state.type[0] if self.state.type else None
