"""
Normalized file metadata produced from directory listings
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class EntryType(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ListEntry:
    """One line (or joined group of lines) of a directory listing"""

    raw_line: str
    name: str
    type: EntryType = EntryType.FILE
    size: int = 0
    timestamp: Optional[datetime] = None
    permissions: Optional[str] = None
    link_target: Optional[str] = None
    user: Optional[str] = None
    group: Optional[str] = None
    link_count: Optional[int] = None

    @property
    def is_file(self) -> bool:
        return self.type is EntryType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type is EntryType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.type is EntryType.SYMLINK
