"""
Unix "ls -l" style listings

    drwxr-xr-x   2 ftp      ftp          4096 Mar  3 12:01 pub
    lrwxrwxrwx   1 root     root            7 Jan  1  2020 bin -> usr/bin
    crw-rw-rw-   1 root     tty       5,   0 2021-04-02 09:15 tty
"""

import re
from datetime import datetime

from .dialect import (ListingDialect, build_timestamp, month_number, parse_size,
                      recent_timestamp)
from .entry import EntryType, ListEntry

LINE_RE = re.compile(
    r'^(?P<type>[bcdelfmpSs-])'
    r'(?P<perms>[r-][w-][xsStTL-][r-][w-][xsStTL-][r-][w-][xsStTL-])[+@.]?\s*'
    r'(?P<links>\d+)\s+'
    r'(?:(?P<user>\S+)\s+)?'
    r'(?:(?P<group>\S+)\s+)?'
    r'(?P<size>\d+(?:,\s*\d+)?)\s+'
    r'(?P<date>\d{4}-\d{2}-\d{2}\s+\d{1,2}:\d{2}'
    r'|[A-Za-z]{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{2}|\d{4})'
    r'|\d{1,2}\s+[A-Za-z]{3}\s+(?:\d{1,2}:\d{2}|\d{4}))'
    r'\s(?P<name>.+)$'
)

IGNORE = (re.compile(r'^total\s+\d+\s*$', re.IGNORECASE),)

_ISO_RE = re.compile(r'(\d{4})-(\d{2})-(\d{2})\s+(\d{1,2}):(\d{2})$')

_TYPES = {
    'd': EntryType.DIRECTORY,
    'l': EntryType.SYMLINK,
}


def parse_date(text, now):
    """Convert one of the three ls date layouts to a datetime (or None)"""
    iso = _ISO_RE.match(text)
    if iso:
        return build_timestamp(*(int(part) for part in iso.groups()))

    first, second, last = text.split()
    if first.isdigit():
        day, month = int(first), month_number(second)
    else:
        month, day = month_number(first), int(second)
    if month is None:
        return None

    if ':' in last:
        hour, minute = (int(part) for part in last.split(':'))
        return recent_timestamp(month, day, hour, minute, now)
    return build_timestamp(int(last), month, day)


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    now = now or datetime.now()
    kind = match.group('type')
    entry_type = _TYPES.get(kind, EntryType.FILE)

    # device files show "major, minor" instead of a size
    size_text = match.group('size')
    size = 0 if ',' in size_text else parse_size(size_text)

    name = match.group('name')
    target = None
    if entry_type is EntryType.SYMLINK and ' -> ' in name:
        name, target = name.split(' -> ', 1)

    return ListEntry(
        raw_line=line,
        name=name,
        type=entry_type,
        size=size,
        timestamp=parse_date(match.group('date'), now),
        permissions=match.group('perms'),
        link_target=target,
        user=match.group('user'),
        group=match.group('group'),
        link_count=int(match.group('links')),
    )


UNIX = ListingDialect(
    name='unix',
    system_keys=('UNIX', 'L8', 'LINUX', 'BSD', 'MACOS', 'DARWIN'),
    parse_line=parse_line,
    ignore_patterns=IGNORE,
)
