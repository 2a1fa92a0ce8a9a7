"""
Novell NetWare listings

    d [R----F--] supervisor            512       Jan 16 18:53    login
    - [RWCEAFMS] rhiggins           4096       May 15  2003    notes.txt
"""

import re
from datetime import datetime

from .dialect import ListingDialect, parse_size
from .entry import EntryType, ListEntry
from .unix import parse_date

LINE_RE = re.compile(
    r'^(?P<type>[d-])\s+\[(?P<perms>[-RWCEAFMS]+)\]\s+'
    r'(?P<owner>\S+)\s+'
    r'(?P<size>\d+)\s+'
    r'(?P<date>[A-Za-z]{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{2}|\d{4}))\s+'
    r'(?P<name>.+)$'
)


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    is_dir = match.group('type') == 'd'
    return ListEntry(
        raw_line=line,
        name=match.group('name'),
        type=EntryType.DIRECTORY if is_dir else EntryType.FILE,
        size=parse_size(match.group('size')),
        timestamp=parse_date(match.group('date'), now or datetime.now()),
        permissions=match.group('perms'),
        user=match.group('owner'),
    )


NETWARE = ListingDialect(
    name='netware',
    system_keys=('NETWARE',),
    parse_line=parse_line,
)
