"""
OpenVMS listings

    Directory USER1:[TEMP]

    1-JUN.LIS;1              9/9           2-JUN-1998 07:32 [GROUP,OWNER]    (RWED,RWED,RWED,RE)
    VERYLONGFILENAME_FOR_TESTING.TXT;3
                             4/6          12-FEB-2001 15:01:22 [USER1]  (RWED,RWED,,)

    Total of 2 files, 13/15 blocks.

Long names push the rest of the entry onto the following line, so
lines are joined before parsing.
"""

import re

from .dialect import ListingDialect, build_timestamp, month_number
from .entry import EntryType, ListEntry

BLOCK_SIZE = 512

LINE_RE = re.compile(
    r'^(?P<name>[^\s;]+);(?P<version>\d+)\s+'
    r'(?P<blocks>\d+)(?:/\d+)?\s+'
    r'(?P<day>\d{1,2})-(?P<month>[A-Za-z]{3})-(?P<year>\d{4})\s+'
    r'(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?(?:\.\d+)?'
    r'(?:\s+\[(?P<owner>[^\]]*)\])?'
    r'(?:\s+\((?P<perms>[^)]*)\))?\s*$'
)

NAME_ONLY_RE = re.compile(r'^[^\s;]+;\d+\s*$')

IGNORE = (
    re.compile(r'^Directory\s', re.IGNORECASE),
    re.compile(r'^Total of\s', re.IGNORECASE),
    re.compile(r'^Grand total of\s', re.IGNORECASE),
)


def join_lines(lines):
    """Merge a bare "NAME;version" line with the line that continues it"""
    joined = []
    pending = None
    for line in lines:
        if pending is not None:
            if line.strip():
                joined.append(f"{pending} {line.strip()}")
                pending = None
                continue
            joined.append(pending)
            pending = None
        if NAME_ONLY_RE.match(line):
            pending = line.rstrip()
        else:
            joined.append(line)
    if pending is not None:
        joined.append(pending)
    return joined


def _owner(text):
    if text is None:
        return None, None
    if ',' in text:
        group, user = text.split(',', 1)
        return user, group
    return text, None


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    month = month_number(match.group('month'))
    if month is None:
        return None

    name = match.group('name')
    user, group = _owner(match.group('owner'))
    timestamp = build_timestamp(int(match.group('year')), month, int(match.group('day')),
                                int(match.group('hour')), int(match.group('minute')),
                                int(match.group('second') or 0))
    return ListEntry(
        raw_line=line,
        name=name,
        type=EntryType.DIRECTORY if name.upper().endswith('.DIR') else EntryType.FILE,
        size=int(match.group('blocks')) * BLOCK_SIZE,
        timestamp=timestamp,
        permissions=match.group('perms'),
        user=user,
        group=group,
    )


VMS = ListingDialect(
    name='vms',
    system_keys=('VMS',),
    parse_line=parse_line,
    ignore_patterns=IGNORE,
    needs_lookahead=True,
    join_lines=join_lines,
)
