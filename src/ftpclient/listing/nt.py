"""
Windows NT / IIS "MS-DOS style" listings

    05-26-95  10:57AM       <DIR>          incoming
    01-29-1997  11:32PM             4096 readme.txt
"""

import re

from .dialect import ListingDialect, build_timestamp, expand_two_digit_year, parse_size
from .entry import EntryType, ListEntry

LINE_RE = re.compile(
    r'^(?P<month>\d{2})-(?P<day>\d{2})-(?P<year>\d{2}|\d{4})\s+'
    r'(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<ampm>[AaPp][Mm])?\s+'
    r'(?:(?P<dir><DIR>)|(?P<size>\d+))\s+'
    r'(?P<name>.+)$'
)

# the current and parent directory are not entries
IGNORE = (re.compile(r'^\d{2}-\d{2}-\d{2,4}\s+\S+(?:\s*[AaPp][Mm])?\s+<DIR>\s+\.{1,2}\s*$'),)


def _hour24(hour, ampm):
    if not ampm:
        return hour
    hour %= 12
    return hour + 12 if ampm.upper() == 'PM' else hour


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    name = match.group('name')
    if name in ('.', '..'):
        return None

    year = expand_two_digit_year(int(match.group('year')))
    hour = _hour24(int(match.group('hour')), match.group('ampm'))
    timestamp = build_timestamp(year, int(match.group('month')), int(match.group('day')),
                                hour, int(match.group('minute')))

    if match.group('dir'):
        return ListEntry(raw_line=line, name=name, type=EntryType.DIRECTORY,
                         timestamp=timestamp)
    return ListEntry(raw_line=line, name=name, type=EntryType.FILE,
                     size=parse_size(match.group('size')), timestamp=timestamp)


NT = ListingDialect(
    name='nt',
    system_keys=('WINDOWS', 'WIN32'),
    parse_line=parse_line,
    ignore_patterns=IGNORE,
)
