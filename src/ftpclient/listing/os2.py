"""
OS/2 listings

        0           DIR   05-12-97   16:44  PSFONTS
    36611      A          04-23-103  10:57  OS2 test1.file
"""

import re

from .dialect import ListingDialect, build_timestamp, expand_two_digit_year, parse_size
from .entry import EntryType, ListEntry

LINE_RE = re.compile(
    r'^\s*(?P<size>\d+)\s+'
    r'(?P<attrs>(?:\S+\s+)*?)'
    r'(?P<month>\d{2})-(?P<day>\d{2})-(?P<year>\d{2,3})\s+'
    r'(?P<hour>\d{1,2}):(?P<minute>\d{2})\s+'
    r'(?P<name>.+)$'
)


def _year(text):
    # some servers print years since 1900 ("103" for 2003)
    if len(text) == 3:
        return 1900 + int(text)
    return expand_two_digit_year(int(text))


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    attrs = match.group('attrs').split()
    is_dir = 'DIR' in attrs
    timestamp = build_timestamp(_year(match.group('year')), int(match.group('month')),
                                int(match.group('day')), int(match.group('hour')),
                                int(match.group('minute')))
    return ListEntry(
        raw_line=line,
        name=match.group('name'),
        type=EntryType.DIRECTORY if is_dir else EntryType.FILE,
        size=0 if is_dir else parse_size(match.group('size')),
        timestamp=timestamp,
        permissions=''.join(attr for attr in attrs if attr != 'DIR') or None,
    )


OS2 = ListingDialect(
    name='os2',
    system_keys=('OS/2',),
    parse_line=parse_line,
)
