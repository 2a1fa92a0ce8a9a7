"""
OS/400 (IBM i) listings

    PEP             4096 00/11/28 15:43:47 *DIR       bin/
    PEP            36864 05/03/04 08:26:10 *STMF      readme.txt
    QSYS                                   *MEM       MYFILE.MBR
"""

import re

from .dialect import ListingDialect, build_timestamp, expand_two_digit_year, parse_size
from .entry import EntryType, ListEntry

LINE_RE = re.compile(
    r'^(?P<owner>\S+)\s+'
    r'(?:(?P<size>\d+)\s+)?'
    r'(?:(?P<date>\d{2}/\d{2}/\d{2})\s+(?P<time>\d{2}:\d{2}:\d{2})\s+)?'
    r'(?P<kind>\*STMF|\*DIR|\*DDIR|\*FILE|\*MEM|\*DOC)\s+'
    r'(?P<name>\S.*?)\s*$'
)

_DIRECTORY_KINDS = ('*DIR', '*DDIR')


def _timestamp(date_text, time_text):
    if not date_text:
        return None
    year, month, day = (int(part) for part in date_text.split('/'))
    hour, minute, second = (int(part) for part in time_text.split(':'))
    return build_timestamp(expand_two_digit_year(year), month, day, hour, minute, second)


def parse_line(line, now=None):
    match = LINE_RE.match(line)
    if not match:
        return None

    is_dir = match.group('kind') in _DIRECTORY_KINDS
    name = match.group('name')
    if is_dir:
        name = name.rstrip('/') or name

    return ListEntry(
        raw_line=line,
        name=name,
        type=EntryType.DIRECTORY if is_dir else EntryType.FILE,
        size=parse_size(match.group('size')),
        timestamp=_timestamp(match.group('date'), match.group('time')),
        user=match.group('owner'),
    )


OS400 = ListingDialect(
    name='os400',
    system_keys=('OS/400', 'OS400'),
    parse_line=parse_line,
)
