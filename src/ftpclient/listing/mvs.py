"""
MVS / z/OS listings: dataset lists and PDS member lists

    Volume Unit    Referred Ext Used Recfm Lrecl BlkSz Dsorg Dsname
    SAVE00 3390   2004/06/23  1    1  FB     128  6144  PS  INCOMING.RPTBM023.D061704
    SAVE01 3390   2004/06/23  1    3  FB     128  6144  PO  INCOMING.SOURCE
    Migrated                                                INCOMING.RPTBM024.D061704

    Name     VV.MM   Created       Changed      Size  Init   Mod   Id
    TBSHELF   01.03 2002/09/12 2002/10/11 09:37    11    11     0 KIL001
"""

import re

from .dialect import ListingDialect, build_timestamp
from .entry import EntryType, ListEntry

DATASET_RE = re.compile(
    r'^(?P<volume>\S+)\s+(?P<unit>\S+)\s+'
    r'(?P<referred>\d{4}/\d{2}/\d{2}|\*\*NONE\*\*)\s+'
    r'\d+\s+\d+\s+'
    r'(?P<recfm>\S+)\s+\d+\s+\d+\s+'
    r'(?P<dsorg>\S+)\s+'
    r'(?P<name>\S+)\s*$'
)

MIGRATED_RE = re.compile(r'^Migrated\s+(?P<name>\S+)\s*$', re.IGNORECASE)

MEMBER_RE = re.compile(
    r'^(?P<name>\S+)\s+\d+\.\d+\s+'
    r'\d{4}/\d{2}/\d{2}\s+'
    r'(?P<date>\d{4}/\d{2}/\d{2})\s+(?P<time>\d{2}:\d{2})(?::\d{2})?\s+'
    r'\d+\s+\d+\s+\d+\s+\S+\s*$'
)

IGNORE = (
    re.compile(r'^Volume\s+Unit\s', re.IGNORECASE),
    re.compile(r'^Name\s+VV\.MM\s', re.IGNORECASE),
)


def _member_timestamp(date_text, time_text):
    year, month, day = (int(part) for part in date_text.split('/'))
    hour, minute = (int(part) for part in time_text.split(':'))
    return build_timestamp(year, month, day, hour, minute)


def parse_line(line, now=None):
    match = DATASET_RE.match(line)
    if match:
        # partitioned datasets hold members, so they behave like directories
        is_dir = match.group('dsorg').upper().startswith('PO')
        return ListEntry(raw_line=line, name=match.group('name'),
                         type=EntryType.DIRECTORY if is_dir else EntryType.FILE)

    match = MIGRATED_RE.match(line)
    if match:
        return ListEntry(raw_line=line, name=match.group('name'), type=EntryType.FILE)

    match = MEMBER_RE.match(line)
    if match:
        return ListEntry(raw_line=line, name=match.group('name'), type=EntryType.FILE,
                         timestamp=_member_timestamp(match.group('date'), match.group('time')))
    return None


MVS = ListingDialect(
    name='mvs',
    system_keys=('MVS', 'Z/OS', 'OS/390'),
    parse_line=parse_line,
    ignore_patterns=IGNORE,
)
