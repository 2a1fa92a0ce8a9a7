"""
RFC 3659 machine listings (MLSD / MLST)

    type=file;size=1024;modify=20200101120000;UNIX.mode=0644; notes.txt
    type=dir;modify=20191231235959.250; pub
    type=OS.unix=slink:/usr/bin;modify=20200101120000; bin

Facts are case-insensitive. The modify time is always UTC.
"""

import re
from datetime import datetime, timezone

from .dialect import ListingDialect, parse_size
from .entry import EntryType, ListEntry

# the listed directory and its parent are not entries
IGNORE = (re.compile(r'^(?:[^ ]*;)?type=[cp]dir;', re.IGNORECASE),)

_TIME_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(?:\.(\d{1,6}))?$')

_TYPES = {
    'file': EntryType.FILE,
    'dir': EntryType.DIRECTORY,
    'cdir': EntryType.DIRECTORY,
    'pdir': EntryType.DIRECTORY,
}

_SLINK = 'os.unix=slink'


def parse_time(value):
    """YYYYMMDDHHMMSS[.sss] -> aware UTC datetime, None if malformed"""
    match = _TIME_RE.match(value)
    if not match:
        return None
    *fields, fraction = match.groups()
    micro = int(fraction.ljust(6, '0')) if fraction else 0
    try:
        return datetime(*(int(part) for part in fields), micro, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_facts(text):
    """
    Split "fact=value;fact=value;" into a dict keyed by lower-case name

    Returns:
        dict, or None when the text is not a fact list
    """
    if not text.endswith(';'):
        return None
    facts = {}
    for fact in text[:-1].split(';'):
        name, sep, value = fact.partition('=')
        if not sep or not name:
            return None
        facts[name.lower()] = value
    return facts


def _entry_type(type_fact):
    lowered = type_fact.lower()
    if lowered.startswith(_SLINK):
        target = type_fact[len(_SLINK) + 1:] or None
        return EntryType.SYMLINK, target
    return _TYPES.get(lowered, EntryType.UNKNOWN), None


def parse_line(line, now=None):
    # fact-less (" name") lines are not accepted
    fact_text, _, name = line.partition(' ')
    if not fact_text or not name:
        return None
    facts = parse_facts(fact_text)
    if facts is None:
        return None

    entry_type, target = _entry_type(facts.get('type', ''))

    mode = facts.get('unix.mode')
    return ListEntry(
        raw_line=line,
        name=name,
        type=entry_type,
        size=parse_size(facts.get('size', facts.get('sizd'))),
        timestamp=parse_time(facts['modify']) if 'modify' in facts else None,
        permissions=mode if mode is not None else facts.get('perm'),
        link_target=target,
        user=facts.get('unix.owner') or facts.get('unix.uid'),
        group=facts.get('unix.group') or facts.get('unix.gid'),
    )


MLSX = ListingDialect(
    name='mlsx',
    system_keys=(),
    parse_line=parse_line,
    ignore_patterns=IGNORE,
)
