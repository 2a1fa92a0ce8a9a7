"""
Listing parser
Selects a dialect for a raw LIST response and turns it into ListEntry objects
"""

import logging
from datetime import datetime

from ..core.errors import UnrecognizedListingFormatError
from .mlsx import MLSX
from .mvs import MVS
from .netware import NETWARE
from .nt import NT
from .os2 import OS2
from .os400 import OS400
from .unix import UNIX
from .vms import VMS

logger = logging.getLogger(__name__)

# Detection order when the system hint does not settle it
DEFAULT_DIALECTS = (MLSX, UNIX, NT, OS2, VMS, OS400, MVS, NETWARE)


class ListingParser:
    """
    Registry of listing dialects plus format auto-detection

    A dialect qualifies for a listing when it parses at least one line and
    leaves no more than max_unparsed_fraction of the remaining lines
    unparsed. Header and footer lines matched by the dialect's
    ignore_patterns do not count either way.
    """

    def __init__(self, dialects=DEFAULT_DIALECTS, max_unparsed_fraction=0.25,
                 allow_empty=False, now=None):
        """
        Args:
            dialects: Dialects in detection priority order
            max_unparsed_fraction: Largest tolerated share of unparseable lines
            allow_empty: Return [] instead of raising when nothing qualifies
            now: Fixed reference time for year inference (default: current time)
        """
        if not 0 <= max_unparsed_fraction < 1:
            raise ValueError("max_unparsed_fraction must be in [0, 1)")
        self._dialects = list(dialects)
        self.max_unparsed_fraction = max_unparsed_fraction
        self.allow_empty = allow_empty
        self.now = now

    @property
    def dialects(self):
        return tuple(self._dialects)

    def get_dialect(self, name):
        """
        Look up a registered dialect

        Raises:
            KeyError: No dialect of that name is registered
        """
        for dialect in self._dialects:
            if dialect.name == name:
                return dialect
        raise KeyError(f"Unknown listing dialect: {name}")

    def register(self, dialect, first=False):
        """Add a dialect (replacing one of the same name) at the end or the front"""
        self._dialects = [d for d in self._dialects if d.name != dialect.name]
        if first:
            self._dialects.insert(0, dialect)
        else:
            self._dialects.append(dialect)

    def _apply(self, dialect, lines, now):
        """
        Run one dialect over the listing

        Returns:
            tuple: (entries, unparsed lines)
        """
        entries = []
        unparsed = []
        for line in dialect.prepare(lines):
            if not line.strip() or dialect.is_noise(line):
                continue
            entry = dialect.parse_line(line, now)
            if entry is None:
                unparsed.append(line)
            else:
                entries.append(entry)
        return entries, unparsed

    def _qualifies(self, entries, unparsed):
        if not entries:
            return False
        return len(unparsed) <= self.max_unparsed_fraction * (len(entries) + len(unparsed))

    def _candidates(self, system_hint):
        hinted = [d for d in self._dialects if d.matches(system_hint)]
        return hinted + [d for d in self._dialects if d not in hinted]

    def parse_with(self, dialect, raw_lines):
        """
        Parse with a known dialect, skipping lines it does not understand

        Returns:
            list of ListEntry
        """
        lines = [line.rstrip('\r\n') for line in raw_lines]
        entries, unparsed = self._apply(dialect, lines, self.now or datetime.now())
        for line in unparsed:
            logger.debug("Skipping unparseable %s listing line: %r", dialect.name, line)
        return entries

    def parse(self, raw_lines, system_hint=None):
        """
        Parse a raw directory listing

        Args:
            raw_lines: Lines of the LIST response
            system_hint: SYST reply text used to try likely dialects first

        Returns:
            list of ListEntry ([] for an empty listing)

        Raises:
            UnrecognizedListingFormatError: No dialect qualified and allow_empty is off
        """
        lines = [line.rstrip('\r\n') for line in raw_lines]
        content = [line for line in lines if line.strip()]
        if not content:
            return []

        # "total 0" and friends: an empty directory, not an unknown format
        for dialect in self._dialects:
            if all(dialect.is_noise(line) for line in content):
                return []

        now = self.now or datetime.now()
        closest = None
        for dialect in self._candidates(system_hint):
            entries, unparsed = self._apply(dialect, lines, now)
            if not self._qualifies(entries, unparsed):
                if entries and (closest is None or len(unparsed) < len(closest[1])):
                    closest = (dialect, unparsed)
                continue
            logger.debug("Listing parsed as %s (%d entries, %d skipped)",
                         dialect.name, len(entries), len(unparsed))
            for line in unparsed:
                logger.debug("Skipping unparseable %s listing line: %r", dialect.name, line)
            return entries

        if self.allow_empty:
            logger.debug("No listing dialect matched %d line(s)", len(content))
            return []
        if closest is None:
            raise UnrecognizedListingFormatError(content)
        dialect, unparsed = closest
        raise UnrecognizedListingFormatError(unparsed, total=len(content), dialect=dialect.name)
