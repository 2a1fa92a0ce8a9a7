from .entry import EntryType, ListEntry
from .dialect import ListingDialect, infer_year, expand_two_digit_year
from .unix import UNIX
from .nt import NT
from .os2 import OS2
from .vms import VMS
from .os400 import OS400
from .mvs import MVS
from .netware import NETWARE
from .mlsx import MLSX
from .engine import DEFAULT_DIALECTS, ListingParser

__all__ = ['EntryType', 'ListEntry',
           'ListingDialect', 'infer_year', 'expand_two_digit_year',
           'UNIX', 'NT', 'OS2', 'VMS', 'OS400', 'MVS', 'NETWARE', 'MLSX',
           'DEFAULT_DIALECTS', 'ListingParser']
