from datetime import datetime, timezone

import pytest

from ftpclient.core.errors import UnrecognizedListingFormatError
from ftpclient.listing import (EntryType, ListEntry, ListingDialect, ListingParser,
                               expand_two_digit_year, infer_year)
from ftpclient.listing.vms import VMS

NOW = datetime(2024, 6, 15, 12, 0)


@pytest.fixture
def parser():
    return ListingParser(now=NOW)


def by_name(entries):
    return {entry.name: entry for entry in entries}


# ===== Year inference =====

def test_recent_date_stays_in_current_year():
    assert infer_year(3, 3, NOW) == 2024


def test_future_date_belongs_to_last_year():
    assert infer_year(12, 25, NOW) == 2023
    assert infer_year(6, 17, NOW) == 2023


def test_one_day_of_clock_skew_is_tolerated():
    assert infer_year(6, 16, NOW) == 2024


def test_leap_day_walks_back_to_leap_year():
    assert infer_year(2, 29, datetime(2023, 3, 1)) == 2020


def test_two_digit_years():
    assert expand_two_digit_year(5) == 2005
    assert expand_two_digit_year(80) == 2080
    assert expand_two_digit_year(95) == 1995
    assert expand_two_digit_year(1999) == 1999


# ===== Unix =====

UNIX_LINES = [
    "total 12",
    "drwxr-xr-x   2 ftp      ftp          4096 Mar  3 12:01 pub",
    "-rw-r--r--   1 alice    staff        1234 Dec 25 10:00 notes 2023.txt",
    "lrwxrwxrwx   1 root     root            7 Jan  1  2020 bin -> usr/bin",
    "crw-rw-rw-   1 root     tty       5,   0 2021-04-02 09:15 tty",
]


def test_unix_listing(parser):
    entries = by_name(parser.parse(UNIX_LINES))
    assert set(entries) == {"pub", "notes 2023.txt", "bin", "tty"}

    pub = entries["pub"]
    assert pub.type is EntryType.DIRECTORY
    assert pub.size == 4096
    assert pub.permissions == "rwxr-xr-x"
    assert pub.link_count == 2
    assert (pub.user, pub.group) == ("ftp", "ftp")
    assert pub.timestamp == datetime(2024, 3, 3, 12, 1)

    notes = entries["notes 2023.txt"]
    assert notes.is_file
    assert notes.size == 1234
    assert notes.timestamp == datetime(2023, 12, 25, 10, 0)

    link = entries["bin"]
    assert link.is_symlink
    assert link.link_target == "usr/bin"
    assert link.timestamp == datetime(2020, 1, 1)

    device = entries["tty"]
    assert device.type is EntryType.FILE
    assert device.size == 0
    assert device.timestamp == datetime(2021, 4, 2, 9, 15)


def test_unix_listing_without_group_column(parser):
    entries = parser.parse(["-rw-r--r--   1 alice   512 Mar  3 12:01 readme"])
    assert entries[0].user == "alice"
    assert entries[0].group is None
    assert entries[0].size == 512


def test_raw_line_is_kept(parser):
    line = UNIX_LINES[1]
    assert parser.parse([line])[0].raw_line == line


def test_empty_listings(parser):
    assert parser.parse([]) == []
    assert parser.parse(["", "   "]) == []
    assert parser.parse(["total 0"]) == []


def test_unparseable_lines_within_tolerance_are_skipped(parser):
    lines = UNIX_LINES[1:] + ["some junk the server added"]
    assert len(parser.parse(lines)) == 4


def test_too_many_unparseable_lines(parser):
    lines = UNIX_LINES[1:3] + ["junk one", "junk two"]
    with pytest.raises(UnrecognizedListingFormatError) as info:
        parser.parse(lines)
    assert info.value.lines == ["junk one", "junk two"]
    assert info.value.dialect == "unix"
    assert info.value.total == 4


def test_unrecognized_listing(parser):
    lines = ["this is not", "a directory listing"]
    with pytest.raises(UnrecognizedListingFormatError) as info:
        parser.parse(lines)
    assert info.value.lines == lines
    assert info.value.dialect is None


def test_allow_empty_suppresses_error():
    parser = ListingParser(allow_empty=True, now=NOW)
    assert parser.parse(["this is not a listing"]) == []


# ===== Windows NT =====

def test_nt_listing(parser):
    lines = [
        "05-26-95  10:57AM       <DIR>          .",
        "05-26-95  10:57AM       <DIR>          ..",
        "05-26-95  10:57AM       <DIR>          incoming",
        "01-29-1997  11:32PM             4096 read me.txt",
        "12-01-22  12:05AM                0 empty.log",
    ]
    entries = by_name(parser.parse(lines))
    assert set(entries) == {"incoming", "read me.txt", "empty.log"}
    assert entries["incoming"].is_directory
    assert entries["incoming"].timestamp == datetime(1995, 5, 26, 10, 57)
    assert entries["read me.txt"].size == 4096
    assert entries["read me.txt"].timestamp == datetime(1997, 1, 29, 23, 32)
    assert entries["empty.log"].timestamp == datetime(2022, 12, 1, 0, 5)


def test_nt_listing_with_spaced_am_pm(parser):
    lines = [
        "05-26-95  10:57 AM       <DIR>          .",
        "05-26-95  10:57 AM       <DIR>          ..",
        "05-26-95  10:57 AM       <DIR>          incoming",
        "01-29-97  11:32 PM             4096 readme.txt",
    ]
    entries = by_name(parser.parse(lines))
    assert set(entries) == {"incoming", "readme.txt"}
    assert entries["readme.txt"].timestamp == datetime(1997, 1, 29, 23, 32)


# ===== OS/2 =====

def test_os2_listing(parser):
    lines = [
        "    0           DIR   05-12-97   16:44  PSFONTS",
        "36611      A          04-23-103  10:57  OS2 test1.file",
        " 1123      A          07-14-00   12:37  config.sys",
    ]
    entries = by_name(parser.parse(lines))
    assert entries["PSFONTS"].is_directory
    assert entries["PSFONTS"].timestamp == datetime(1997, 5, 12, 16, 44)
    assert entries["OS2 test1.file"].size == 36611
    assert entries["OS2 test1.file"].timestamp == datetime(2003, 4, 23, 10, 57)
    assert entries["config.sys"].permissions == "A"


# ===== VMS =====

VMS_LINES = [
    "Directory USER1:[TEMP]",
    "",
    "1-JUN.LIS;1              9/9           2-JUN-1998 07:32 [GROUP,OWNER]    (RWED,RWED,RWED,RE)",
    "VERYLONGFILENAME_FOR_TESTING.TXT;3",
    "                             4/6          12-FEB-2001 15:01:22 [USER1]  (RWED,RWED,,)",
    "SUBDIR.DIR;1             1/3           3-MAR-2003 10:00:00 [GROUP,OWNER]    (RWE,RWE,RE,E)",
    "",
    "Total of 3 files, 14/18 blocks.",
]


def test_vms_listing(parser):
    entries = by_name(parser.parse(VMS_LINES))
    assert set(entries) == {"1-JUN.LIS", "VERYLONGFILENAME_FOR_TESTING.TXT", "SUBDIR.DIR"}

    first = entries["1-JUN.LIS"]
    assert first.size == 9 * 512
    assert first.timestamp == datetime(1998, 6, 2, 7, 32)
    assert (first.user, first.group) == ("OWNER", "GROUP")
    assert first.permissions == "RWED,RWED,RWED,RE"

    wrapped = entries["VERYLONGFILENAME_FOR_TESTING.TXT"]
    assert wrapped.size == 4 * 512
    assert wrapped.timestamp == datetime(2001, 2, 12, 15, 1, 22)
    assert wrapped.user == "USER1"

    assert entries["SUBDIR.DIR"].is_directory


def test_vms_joins_wrapped_lines():
    joined = VMS.join_lines(VMS_LINES[3:5])
    assert len(joined) == 1
    assert joined[0].startswith("VERYLONGFILENAME_FOR_TESTING.TXT;3 4/6")


# ===== OS/400 =====

def test_os400_listing(parser):
    lines = [
        "PEP             4096 00/11/28 15:43:47 *DIR       bin/",
        "PEP            36864 05/03/04 08:26:10 *STMF      readme.txt",
        "QSYS                                   *MEM       MYFILE.MBR",
    ]
    entries = by_name(parser.parse(lines))
    assert entries["bin"].is_directory
    assert entries["bin"].timestamp == datetime(2000, 11, 28, 15, 43, 47)
    assert entries["readme.txt"].size == 36864
    assert entries["readme.txt"].user == "PEP"
    assert entries["MYFILE.MBR"].is_file
    assert entries["MYFILE.MBR"].timestamp is None


# ===== MVS =====

def test_mvs_dataset_listing(parser):
    lines = [
        "Volume Unit    Referred Ext Used Recfm Lrecl BlkSz Dsorg Dsname",
        "SAVE00 3390   2004/06/23  1    1  FB     128  6144  PS  INCOMING.RPTBM023.D061704",
        "SAVE01 3390   2004/06/23  1    3  FB     128  6144  PO  INCOMING.SOURCE",
        "Migrated                                                INCOMING.RPTBM024.D061704",
    ]
    entries = by_name(parser.parse(lines, system_hint="MVS is the operating system"))
    assert entries["INCOMING.RPTBM023.D061704"].is_file
    assert entries["INCOMING.SOURCE"].is_directory
    assert entries["INCOMING.RPTBM024.D061704"].is_file


def test_mvs_member_listing(parser):
    lines = [
        "Name     VV.MM   Created       Changed      Size  Init   Mod   Id",
        "TBSHELF   01.03 2002/09/12 2002/10/11 09:37    11    11     0 KIL001",
        "TBTOOLS   01.12 2002/09/12 2004/11/26 19:54    51    28     0 KIL001",
    ]
    entries = by_name(parser.parse(lines))
    assert entries["TBSHELF"].timestamp == datetime(2002, 10, 11, 9, 37)
    assert entries["TBTOOLS"].is_file


# ===== NetWare =====

def test_netware_listing(parser):
    lines = [
        "d [R----F--] supervisor            512       Jan 16 18:53    login",
        "- [RWCEAFMS] rhiggins           4096       May 15  2003    notes.txt",
    ]
    entries = by_name(parser.parse(lines))
    assert entries["login"].is_directory
    assert entries["login"].timestamp == datetime(2024, 1, 16, 18, 53)
    assert entries["notes.txt"].size == 4096
    assert entries["notes.txt"].permissions == "RWCEAFMS"
    assert entries["notes.txt"].user == "rhiggins"


# ===== MLSx =====

MLSD_LINES = [
    "type=cdir;modify=20200101000000; .",
    "type=pdir;modify=20200101000000; ..",
    "type=file;size=1024;modify=20200101120000;UNIX.mode=0644; notes.txt",
    "type=dir;modify=20191231235959.250; pub",
    "type=OS.unix=slink:/usr/bin;modify=20200101120000; bin",
]


def test_mlsx_listing(parser):
    entries = by_name(parser.parse(MLSD_LINES))
    assert set(entries) == {"notes.txt", "pub", "bin"}

    notes = entries["notes.txt"]
    assert notes.size == 1024
    assert notes.permissions == "0644"
    assert notes.timestamp == datetime(2020, 1, 1, 12, 0, tzinfo=timezone.utc)

    assert entries["pub"].is_directory
    assert entries["pub"].timestamp.microsecond == 250000
    assert entries["bin"].is_symlink
    assert entries["bin"].link_target == "/usr/bin"


# ===== Registry =====

def test_system_hint_selects_dialect(parser):
    lines = ["05-26-95  10:57AM       <DIR>          incoming"]
    entries = parser.parse(lines, system_hint="Windows_NT")
    assert entries[0].is_directory


def test_get_dialect(parser):
    assert parser.get_dialect("vms") is VMS
    with pytest.raises(KeyError):
        parser.get_dialect("cp/m")


def test_registered_dialect_takes_priority(parser):
    def parse_everything(line, now=None):
        return ListEntry(raw_line=line, name=line.split()[-1], type=EntryType.UNKNOWN)

    parser.register(ListingDialect("catchall", ("CATCHALL",), parse_everything), first=True)
    entries = parser.parse(UNIX_LINES[1:2])
    assert entries[0].type is EntryType.UNKNOWN
    assert parser.dialects[0].name == "catchall"


def test_parse_with_skips_unknown_lines(parser):
    entries = parser.parse_with(VMS, ["no entry here"] + VMS_LINES)
    assert len(entries) == 3
