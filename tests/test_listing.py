"""
Tests for the `ls -l` line parser.

Tests:
  - parse_ls_line: files, directories, time-of-day vs year dates, names with spaces
  - unknown months, '?' link counts, the is_dir rule
  - lines that are not listing data (echoes, 'total', banners) are dropped
  - parse_listing: '.' and '..' are never returned
"""
import time
import unittest
from datetime import datetime

from sftpmirror.operations.listing import parse_listing, parse_ls_line

NOW = datetime(2024, 6, 15, 12, 0)


def _local_ts(*fields):
    year, month, day, hour, minute = fields
    return int(time.mktime((year, month, day, hour, minute, 0, 0, 0, -1)))


class TestParseLsLine(unittest.TestCase):
    """Tests for parse_ls_line() on single listing lines."""

    def test_regular_file_with_time(self):
        """A HH:MM line gives name, size and a local timestamp in the current year."""
        e = parse_ls_line("-rw-r--r--    1 bob  staff   1234 Mar  5 14:07 notes.txt", now=NOW)
        self.assertIsNotNone(e)
        self.assertEqual(e.name, "notes.txt")
        self.assertEqual(e.size, 1234)
        self.assertFalse(e.is_dir)
        self.assertEqual(e.mtime, _local_ts(2024, 3, 5, 14, 7))

    def test_directory_with_year(self):
        """A year-form line resolves to midnight of that day."""
        e = parse_ls_line("drwxr-xr-x    3 bob  staff   4096 Dec 31  2019 src", now=NOW)
        self.assertTrue(e.is_dir)
        self.assertEqual(e.name, "src")
        self.assertEqual(e.mtime, _local_ts(2019, 12, 31, 0, 0))

    def test_time_of_day_uses_current_year(self):
        """HH:MM dates take the year of 'now', even across a new year."""
        e = parse_ls_line("-rw-r--r--    1 u g 1 Dec 30 23:59 late.txt", now=datetime(2025, 1, 2))
        self.assertEqual(e.mtime, _local_ts(2025, 12, 30, 23, 59))

    def test_name_with_spaces(self):
        """Everything after the date is the name, spaces included."""
        e = parse_ls_line("-rw-r--r--    1 u g 10 Jan  1  2020 my file name.txt", now=NOW)
        self.assertEqual(e.name, "my file name.txt")

    def test_unknown_month_defaults_to_january(self):
        """An unrecognised month abbreviation maps to January."""
        e = parse_ls_line("-rw-r--r--    1 u g 10 Foo  2  2021 x", now=NOW)
        self.assertEqual(e.mtime, _local_ts(2021, 1, 2, 0, 0))

    def test_question_mark_link_count(self):
        """Servers that print '?' for the link count are still parsed."""
        e = parse_ls_line("-rw-r--r--    ? u g 10 Jan  2  2021 x", now=NOW)
        self.assertIsNotNone(e)

    def test_is_dir_iff_permissions_start_with_d(self):
        """Only a leading 'd' marks a directory; links and devices are not."""
        for perm, expected in (("drwx------", True), ("-rwx------", False),
                               ("lrwxrwxrwx", False), ("crw-rw-rw-", False)):
            e = parse_ls_line(f"{perm} 1 u g 0 Jan 1 2020 thing", now=NOW)
            self.assertIsNotNone(e, perm)
            self.assertEqual(e.is_dir, expected, perm)

    def test_non_data_lines(self):
        """Blank, 'total', echoed 'sftp>' and banner lines give None."""
        for line in ("", "   ", "total 12", "sftp> ls -la", "sftp> cd 'src'",
                     "Connected to example.com.", "garbage line"):
            self.assertIsNone(parse_ls_line(line, now=NOW), repr(line))

    def test_non_numeric_year_is_skipped(self):
        """A year column that is not a number drops the line."""
        self.assertIsNone(parse_ls_line("-rw-r--r-- 1 u g 1 Jan 1 20x0 f", now=NOW))


class TestParseListing(unittest.TestCase):
    """Tests for parse_listing() over a whole `ls -la` output."""

    def test_drops_dot_entries_and_noise(self):
        """'.' and '..' and the sftp echoes are removed; dotfiles stay."""
        lines = [
            "sftp> ls -la",
            "drwxr-xr-x    3 u g 4096 Jan  1  2020 .",
            "drwxr-xr-x    9 u g 4096 Jan  1  2020 ..",
            "-rw-r--r--    1 u g   12 Jan  1  2020 .env",
            "drwxr-xr-x    2 u g 4096 Jan  1  2020 lib",
            "sftp> quit",
        ]
        names = [e.name for e in parse_listing(lines, now=NOW)]
        self.assertEqual(names, [".env", "lib"])


if __name__ == "__main__":
    unittest.main()
