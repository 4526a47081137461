"""
Formatting utilities.
"""

import re
from datetime import date


_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


def format_short_date(value: date) -> str:
    """
    Format a date the way summary tables show it.

    Args:
        value: The date to format.

    Returns:
        Two-digit year, month and day joined by dots (e.g. "25.01.02").
    """
    return f"{value.year % 100:02d}.{value.month:02d}.{value.day:02d}"


def format_signoff_date(value: date) -> str:
    """Format a date for the sign-off block (e.g. "2025.  1.  2.")."""
    return f"{value.year}.  {value.month}.  {value.day}."


def format_compact_date(value: date) -> str:
    """Format a date for file names (e.g. "20250102")."""
    return value.strftime("%Y%m%d")


def safe_filename(name: str) -> str:
    """
    Make a string safe to use as a file name.

    Path separators, reserved characters and whitespace runs become a
    single underscore. An empty result falls back to "report".
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name.strip()).strip("._")
    return cleaned or "report"
