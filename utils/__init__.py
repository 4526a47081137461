"""
Utility modules for the report engine.
"""

from .formatting import format_compact_date, format_short_date, format_signoff_date, safe_filename
from .config import Config, LayoutConfig

__all__ = [
    "format_compact_date",
    "format_short_date",
    "format_signoff_date",
    "safe_filename",
    "Config",
    "LayoutConfig",
]
