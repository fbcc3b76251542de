"""
Text utilities for header and cell normalization.

Used by the module CSV and spreadsheet parsers.
"""

import re
from typing import Any, Optional


def normalize_header(name: Optional[str]) -> str:
    """
    Normalize a column header for alias lookup.

    - "  Serial Number " → "serial number"
    - "Serial #" → "serial #"
    - "HITCH   BLM" → "hitch blm"

    Args:
        name: Raw header cell

    Returns:
        Lowercase header with collapsed whitespace, or "" if empty
    """
    if not name:
        return ""

    # Strip byte-order mark left by spreadsheet exports
    name = str(name).replace("\ufeff", "")

    return re.sub(r"\s+", " ", name).strip().lower()


def clean_cell(value: Any) -> Optional[str]:
    """
    Clean a data cell.

    - Strips whitespace
    - Returns None for empty/whitespace-only values and NaN

    Args:
        value: Raw cell value

    Returns:
        Cleaned string or None
    """
    if value is None:
        return None

    # NaN is the only value not equal to itself
    if value != value:
        return None

    text = str(value).strip()

    if not text:
        return None

    return text
