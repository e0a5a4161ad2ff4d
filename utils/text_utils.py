"""
Text utilities for spreadsheet cells and mapping keys.

Distributor files are typed by hand, so headers and names arrive with
stray spaces, line breaks and mixed case.
"""

import math
import re
from typing import Any, Optional

_WHITESPACE_RE = re.compile(r"\s+")


def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def collapse_whitespace(value: Any) -> str:
    """
    Collapse internal whitespace runs and trim.

    "  QUANTITY   (in M) " -> "QUANTITY (in M)"
    "DS\\nName"             -> "DS Name"
    None                   -> ""
    """
    if is_blank(value):
        return ""
    return _WHITESPACE_RE.sub(" ", str(value)).strip()


def header_key(value: Any) -> str:
    """Case-insensitive comparison key for header cells."""
    return collapse_whitespace(value).casefold()


def mapping_key(value: Any) -> str:
    """
    Comparison key for market SKUs.

    "  bnc choc twst rs10 " -> "BNC CHOC TWST RS10"
    """
    if is_blank(value):
        return ""
    return str(value).strip().upper()


def clean_name(value: Any) -> Optional[str]:
    """
    Clean a free-text name (agent, surveyor, SKU) for storage.

    - Strips whitespace
    - Returns None for empty/whitespace-only values

    Names are join keys, so they are never truncated.
    Numeric cells (an SKU typed as 1020) come back as "1020", not "1020.0".
    """
    if is_blank(value):
        return None

    if isinstance(value, float) and value.is_integer():
        value = int(value)

    return str(value).strip()
