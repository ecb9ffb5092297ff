# leisure_coupons/services/inputs.py
from __future__ import annotations


def clean_text(value) -> str | None:
    """Strip request values; ids may arrive as numbers, blanks count as missing."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None
