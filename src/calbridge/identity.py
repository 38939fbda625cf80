"""Identity resolution between calendar events and registry records.

Neither API carries a foreign key for the other system, so the registry
record id travels inside the calendar event description. The rule both
sync directions agree on:

    The record id is the LAST standalone run of decimal digits in the text.

A run is standalone when it is not glued to letters, digits, underscores,
hyphens, slashes, colons or a decimal point, so ``A-7``, ``2025-03-05``,
``555-1234``, ``14:30`` and ``3.5`` never yield an id. Trailing sentence
punctuation (``"item 42."``) is allowed.
"""

from __future__ import annotations

import re

from calbridge.errors import IdentityError

RECORD_ID_LABEL = "Record ID"

_STANDALONE_NUMBER = re.compile(r"(?<![\w\-/:.])\d+(?![\w\-/:]|\.\d)")


def find_record_id(text: str | None) -> str | None:
    """Return the last standalone number in *text*, or ``None``."""
    if not text:
        return None
    matches = _STANDALONE_NUMBER.findall(text)
    return matches[-1] if matches else None


def extract_record_id(text: str | None) -> str:
    """Return the record id embedded in *text*; raise ``IdentityError`` if absent."""
    record_id = find_record_id(text)
    if record_id is None:
        raise IdentityError(
            "Record ID not found in event description",
            details={"description": (text or "")[:200]},
        )
    return record_id


def build_event_description(record_id: str, description: str | None) -> str:
    """Return a description from which *record_id* re-extracts deterministically."""
    base = (description or "").strip()
    if find_record_id(base) == record_id:
        return base
    marker = f"{RECORD_ID_LABEL}: {record_id}"
    return f"{base}\n\n{marker}" if base else marker
