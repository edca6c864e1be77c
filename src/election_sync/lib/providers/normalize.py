"""String normalization helpers shared by providers and record matching."""

import hashlib
import json
import re
from typing import Any

# Full INEC-registered party names mapped to their ballot codes
PARTY_CODES: dict[str, str] = {
    "ALL PROGRESSIVES CONGRESS": "APC",
    "PEOPLES DEMOCRATIC PARTY": "PDP",
    "LABOUR PARTY": "LP",
    "NEW NIGERIA PEOPLES PARTY": "NNPP",
    "ALL PROGRESSIVES GRAND ALLIANCE": "APGA",
    "YOUNG PROGRESSIVES PARTY": "YPP",
    "SOCIAL DEMOCRATIC PARTY": "SDP",
    "AFRICAN DEMOCRATIC CONGRESS": "ADC",
    "ACTION ALLIANCE": "AA",
    "ACCORD PARTY": "ACCORD",
}

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")


def checksum(data: Any) -> str:
    """Return a short, stable content hash for change detection.

    Keys are sorted so logically equal mappings hash identically.
    """
    payload = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def normalize_full_name(name: str) -> str:
    """Uppercase a person's name and strip punctuation and repeated spaces.

    Example:
        >>> normalize_full_name("  Peter  G. Obi ")
        'PETER G OBI'
    """
    cleaned = _PUNCTUATION_RE.sub("", name.strip())
    return _WHITESPACE_RE.sub(" ", cleaned).upper()


def normalize_party_code(party: str) -> str:
    """Map a party name to its ballot code; unknown names are truncated to ten characters."""
    upper = _WHITESPACE_RE.sub(" ", party.strip()).upper()
    return PARTY_CODES.get(upper, upper[:10])


def normalize_date(value: str) -> str:
    """Convert ``DD/MM/YYYY`` or ``DD-MM-YYYY`` to ISO ``YYYY-MM-DD``.

    Values in any other shape are returned unchanged.
    """
    match = _NUMERIC_DATE_RE.match(value.strip())
    if match is None:
        return value
    day, month, year = match.groups()
    return f"{year}-{month.zfill(2)}-{day.zfill(2)}"


def first_present(raw: dict[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among ``keys`` in ``raw``, else None."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None
