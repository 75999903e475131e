"""Common helpers for the domain layer.

Driver-name handling contract
-----------------------------
Timing systems hand over driver names exactly as typed at the track desk, so
the same pilot shows up as "Ana  Pérez", "ana perez" or with a stray BOM from
a CSV export. Names are compared only through ``normalize_name``; raw names
are kept for display.
"""

import unicodedata
import uuid
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


def new_id(prefix: str = "") -> str:
    """Generate an opaque identifier, optionally prefixed (``evt_...``)."""
    token = uuid.uuid4().hex
    return f"{prefix}_{token}" if prefix else token


def clean_text(text: str, *, normalize: bool = True) -> str:
    """Remove BOM markers and optionally apply NFKC normalization."""
    if not text:
        return ""

    cleaned = text.replace("\ufeff", "").replace("\ufffd", "")
    if normalize:
        cleaned = unicodedata.normalize("NFKC", cleaned)
    return cleaned


def normalize_name(name: str) -> str:
    """Comparison key for a driver name: cleaned, accent-folded, casefolded."""
    cleaned = clean_text(name)
    decomposed = unicodedata.normalize("NFKD", cleaned)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(without_marks.casefold().split())
