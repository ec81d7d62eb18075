"""
Composite-key deduplication of storage rows before an upsert.

A single upsert statement cannot touch the same row twice ("ON CONFLICT DO
UPDATE command cannot affect row a second time"), so every batch sent to the
store must already be unique on (numero_os1, numero_os, contrato,
data_atividade).

Key fields are normalized before the key is built, and the normalized values
are written back into the returned rows so the store's unique constraint sees
exactly what was compared here.
"""
import re
from typing import Any, Dict, Iterable, List

from fieldops.models.activity import MISSING_DATE, StoredActivity

KEY_SEPARATOR = "|"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text_key(value: Any) -> str:
    """NBSP -> space, collapse whitespace runs, trim. Absent -> ""."""
    if value is None:
        return ""
    s = str(value).replace("\u00a0", " ")
    return _WHITESPACE_RE.sub(" ", s).strip()


def normalize_date_key(value: Any) -> str:
    """Reduce a date/timestamp to "YYYY-MM-DD". Absent -> MISSING_DATE.

    "2026-01-26T00:00:00.000Z" and "2026-01-26 00:00:00" both become
    "2026-01-26"; anything else is assumed to be a plain date already.
    """
    if value is None:
        return MISSING_DATE
    s = str(value).strip()
    if not s:
        return MISSING_DATE
    if "T" in s:
        return s.split("T")[0]
    if " " in s:
        return s.split(" ")[0]
    return s


def normalize_key_fields(record: StoredActivity) -> StoredActivity:
    """Return a copy of the record with its four key fields normalized."""
    normalized = dict(record)
    normalized["numero_os1"] = normalize_text_key(record.get("numero_os1"))
    normalized["numero_os"] = normalize_text_key(record.get("numero_os"))
    normalized["contrato"] = normalize_text_key(record.get("contrato"))
    normalized["data_atividade"] = normalize_date_key(record.get("data_atividade"))
    return normalized


def composite_key(record: StoredActivity) -> str:
    """Build the dedup key from a record (normalizing its key fields first)."""
    normalized = normalize_key_fields(record)
    return KEY_SEPARATOR.join(
        (
            normalized["numero_os1"],
            normalized["numero_os"],
            normalized["contrato"],
            normalized["data_atividade"],
        )
    )


def dedupe(records: Iterable[StoredActivity]) -> List[StoredActivity]:
    """
    Collapse records sharing a composite key, keeping the last occurrence.

    Later rows in an upload are treated as the more recent data. The
    surviving record keeps the position where its key was first seen.

    Args:
        records: Storage-schema rows, in upload order.

    Returns:
        New list of normalized rows, unique on the composite key.
    """
    seen: Dict[str, StoredActivity] = {}
    for record in records:
        normalized = normalize_key_fields(record)
        seen[composite_key(normalized)] = normalized
    return list(seen.values())
