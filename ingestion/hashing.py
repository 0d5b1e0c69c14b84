"""
Change detection through canonical content hashes.

Every snapshot record is reduced to its mutable fields, canonicalized and
hashed. Comparing the fresh hash with the one stored on the live row decides
whether the row is NEW, UPDATED or SKIPPED without comparing fields one by one.
"""

import enum
import hashlib
import json
from typing import Any, Dict, Iterable, Mapping, Optional

# Identifiers and fields the engine derives itself never take part in a hash
AIRPORT_HASH_EXCLUDE = frozenset({
    "icao", "size", "previous_size", "msfs", "xp11",
    "has_been_populated_msfs", "has_been_populated_xp11",
    "s2_cell3", "s2_cell4", "s2_cell5", "s2_cell6", "s2_cell7", "s2_cell8", "s2_cell9",
    "content_hash",
})
CHILD_HASH_EXCLUDE = frozenset({"source", "id", "content_hash"})

FLOAT_PRECISION = 7


class ChangeKind(str, enum.Enum):
    """Outcome of reconciling one incoming record"""
    NEW = "new"
    UPDATED = "updated"
    SKIPPED = "skipped"


def _canonical(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return _canonical(value.value)
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        return round(value, FLOAT_PRECISION)
    if isinstance(value, str):
        return value.strip()
    return value


def hash_fields(record: Mapping[str, Any], exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Canonical field mapping: lower-cased keys, normalized values, exclusions dropped"""
    excluded = {key.lower() for key in exclude}
    fields = {}
    for key, value in record.items():
        name = key.lower()
        if name in excluded:
            continue
        fields[name] = _canonical(value)
    return fields


def content_hash(record: Mapping[str, Any], exclude: Iterable[str] = ()) -> str:
    """Order independent SHA-256 digest of a record's mutable fields"""
    payload = json.dumps(
        hash_fields(record, exclude), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def classify_change(new_hash: str, existing_hash: Optional[str], exists: bool = None) -> ChangeKind:
    """
    Decide what to do with an incoming record.

    Args:
        new_hash: Hash of the incoming record
        existing_hash: Hash stored on the live row (None if unknown)
        exists: Whether a live row exists; defaults to "existing_hash is not None"
    """
    if exists is None:
        exists = existing_hash is not None
    if not exists:
        return ChangeKind.NEW
    if existing_hash != new_hash:
        return ChangeKind.UPDATED
    return ChangeKind.SKIPPED
