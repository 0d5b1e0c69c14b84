"""
Unit tests for content hashing and change classification
"""

from ingestion.hashing import (
    AIRPORT_HASH_EXCLUDE,
    CHILD_HASH_EXCLUDE,
    ChangeKind,
    classify_change,
    content_hash,
    hash_fields,
)
from models.base import SnapshotSource


RUNWAY = {
    "id": 12,
    "airport_icao": "LOWI",
    "surface": "A",
    "length": 6562,
    "width": 148,
    "altitude": 1906,
    "edge_light": "H",
    "center_light": None,
}


class TestContentHash:

    def test_field_order_does_not_matter(self):
        reordered = dict(reversed(list(RUNWAY.items())))
        assert content_hash(RUNWAY) == content_hash(reordered)

    def test_key_case_is_normalized(self):
        upper = {k.upper(): v for k, v in RUNWAY.items()}
        assert content_hash(RUNWAY) == content_hash(upper)

    def test_surrounding_whitespace_ignored(self):
        padded = {**RUNWAY, "surface": " A ", "airport_icao": "LOWI "}
        assert content_hash(RUNWAY) == content_hash(padded)

    def test_integral_float_equals_int(self):
        assert content_hash({**RUNWAY, "length": 6562.0}) == content_hash(RUNWAY)

    def test_value_change_changes_hash(self):
        assert content_hash({**RUNWAY, "length": 6600}) != content_hash(RUNWAY)

    def test_value_case_is_significant(self):
        assert content_hash({**RUNWAY, "edge_light": "h"}) != content_hash(RUNWAY)

    def test_none_differs_from_empty_string(self):
        assert content_hash({**RUNWAY, "center_light": ""}) != content_hash(RUNWAY)

    def test_identifiers_excluded(self):
        moved = {**RUNWAY, "id": 99, "source": SnapshotSource.XP11}
        assert content_hash(moved, exclude=CHILD_HASH_EXCLUDE) == content_hash(RUNWAY, exclude=CHILD_HASH_EXCLUDE)

    def test_derived_airport_fields_excluded(self):
        airport = {"icao": "LOWI", "name": "Innsbruck", "latitude": 47.2603, "longitude": 11.3439}
        derived = {**airport, "size": 4, "previous_size": 3, "s2_cell3": "47", "msfs": True}
        assert content_hash(derived, exclude=AIRPORT_HASH_EXCLUDE) == content_hash(airport, exclude=AIRPORT_HASH_EXCLUDE)

    def test_enum_values_hash_like_their_value(self):
        assert hash_fields({"source": SnapshotSource.MSFS}) == {"source": "msfs"}

    def test_digest_is_sha256_hex(self):
        digest = content_hash(RUNWAY)
        assert len(digest) == 64
        int(digest, 16)


class TestClassifyChange:

    def test_new_when_nothing_stored(self):
        assert classify_change("abc", None) == ChangeKind.NEW

    def test_updated_when_hash_differs(self):
        assert classify_change("abc", "def") == ChangeKind.UPDATED

    def test_skipped_when_hash_matches(self):
        assert classify_change("abc", "abc") == ChangeKind.SKIPPED

    def test_existing_row_without_hash_is_updated(self):
        assert classify_change("abc", None, exists=True) == ChangeKind.UPDATED
