"""
Unit tests for the S2 spatial indexer
"""

import pytest
from ingestion.spatial import LEVELS, airport_cells, cell, cell_id, cell_token, cell_tokens

COORDINATES = [
    (33.9425, -118.4081),   # Los Angeles
    (47.2603, 11.3439),     # Innsbruck
    (-33.9461, 151.1772),   # Sydney
    (64.13, -21.94),        # Reykjavik
    (0.0, 0.0),
    (89.9, 179.9),
]


@pytest.mark.parametrize("lat,lon", COORDINATES)
def test_each_level_contains_the_next(lat, lon):
    """The level n cell is the parent of the level n+1 cell for the same coordinate"""
    for level in range(3, 9):
        outer = cell(lat, lon, level)
        inner = cell(lat, lon, level + 1)
        assert outer.level() == level
        assert inner.level() == level + 1
        assert inner.parent(level).id() == outer.id()
        assert outer.contains(inner)
        assert outer.id() != inner.id()


@pytest.mark.parametrize("level", [2, 10, 0, 30])
def test_invalid_level_rejected(level):
    with pytest.raises(ValueError):
        cell_id(47.0, 11.0, level)


def test_cells_are_deterministic():
    assert cell_id(47.2603, 11.3439, 7) == cell_id(47.2603, 11.3439, 7)
    assert cell_token(47.2603, 11.3439, 7) == cell_token(47.2603, 11.3439, 7)


def test_distant_airports_get_distinct_cells():
    assert cell_id(33.9425, -118.4081, 3) != cell_id(-33.9461, 151.1772, 3)
    assert cell_id(47.2603, 11.3439, 9) != cell_id(47.27, 12.40, 9)


def test_cell_tokens_cover_all_levels():
    tokens = cell_tokens(33.9425, -118.4081)
    assert sorted(tokens) == list(LEVELS)
    for level, token in tokens.items():
        assert token == cell_token(33.9425, -118.4081, level)


def test_airport_cells_column_names():
    cells = airport_cells(33.9425, -118.4081)
    assert set(cells) == {f"s2_cell{level}" for level in range(3, 10)}
    assert cells["s2_cell5"] == cell_token(33.9425, -118.4081, 5)
    assert all(len(token) <= 16 for token in cells.values())
