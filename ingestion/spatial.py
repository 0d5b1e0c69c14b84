"""
Hierarchical spatial index keys for airports (S2 cells, levels 3 to 9)
"""

from typing import Dict
import s2sphere

MIN_LEVEL = 3
MAX_LEVEL = 9
LEVELS = tuple(range(MIN_LEVEL, MAX_LEVEL + 1))


def _check_level(level: int):
    if level not in LEVELS:
        raise ValueError(f"S2 level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level}")


def cell(lat: float, lon: float, level: int) -> s2sphere.CellId:
    """S2 cell containing the coordinate at the given level"""
    _check_level(level)
    leaf = s2sphere.CellId.from_lat_lng(s2sphere.LatLng.from_degrees(lat, lon))
    return leaf.parent(level)


def cell_id(lat: float, lon: float, level: int) -> int:
    """Numeric (unsigned 64 bit) S2 cell id"""
    return cell(lat, lon, level).id()


def cell_token(lat: float, lon: float, level: int) -> str:
    """Compact hex token of the S2 cell, what the live store keeps"""
    return cell(lat, lon, level).to_token()


def cell_tokens(lat: float, lon: float) -> Dict[int, str]:
    """Tokens for every indexed level, computed from a single leaf cell"""
    leaf = s2sphere.CellId.from_lat_lng(s2sphere.LatLng.from_degrees(lat, lon))
    return {level: leaf.parent(level).to_token() for level in LEVELS}


def airport_cells(lat: float, lon: float) -> Dict[str, str]:
    """Airport column values (s2_cell3 .. s2_cell9) for a coordinate"""
    return {f"s2_cell{level}": token for level, token in cell_tokens(lat, lon).items()}
