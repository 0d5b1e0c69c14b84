"""
Airport size classification.

Sizes:
    -1  closed, no runway without closed markings on both ends
    0-5 computed from the longest open runway and the facilities
    6   curated major airports that qualify for size 5

The rules run as a fixed cascade. Later rules only downgrade, except the final
curated major upgrade.
"""

from typing import Collection, Iterable, Sequence
import logging

logger = logging.getLogger(__name__)

CLOSED = -1
MAJOR = 6

# (minimum longest open runway length in feet, base size)
LENGTH_CLASSES = (
    (10000, 5),
    (8000, 4),
    (6000, 3),
    (4500, 2),
    (2300, 1),
)
SECOND_RUNWAY_MIN_LENGTH = 8000
PRECISION_APPROACH_TYPE = "ILS"

# LittleNavmap surface codes considered hard (paved) surfaces
HARD_SURFACES = frozenset({
    "A",   # asphalt
    "B",   # bituminous
    "BR",  # brick
    "C",   # concrete
    "CE",  # cement
    "M",   # macadam
    "OT",  # oil treated
    "T",   # tarmac
})


def is_hard_surface(surface: str) -> bool:
    if not surface:
        return False
    return surface.strip().upper() in HARD_SURFACES


def is_open_runway(runway) -> bool:
    """A runway is closed only when every one of its ends has closed markings"""
    ends = list(runway.runway_ends or [])
    return not all(end.has_closed_markings for end in ends)


def base_size(longest_length: int) -> int:
    for min_length, size in LENGTH_CLASSES:
        if longest_length >= min_length:
            return size
    return 0


def classify_airport_size(
    airport,
    runways: Sequence,
    approaches: Sequence,
    curated_majors: Collection[str] = (),
) -> int:
    """
    Classify an airport.

    Args:
        airport: Object with `icao` and `gates`
        runways: Runways with `length`, `surface`, `edge_light`, `center_light`
            and `runway_ends` (each with `has_closed_markings`)
        approaches: Approaches with `type`
        curated_majors: Identifiers of the curated major airports

    Returns:
        Size class between -1 and 6
    """
    open_runways = [r for r in runways if is_open_runway(r)]
    if not open_runways:
        return CLOSED

    size = base_size(max(r.length for r in open_runways))
    is_major = airport.icao in curated_majors

    if size == 5 and not any(a.type == PRECISION_APPROACH_TYPE for a in approaches):
        size = 4

    if size == 5 and _count_long_hard(open_runways) < 2:
        size = 4

    if size == 5 and airport.gates == 0 and not is_major:
        size = 4

    if size == 4 and len(approaches) == 0:
        size = 3

    if size >= 4 and not any(r.center_light or r.edge_light for r in open_runways):
        size = 3

    if size >= 3 and not any(is_hard_surface(r.surface) for r in open_runways):
        size = 2

    if is_major:
        if size == 5:
            size = MAJOR
        else:
            logger.warning(
                f"Major airport {airport.icao} was not classified size 5 so will not be "
                f"upgraded to size {MAJOR}, please double check the source data."
            )

    return size


def _count_long_hard(runways: Iterable) -> int:
    return sum(
        1 for r in runways
        if r.length >= SECOND_RUNWAY_MIN_LENGTH and is_hard_surface(r.surface)
    )
