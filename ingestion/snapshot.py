"""
Read-only access to uploaded LittleNavmap snapshot files (SQLite)
"""

from typing import Any, AsyncIterator, Dict
from pathlib import Path
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool
from core.exceptions import SnapshotNotFoundError, SnapshotPreconditionError
from schemas.progress import AIRPORT, RUNWAY, RUNWAY_END, APPROACH
import logging

logger = logging.getLogger(__name__)

# progress category -> (table, counted column)
REQUIRED_TABLES = {
    AIRPORT: ("airport", "ident"),
    RUNWAY: ("runway", "runway_id"),
    RUNWAY_END: ("runway_end", "runway_end_id"),
    APPROACH: ("approach", "approach_id"),
}

AIRPORTS_SQL = (
    "SELECT "
    "ident,name,city,has_avgas,has_jetfuel,tower_frequency,atis_frequency,unicom_frequency,is_closed,is_military,"
    "num_parking_gate,num_parking_ga_ramp,num_runways,longest_runway_length,longest_runway_surface,laty,lonx,altitude "
    "FROM airport"
)

RUNWAYS_SQL = (
    "SELECT "
    "a.ident,r.runway_id,r.surface,r.length,r.width,r.altitude,r.edge_light,r.center_light "
    "FROM runway r "
    "JOIN airport a ON r.airport_id = a.airport_id"
)

_RUNWAY_ENDS_SQL = (
    "SELECT "
    "r.runway_id,e.runway_end_id,e.name,e.offset_threshold,e.has_closed_markings,e.heading,"
    "e.left_vasi_type,e.left_vasi_pitch,e.right_vasi_type,e.right_vasi_pitch,e.app_light_system_type,"
    "e.lonx,e.laty "
    "FROM runway_end e "
    "JOIN runway r ON e.runway_end_id = r.{end_column} "
    "WHERE e.end_type='{end_type}'"
)
PRIMARY_RUNWAY_ENDS_SQL = _RUNWAY_ENDS_SQL.format(end_column="primary_end_id", end_type="P")
SECONDARY_RUNWAY_ENDS_SQL = _RUNWAY_ENDS_SQL.format(end_column="secondary_end_id", end_type="S")

APPROACHES_SQL = (
    "SELECT "
    "approach_id,airport_ident,runway_name,type,suffix "
    "FROM approach"
)


class SnapshotReader:
    """
    Streams the four entity tables out of a snapshot file.

    The file is opened with a read-only SQLite URI so the import can never
    modify it. Use as an async context manager:

        async with SnapshotReader(path) as reader:
            counts = await reader.count_rows()
            async for row in reader.iter_airports():
                ...
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._engine: AsyncEngine = None

    @property
    def url(self) -> str:
        return f"sqlite+aiosqlite:///file:{self.path.resolve().as_posix()}?mode=ro&uri=true"

    async def open(self):
        if not self.path.is_file():
            raise SnapshotNotFoundError(
                "Snapshot file does not exist",
                context={"file_path": str(self.path)}
            )
        self._engine = create_async_engine(self.url, poolclass=NullPool)
        logger.info(f"Opened snapshot {self.path}")

    async def close(self):
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def __aenter__(self) -> "SnapshotReader":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def count_rows(self) -> Dict[str, int]:
        """
        Count the rows of every required table.

        Raises:
            SnapshotPreconditionError: a table is missing, uncountable or empty
        """
        counts = {}
        async with self._engine.connect() as conn:
            for category, (table, column) in REQUIRED_TABLES.items():
                context = {"file_path": str(self.path), "table_name": table}
                try:
                    result = await conn.execute(text(f"SELECT COUNT({column}) FROM {table}"))
                    count = result.scalar()
                except DBAPIError as e:
                    raise SnapshotPreconditionError(
                        f"Error counting rows of table {table}",
                        context=context,
                        original_exception=e
                    )

                if not count:
                    raise SnapshotPreconditionError(f"Table {table} contains no rows", context=context)
                counts[category] = count

        logger.info(f"Snapshot {self.path.name} row counts: {counts}")
        return counts

    async def _stream(self, sql: str) -> AsyncIterator[Dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.stream(text(sql))
            async for row in result.mappings():
                yield dict(row)

    def iter_airports(self) -> AsyncIterator[Dict[str, Any]]:
        return self._stream(AIRPORTS_SQL)

    def iter_runways(self) -> AsyncIterator[Dict[str, Any]]:
        """Runways joined with the ident of their airport"""
        return self._stream(RUNWAYS_SQL)

    async def iter_runway_ends(self) -> AsyncIterator[Dict[str, Any]]:
        """Primary ends first, then secondary ends, each joined to its runway"""
        async for row in self._stream(PRIMARY_RUNWAY_ENDS_SQL):
            yield row
        async for row in self._stream(SECONDARY_RUNWAY_ENDS_SQL):
            yield row

    def iter_approaches(self) -> AsyncIterator[Dict[str, Any]]:
        return self._stream(APPROACHES_SQL)
