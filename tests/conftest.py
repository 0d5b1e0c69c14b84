"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import build_engine, build_session_maker
from ingestion.pipeline import ImportPipeline
from ingestion.progress import ProgressTracker
from ingestion.snapshot import SnapshotReader
from models.base import Base, SnapshotSource
from typing import AsyncGenerator, Dict, List
from uuid import uuid4
import itertools


# LittleNavmap tables, reduced to the columns the importer reads
SNAPSHOT_DDL = [
    "CREATE TABLE airport ("
    "airport_id INTEGER PRIMARY KEY, ident TEXT, name TEXT, city TEXT, "
    "has_avgas INTEGER, has_jetfuel INTEGER, tower_frequency INTEGER, atis_frequency INTEGER, "
    "unicom_frequency INTEGER, is_closed INTEGER, is_military INTEGER, num_parking_gate INTEGER, "
    "num_parking_ga_ramp INTEGER, num_runways INTEGER, longest_runway_length REAL, "
    "longest_runway_surface TEXT, laty REAL, lonx REAL, altitude REAL)",
    "CREATE TABLE runway ("
    "runway_id INTEGER PRIMARY KEY, airport_id INTEGER, primary_end_id INTEGER, secondary_end_id INTEGER, "
    "surface TEXT, length REAL, width REAL, altitude REAL, edge_light TEXT, center_light TEXT)",
    "CREATE TABLE runway_end ("
    "runway_end_id INTEGER PRIMARY KEY, name TEXT, end_type TEXT, offset_threshold REAL, "
    "has_closed_markings INTEGER, heading REAL, left_vasi_type TEXT, left_vasi_pitch REAL, "
    "right_vasi_type TEXT, right_vasi_pitch REAL, app_light_system_type TEXT, lonx REAL, laty REAL)",
    "CREATE TABLE approach ("
    "approach_id INTEGER PRIMARY KEY, airport_ident TEXT, runway_name TEXT, type TEXT, suffix TEXT)",
]


class SnapshotBuilder:
    """Builds LittleNavmap shaped SQLite snapshot files for tests"""

    def __init__(self):
        self.airports: List[Dict] = []
        self.runways: List[Dict] = []
        self.runway_ends: List[Dict] = []
        self.approaches: List[Dict] = []
        self._end_ids = itertools.count(1)

    def add_airport(self, ident: str, laty: float = 47.26, lonx: float = 11.34, **columns) -> int:
        airport_id = len(self.airports) + 1
        row = {
            "airport_id": airport_id,
            "ident": ident,
            "name": f"{ident} airport",
            "city": "Testville",
            "has_avgas": 1,
            "has_jetfuel": 1,
            "tower_frequency": 118500,
            "atis_frequency": 0,
            "unicom_frequency": None,
            "is_closed": 0,
            "is_military": 0,
            "num_parking_gate": 0,
            "num_parking_ga_ramp": 4,
            "num_runways": 0,
            "longest_runway_length": 0.0,
            "longest_runway_surface": "C",
            "laty": laty,
            "lonx": lonx,
            "altitude": 1906.0,
        }
        row.update(columns)
        self.airports.append(row)
        return airport_id

    def add_runway(
        self,
        airport_id: int,
        length: float,
        surface: str = "C",
        lights: bool = True,
        closed=(False, False),
        **columns
    ) -> int:
        runway_id = max((r["runway_id"] for r in self.runways), default=0) + 1
        airport = self.airports[airport_id - 1]
        end_ids = []
        for end_type, name, is_closed in (("P", "09", closed[0]), ("S", "27", closed[1])):
            end_id = next(self._end_ids)
            end_ids.append(end_id)
            self.runway_ends.append({
                "runway_end_id": end_id,
                "name": name,
                "end_type": end_type,
                "offset_threshold": 0.0,
                "has_closed_markings": int(is_closed),
                "heading": 90.0 if end_type == "P" else 270.0,
                "left_vasi_type": "PAPI4",
                "left_vasi_pitch": 3.0,
                "right_vasi_type": None,
                "right_vasi_pitch": 0.0,
                "app_light_system_type": "ALSF2" if lights else None,
                "lonx": airport["lonx"],
                "laty": airport["laty"],
            })

        row = {
            "runway_id": runway_id,
            "airport_id": airport_id,
            "primary_end_id": end_ids[0],
            "secondary_end_id": end_ids[1],
            "surface": surface,
            "length": float(length),
            "width": 150.0,
            "altitude": airport["altitude"],
            "edge_light": "H" if lights else None,
            "center_light": None,
        }
        row.update(columns)
        self.runways.append(row)

        airport["num_runways"] += 1
        if length > airport["longest_runway_length"]:
            airport["longest_runway_length"] = float(length)
            airport["longest_runway_surface"] = surface
        return runway_id

    def add_approach(self, airport_ident: str, type: str = "ILS", runway_name: str = "09", suffix=None) -> int:
        approach_id = len(self.approaches) + 1
        self.approaches.append({
            "approach_id": approach_id,
            "airport_ident": airport_ident,
            "runway_name": runway_name,
            "type": type,
            "suffix": suffix,
        })
        return approach_id

    def airport(self, ident: str) -> Dict:
        return next(a for a in self.airports if a["ident"] == ident)

    def runway(self, runway_id: int) -> Dict:
        return next(r for r in self.runways if r["runway_id"] == runway_id)

    def remove_runway(self, runway_id: int):
        runway = self.runway(runway_id)
        end_ids = {runway["primary_end_id"], runway["secondary_end_id"]}
        self.runways.remove(runway)
        self.runway_ends = [e for e in self.runway_ends if e["runway_end_id"] not in end_ids]

    def remove_airport(self, ident: str):
        airport = self.airport(ident)
        for runway in [r for r in self.runways if r["airport_id"] == airport["airport_id"]]:
            self.remove_runway(runway["runway_id"])
        self.approaches = [a for a in self.approaches if a["airport_ident"] != ident]
        self.airports.remove(airport)

    def write(self, path) -> str:
        engine = create_engine(f"sqlite:///{path}")
        with engine.begin() as conn:
            for ddl in SNAPSHOT_DDL:
                conn.execute(text(ddl))
            for table, rows in (
                ("airport", self.airports),
                ("runway", self.runways),
                ("runway_end", self.runway_ends),
                ("approach", self.approaches),
            ):
                if not rows:
                    continue
                columns = list(rows[0])
                conn.execute(
                    text(
                        f"INSERT INTO {table} ({', '.join(columns)}) "
                        f"VALUES ({', '.join(':' + c for c in columns)})"
                    ),
                    rows,
                )
        engine.dispose()
        return str(path)


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File backed SQLite live store, one connection per session"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'live_store.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return build_session_maker(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def write_snapshot(tmp_path):
    """Write a builder to a fresh snapshot file, returns its path"""
    counter = itertools.count(1)

    def _write(builder: SnapshotBuilder) -> str:
        return builder.write(tmp_path / f"snapshot_{next(counter)}.sqlite")

    return _write


@pytest.fixture
def snapshot_builder():
    """Factory for empty snapshot builders"""
    return SnapshotBuilder


@pytest.fixture
def curated_majors():
    return frozenset({"KBIG"})


@pytest.fixture
def sample_snapshot():
    """
    Four airports, one of them invalid, and one approach of an unknown airport.

    KBIG  two long lit hard runways, ILS, gates -> size 5 (6 when curated)
    KSML  one short unlit grass runway          -> size 1
    KCLS  one runway with both ends closed      -> size -1
    """
    builder = SnapshotBuilder()
    big = builder.add_airport("KBIG", laty=33.9425, lonx=-118.4081, num_parking_gate=20)
    builder.add_runway(big, 11000, surface="A")
    builder.add_runway(big, 9000, surface="A")
    builder.add_approach("KBIG", "ILS")

    small = builder.add_airport("KSML", laty=45.1, lonx=7.2)
    builder.add_runway(small, 3000, surface="G", lights=False)

    closed = builder.add_airport("KCLS", laty=-33.9, lonx=151.2)
    builder.add_runway(closed, 5000, closed=(True, True))

    builder.add_airport("ABCDEF", laty=10.0, lonx=10.0)
    builder.add_approach("ZZZZ", "VOR")
    return builder


@pytest.fixture
def run_import(session_maker, curated_majors):
    """Run the import pipeline for one snapshot file, returns (pipeline, status)"""

    async def _run(path, source=SnapshotSource.MSFS, stop_event=None, tracker=None, pipeline_hook=None):
        tracker = tracker or ProgressTracker()
        job_id = uuid4()
        tracker.start(job_id)
        async with session_maker() as session:
            pipeline = ImportPipeline(
                session,
                job_id,
                source,
                tracker,
                stop_event=stop_event,
                curated_majors=curated_majors,
                batch_size=2,
                progress_log_every=5,
            )
            if pipeline_hook is not None:
                pipeline_hook(pipeline)
            async with SnapshotReader(path) as reader:
                await pipeline.run(reader)
        return pipeline, tracker.get(job_id)

    return _run
