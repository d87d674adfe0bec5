# path: road-marking-api/app/services/route_repository.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import aiosqlite

from app.models.route_models import BoundingBox
from app.services.errors import RouteNotFoundError


SCHEMA = """
CREATE TABLE IF NOT EXISTS routes (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    start_lat REAL NOT NULL,
    start_lon REAL NOT NULL,
    end_lat REAL NOT NULL,
    end_lon REAL NOT NULL,
    segment_length_m INTEGER NOT NULL,
    video_filename TEXT,
    video_path TEXT,
    annotated_video_path TEXT,
    total_frames INTEGER NOT NULL DEFAULT 0,
    total_distance_meters REAL NOT NULL DEFAULT 0,
    total_segments INTEGER NOT NULL DEFAULT 0,
    segments_with_data INTEGER NOT NULL DEFAULT 0,
    average_coverage REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS segments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    route_id TEXT NOT NULL REFERENCES routes(id) ON DELETE CASCADE,
    segment_id INTEGER NOT NULL,
    frames_count INTEGER NOT NULL DEFAULT 0,
    coverage_percentage REAL NOT NULL DEFAULT 0,
    has_data INTEGER NOT NULL DEFAULT 0,
    start_lat REAL NOT NULL,
    start_lon REAL NOT NULL,
    end_lat REAL NOT NULL,
    end_lon REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_routes_created_at ON routes(created_at);
CREATE INDEX IF NOT EXISTS idx_segments_route_id ON segments(route_id);
CREATE INDEX IF NOT EXISTS idx_segments_coordinates ON segments(start_lat, start_lon, end_lat, end_lon);
"""

ROUTE_COLUMNS = (
    "id, name, start_lat, start_lon, end_lat, end_lon, segment_length_m, "
    "video_filename, video_path, annotated_video_path, total_frames, "
    "total_distance_meters, total_segments, segments_with_data, average_coverage, created_at"
)


@dataclass
class SegmentRecord:
    segment_id: int
    frames_count: int
    coverage_percentage: float
    has_data: bool
    start_lat: float
    start_lon: float
    end_lat: float
    end_lon: float


@dataclass
class RouteRecord:
    id: str
    name: str
    start_lat: float
    start_lon: float
    end_lat: float
    end_lon: float
    segment_length_m: int
    total_frames: int = 0
    total_distance_meters: float = 0.0
    total_segments: int = 0
    segments_with_data: int = 0
    average_coverage: float = 0.0
    video_filename: Optional[str] = None
    video_path: Optional[str] = None
    annotated_video_path: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    segments: List[SegmentRecord] = field(default_factory=list)


def _route_from_row(row: aiosqlite.Row) -> RouteRecord:
    return RouteRecord(
        id=row["id"],
        name=row["name"],
        start_lat=row["start_lat"],
        start_lon=row["start_lon"],
        end_lat=row["end_lat"],
        end_lon=row["end_lon"],
        segment_length_m=row["segment_length_m"],
        total_frames=row["total_frames"],
        total_distance_meters=row["total_distance_meters"],
        total_segments=row["total_segments"],
        segments_with_data=row["segments_with_data"],
        average_coverage=row["average_coverage"],
        video_filename=row["video_filename"],
        video_path=row["video_path"],
        annotated_video_path=row["annotated_video_path"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _segment_from_row(row: aiosqlite.Row) -> SegmentRecord:
    return SegmentRecord(
        segment_id=row["segment_id"],
        frames_count=row["frames_count"],
        coverage_percentage=row["coverage_percentage"],
        has_data=bool(row["has_data"]),
        start_lat=row["start_lat"],
        start_lon=row["start_lon"],
        end_lat=row["end_lat"],
        end_lon=row["end_lon"],
    )


class RouteRepository:
    """SQLite storage for routes and their segments."""

    def __init__(self, db_path: Path):
        self.db_path = str(db_path)

    def _connect(self):
        return aiosqlite.connect(self.db_path)

    @staticmethod
    async def _prepare(db: aiosqlite.Connection) -> None:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")

    async def init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.executescript(SCHEMA)
            await db.commit()

    async def create(self, route: RouteRecord) -> None:
        async with self._connect() as db:
            await self._prepare(db)
            try:
                await db.execute(
                    f"INSERT INTO routes ({ROUTE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        route.id, route.name,
                        route.start_lat, route.start_lon, route.end_lat, route.end_lon,
                        route.segment_length_m,
                        route.video_filename, route.video_path, route.annotated_video_path,
                        route.total_frames, route.total_distance_meters, route.total_segments,
                        route.segments_with_data, route.average_coverage,
                        route.created_at.isoformat(),
                    ),
                )
                await db.executemany(
                    """
                    INSERT INTO segments (route_id, segment_id, frames_count, coverage_percentage,
                                          has_data, start_lat, start_lon, end_lat, end_lon)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            route.id, s.segment_id, s.frames_count, s.coverage_percentage,
                            int(s.has_data), s.start_lat, s.start_lon, s.end_lat, s.end_lon,
                        )
                        for s in route.segments
                    ],
                )
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

    async def _load_segments(self, db: aiosqlite.Connection, route: RouteRecord) -> RouteRecord:
        cursor = await db.execute(
            "SELECT * FROM segments WHERE route_id = ? ORDER BY segment_id",
            (route.id,),
        )
        route.segments = [_segment_from_row(r) for r in await cursor.fetchall()]
        return route

    async def get_by_id(self, route_id: str) -> RouteRecord:
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute(f"SELECT {ROUTE_COLUMNS} FROM routes WHERE id = ?", (route_id,))
            row = await cursor.fetchone()
            if row is None:
                raise RouteNotFoundError(route_id)
            return await self._load_segments(db, _route_from_row(row))

    async def exists(self, route_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("SELECT 1 FROM routes WHERE id = ?", (route_id,))
            return await cursor.fetchone() is not None

    async def get_by_area(self, bbox: BoundingBox) -> List[RouteRecord]:
        # A route matches when any segment endpoint falls inside the box
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute(
                f"""
                SELECT {ROUTE_COLUMNS} FROM routes WHERE id IN (
                    SELECT DISTINCT route_id FROM segments
                    WHERE (start_lat BETWEEN ? AND ? AND start_lon BETWEEN ? AND ?)
                       OR (end_lat BETWEEN ? AND ? AND end_lon BETWEEN ? AND ?)
                )
                ORDER BY created_at DESC
                """,
                (
                    bbox.sw_lat, bbox.ne_lat, bbox.sw_lon, bbox.ne_lon,
                    bbox.sw_lat, bbox.ne_lat, bbox.sw_lon, bbox.ne_lon,
                ),
            )
            rows = await cursor.fetchall()
            return [await self._load_segments(db, _route_from_row(r)) for r in rows]

    async def list(self, page: int, page_size: int) -> Tuple[List[RouteRecord], int]:
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute("SELECT COUNT(*) FROM routes")
            (total,) = await cursor.fetchone()

            offset = (page - 1) * page_size
            cursor = await db.execute(
                f"SELECT {ROUTE_COLUMNS} FROM routes ORDER BY created_at DESC LIMIT ? OFFSET ?",
                (page_size, offset),
            )
            rows = await cursor.fetchall()
            routes = [await self._load_segments(db, _route_from_row(r)) for r in rows]
            return routes, total

    async def delete(self, route_id: str) -> None:
        async with self._connect() as db:
            await self._prepare(db)
            cursor = await db.execute("DELETE FROM routes WHERE id = ?", (route_id,))
            if cursor.rowcount == 0:
                await db.rollback()
                raise RouteNotFoundError(route_id)
            await db.commit()
