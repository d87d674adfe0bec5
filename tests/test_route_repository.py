import asyncio
import sqlite3
from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from app.models.route_models import BoundingBox
from app.services.errors import RouteNotFoundError
from app.services.route_repository import RouteRecord, RouteRepository, SegmentRecord

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _route(route_id, lat=55.0, lon=37.0, minutes=0, segments=2):
    return RouteRecord(
        id=route_id,
        name=f"Route {route_id}",
        start_lat=lat,
        start_lon=lon,
        end_lat=lat + 0.001 * segments,
        end_lon=lon,
        segment_length_m=100,
        total_frames=10,
        total_distance_meters=111.19 * segments,
        total_segments=segments,
        segments_with_data=segments,
        average_coverage=50.0,
        video_filename="road.mp4",
        created_at=BASE_TIME + timedelta(minutes=minutes),
        segments=[
            SegmentRecord(
                segment_id=i + 1,
                frames_count=5,
                coverage_percentage=50.0,
                has_data=True,
                start_lat=lat + 0.001 * i,
                start_lon=lon,
                end_lat=lat + 0.001 * (i + 1),
                end_lon=lon,
            )
            for i in range(segments)
        ],
    )


@pytest.fixture
def repo(tmp_path):
    repository = RouteRepository(tmp_path / "db" / "routes.db")
    asyncio.run(repository.init_db())
    return repository


def test_create_and_get(repo):
    asyncio.run(repo.create(_route("r1")))

    loaded = asyncio.run(repo.get_by_id("r1"))

    assert loaded.name == "Route r1"
    assert loaded.created_at == BASE_TIME
    assert [s.segment_id for s in loaded.segments] == [1, 2]
    assert loaded.segments[0].has_data is True
    assert loaded.segments[1].end_lat == pytest.approx(55.002)


def test_get_missing_route(repo):
    with pytest.raises(RouteNotFoundError):
        asyncio.run(repo.get_by_id("nope"))


def test_exists(repo):
    asyncio.run(repo.create(_route("r1")))
    assert asyncio.run(repo.exists("r1")) is True
    assert asyncio.run(repo.exists("r2")) is False


def test_list_is_paginated_newest_first(repo):
    for i in range(5):
        asyncio.run(repo.create(_route(f"r{i}", minutes=i)))

    first, total = asyncio.run(repo.list(page=1, page_size=2))
    third, _ = asyncio.run(repo.list(page=3, page_size=2))

    assert total == 5
    assert [r.id for r in first] == ["r4", "r3"]
    assert [r.id for r in third] == ["r0"]
    assert all(len(r.segments) == 2 for r in first)


def test_get_by_area_matches_segment_endpoints(repo):
    asyncio.run(repo.create(_route("moscow", lat=55.0, lon=37.0)))
    asyncio.run(repo.create(_route("paris", lat=48.85, lon=2.35)))

    bbox = BoundingBox(ne_lat=55.0015, ne_lon=37.1, sw_lat=55.0005, sw_lon=36.9)
    found = asyncio.run(repo.get_by_area(bbox))

    assert [r.id for r in found] == ["moscow"]


def test_get_by_area_outside_everything(repo):
    asyncio.run(repo.create(_route("moscow")))
    bbox = BoundingBox(ne_lat=10, ne_lon=10, sw_lat=0, sw_lon=0)
    assert asyncio.run(repo.get_by_area(bbox)) == []


def test_delete_cascades_to_segments(repo):
    asyncio.run(repo.create(_route("r1")))
    asyncio.run(repo.delete("r1"))

    async def count_segments():
        async with aiosqlite.connect(repo.db_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM segments WHERE route_id = ?", ("r1",))
            (n,) = await cursor.fetchone()
            return n

    assert asyncio.run(count_segments()) == 0
    with pytest.raises(RouteNotFoundError):
        asyncio.run(repo.get_by_id("r1"))


def test_delete_missing_route(repo):
    with pytest.raises(RouteNotFoundError):
        asyncio.run(repo.delete("ghost"))


def test_duplicate_id_leaves_no_partial_rows(repo):
    asyncio.run(repo.create(_route("r1", segments=2)))
    with pytest.raises(sqlite3.IntegrityError):
        asyncio.run(repo.create(_route("r1", segments=4)))

    assert len(asyncio.run(repo.get_by_id("r1")).segments) == 2
