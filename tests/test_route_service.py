import asyncio
import sqlite3

import pytest

from app.models.route_models import AnalyzeRequest
from app.services.errors import RouteExistsError
from app.services.result_assembler import FrameResults, assemble_result
from app.services.route_repository import RouteRepository
from app.services.route_service import RouteService
from app.services.video_storage import VideoStorage


@pytest.fixture
def service(tmp_path):
    repository = RouteRepository(tmp_path / "routes.db")
    asyncio.run(repository.init_db())
    return RouteService(repository, VideoStorage(tmp_path / "static"))


@pytest.fixture
def result(moscow_start, moscow_end):
    request = AnalyzeRequest(start=moscow_start, end=moscow_end, segment_length_m=50, video_filename="road.mp4")
    return assemble_result(request, FrameResults(frame_results=[1, 0, 1, 1]))


def test_save_writes_video_and_annotated(service, result):
    record = asyncio.run(service.save_route(
        "r1", result, video_filename="road.mp4", video=b"raw",
        annotated_filename="annotated_road.mp4", annotated_video=b"boxes",
    ))

    route_dir = service.storage.route_dir("r1")
    assert record.video_path == str(route_dir / "r1.mp4")
    assert (route_dir / "r1.mp4").read_bytes() == b"raw"
    assert (route_dir / "annotated_road.mp4").read_bytes() == b"boxes"
    assert not list(route_dir.glob("*.part"))


def test_existing_route_is_refused(service, result):
    asyncio.run(service.save_route("r1", result, video_filename="road.mp4", video=b"first"))

    with pytest.raises(RouteExistsError):
        asyncio.run(service.save_route("r1", result, video_filename="road.mp4", video=b"second"))

    assert (service.storage.route_dir("r1") / "r1.mp4").read_bytes() == b"first"


def test_losing_concurrent_save_keeps_winner_video(service, result, monkeypatch):
    asyncio.run(service.save_route("dup", result, video_filename="road.mp4", video=b"FIRST"))

    # Both requests passed the existence check before either committed
    async def not_there(route_id):
        return False

    monkeypatch.setattr(service.repository, "exists", not_there)
    with pytest.raises(sqlite3.IntegrityError):
        asyncio.run(service.save_route("dup", result, video_filename="road.mp4", video=b"SECOND"))

    route_dir = service.storage.route_dir("dup")
    saved = asyncio.run(service.get_route("dup"))
    assert saved.video_path == str(route_dir / "dup.mp4")
    assert (route_dir / "dup.mp4").read_bytes() == b"FIRST"
    assert not list(route_dir.glob("*.part"))


def test_delete_removes_videos(service, result):
    asyncio.run(service.save_route("r1", result, video_filename="road.mp4", video=b"raw"))

    asyncio.run(service.delete_route("r1"))

    assert not service.storage.route_dir("r1").exists()
