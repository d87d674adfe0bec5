from __future__ import annotations

import io
import json
import zipfile

import pytest

from app.config import Settings
from app.models.route_models import Coordinate


def _make_bundle(analysis=None, video: bytes = None, video_name: str = "annotated_road.mp4") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        if analysis is not None:
            zf.writestr("analysis_results.json", json.dumps(analysis))
        if video is not None:
            zf.writestr(video_name, video)
    return buf.getvalue()


def _bundle_analysis(num_segments: int = 3) -> dict:
    segments = [
        {"segment_id": i + 1, "frames_count": 4, "coverage_percentage": 50.0, "has_data": True}
        for i in range(num_segments)
    ]
    return {
        "status": "success",
        "overall_stats": {
            "total_frames": 4 * num_segments,
            "total_distance_meters": 333585.02,
            "segment_length_meters": 100,
            "total_segments": num_segments,
            "segments_with_data": num_segments,
            "average_coverage": 50.0,
        },
        "segments": segments,
    }


@pytest.fixture
def make_bundle():
    return _make_bundle


@pytest.fixture
def bundle_analysis():
    return _bundle_analysis


@pytest.fixture
def moscow_start() -> Coordinate:
    return Coordinate(lat=55.7558, lon=37.6176)


@pytest.fixture
def moscow_end() -> Coordinate:
    return Coordinate(lat=55.7568, lon=37.6186)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        inference_base_url="http://inference.test",
        inference_mode="frames",
        database_path=tmp_path / "routes.db",
        static_dir=tmp_path / "static",
        max_upload_mb=1,
    )
