# path: road-marking-api/app/services/route_service.py

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple
import logging
import uuid

from app.models.route_models import (
    AnalysisResult,
    BoundingBox,
    Coordinate,
    OverallStats,
    RouteResponse,
    SegmentInfo,
)
from app.services.errors import RouteExistsError
from app.services.route_repository import RouteRecord, RouteRepository, SegmentRecord
from app.services.video_storage import VideoStorage


log = logging.getLogger(__name__)


def generate_route_id() -> str:
    return str(uuid.uuid4())


def record_to_response(route: RouteRecord) -> RouteResponse:
    return RouteResponse(
        id=route.id,
        name=route.name,
        start_point=Coordinate(lat=route.start_lat, lon=route.start_lon),
        end_point=Coordinate(lat=route.end_lat, lon=route.end_lon),
        segment_length_m=route.segment_length_m,
        overall_stats=OverallStats(
            total_frames=route.total_frames,
            total_distance_meters=route.total_distance_meters,
            segment_length_meters=route.segment_length_m,
            total_segments=route.total_segments,
            segments_with_data=route.segments_with_data,
            average_coverage=route.average_coverage,
        ),
        segments=[
            SegmentInfo(
                segment_id=s.segment_id,
                frames_count=s.frames_count,
                coverage_percentage=s.coverage_percentage,
                has_data=s.has_data,
                start_coordinate=Coordinate(lat=s.start_lat, lon=s.start_lon),
                end_coordinate=Coordinate(lat=s.end_lat, lon=s.end_lon),
            )
            for s in route.segments
        ],
        video_filename=route.video_filename,
        has_video=bool(route.video_path),
        has_annotated_video=bool(route.annotated_video_path),
        created_at=route.created_at,
    )


def result_to_record(
    route_id: str,
    result: AnalysisResult,
    video_filename: Optional[str] = None,
    video_path: Optional[Path] = None,
    annotated_video_path: Optional[Path] = None,
) -> RouteRecord:
    stats = result.overall_stats
    return RouteRecord(
        id=route_id,
        name=f"Route {route_id[:8]}",
        start_lat=result.start_point.lat,
        start_lon=result.start_point.lon,
        end_lat=result.end_point.lat,
        end_lon=result.end_point.lon,
        segment_length_m=result.segment_length_m,
        total_frames=stats.total_frames,
        total_distance_meters=stats.total_distance_meters,
        total_segments=stats.total_segments,
        segments_with_data=stats.segments_with_data,
        average_coverage=stats.average_coverage,
        video_filename=video_filename,
        video_path=str(video_path) if video_path else None,
        annotated_video_path=str(annotated_video_path) if annotated_video_path else None,
        segments=[
            SegmentRecord(
                segment_id=s.segment_id,
                frames_count=s.frames_count,
                coverage_percentage=s.coverage_percentage,
                has_data=s.has_data,
                start_lat=s.start_coordinate.lat,
                start_lon=s.start_coordinate.lon,
                end_lat=s.end_coordinate.lat,
                end_lon=s.end_coordinate.lon,
            )
            for s in result.segments
        ],
    )


class RouteService:
    def __init__(self, repository: RouteRepository, storage: VideoStorage):
        self.repository = repository
        self.storage = storage

    async def save_route(
        self,
        route_id: str,
        result: AnalysisResult,
        video_filename: str,
        video: bytes,
        annotated_filename: Optional[str] = None,
        annotated_video: Optional[bytes] = None,
    ) -> RouteRecord:
        log.info("Saving route %s with %d segments", route_id, len(result.segments))
        if await self.repository.exists(route_id):
            raise RouteExistsError(route_id)

        video_path = self.storage.video_path(route_id, video_filename)
        annotated_path = None
        if annotated_video:
            annotated_path = self.storage.annotated_path(route_id, annotated_filename or video_filename)

        # (staged, final) pairs; only promoted after the row is committed
        staged: List[Tuple[Path, Path]] = []
        try:
            staged.append((await self.storage.stage(video_path, video), video_path))
            if annotated_path is not None:
                staged.append((await self.storage.stage(annotated_path, annotated_video), annotated_path))
            record = result_to_record(route_id, result, video_filename, video_path, annotated_path)
            await self.repository.create(record)
        except Exception:
            for tmp, _ in staged:
                self.storage.discard(tmp)
            raise

        for tmp, final in staged:
            self.storage.promote(tmp, final)
        log.info("Route %s saved", route_id)
        return record

    async def route_exists(self, route_id: str) -> bool:
        return await self.repository.exists(route_id)

    async def get_route(self, route_id: str) -> RouteRecord:
        return await self.repository.get_by_id(route_id)

    async def get_routes_by_area(self, bbox: BoundingBox) -> List[RouteRecord]:
        routes = await self.repository.get_by_area(bbox)
        log.info("Found %d routes in area NE(%.6f, %.6f) SW(%.6f, %.6f)",
                 len(routes), bbox.ne_lat, bbox.ne_lon, bbox.sw_lat, bbox.sw_lon)
        return routes

    async def list_routes(self, page: int, size: int) -> Tuple[List[RouteRecord], int]:
        return await self.repository.list(page, size)

    async def delete_route(self, route_id: str) -> None:
        await self.repository.delete(route_id)
        self.storage.delete_route(route_id)
        log.info("Route %s deleted", route_id)
