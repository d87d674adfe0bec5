# path: road-marking-api/app/api/routes/routes.py

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile

from app.config import Settings
from app.models.route_models import (
    AnalyzeRequest,
    AnalyzeResponse,
    AreaRoutesResponse,
    BoundingBox,
    Coordinate,
    DEFAULT_SEGMENT_LENGTH_M,
    HealthResponse,
    ListRoutesResponse,
    RouteResponse,
)
from app.services.analyzer import AnalyzerService
from app.services.errors import InferenceError, RouteNotFoundError
from app.services.inference_client import InferenceClient
from app.services.route_service import RouteService, record_to_response
from app.services.segment_builder import planned_segment_count

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["routes"])

VALID_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".webm"}

# Accepted spellings for each analyze form field, first match wins
FORM_ALIASES: Dict[str, Tuple[str, ...]] = {
    "start_lat": ("start_lat", "startLat"),
    "start_lon": ("start_lon", "startLon"),
    "end_lat": ("end_lat", "endLat"),
    "end_lon": ("end_lon", "endLon"),
    "segment_length": ("segment_length", "segment_length_m", "segmentLength"),
    "route_id": ("route_id", "routeId"),
}
REQUIRED_FIELDS = ("start_lat", "start_lon", "end_lat", "end_lon")

UPLOAD_CHUNK_SIZE = 1024 * 1024

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_route_service(request: Request) -> RouteService:
    return request.app.state.route_service


def get_analyzer(request: Request) -> AnalyzerService:
    return request.app.state.analyzer


def get_inference_client(request: Request) -> InferenceClient:
    return request.app.state.inference_client


def form_value(form: FormData, field: str) -> Optional[str]:
    for key in FORM_ALIASES[field]:
        value = form.get(key)
        if isinstance(value, str) and value.strip() != "":
            return value.strip()
    return None


def _parse_float(form: FormData, field: str) -> float:
    raw = form_value(form, field)
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {raw!r}")


def parse_analyze_form(form: FormData) -> AnalyzeRequest:
    missing = [f for f in REQUIRED_FIELDS if form_value(form, f) is None]
    if missing:
        spelled = ", ".join(" or ".join(FORM_ALIASES[f]) for f in missing)
        raise HTTPException(status_code=400, detail=f"Missing required fields: {spelled}")

    video = form.get("video")
    if not isinstance(video, UploadFile) or not video.filename:
        raise HTTPException(status_code=400, detail="Video file is required")

    seg_raw = form_value(form, "segment_length")
    try:
        segment_length = int(seg_raw) if seg_raw is not None else DEFAULT_SEGMENT_LENGTH_M
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid segment_length: {seg_raw!r}")

    try:
        analyze_request = AnalyzeRequest(
            start=Coordinate(lat=_parse_float(form, "start_lat"), lon=_parse_float(form, "start_lon")),
            end=Coordinate(lat=_parse_float(form, "end_lat"), lon=_parse_float(form, "end_lon")),
            segment_length_m=segment_length,
            route_id=form_value(form, "route_id"),
            video_filename=Path(video.filename).name,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        planned_segment_count(analyze_request.start, analyze_request.end, analyze_request.segment_length_m)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return analyze_request


def validate_upload(filename: str, size: int, max_bytes: int) -> None:
    ext = Path(filename).suffix.lower()
    if ext not in VALID_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported format '{ext}'. Accepted: {', '.join(sorted(VALID_EXTENSIONS))}",
        )
    if size > max_bytes:
        raise HTTPException(status_code=413, detail=f"File too large. Max: {max_bytes // (1024 * 1024)} MB")


async def read_video(upload: UploadFile, filename: str, max_bytes: int) -> bytes:
    """Check the declared upload, then read it in chunks up to ``max_bytes``.

    The chunked limit also catches uploads whose declared size was missing
    or wrong.
    """
    validate_upload(filename, upload.size or 0, max_bytes)

    chunks = []
    total = 0
    while chunk := await upload.read(UPLOAD_CHUNK_SIZE):
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(status_code=413, detail=f"File too large. Max: {max_bytes // (1024 * 1024)} MB")
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_road_marking(
    request: Request,
    settings: Settings = Depends(get_settings),
    analyzer: AnalyzerService = Depends(get_analyzer),
    routes: RouteService = Depends(get_route_service),
) -> AnalyzeResponse:
    form = await request.form()
    analyze_request = parse_analyze_form(form)

    video = await read_video(form["video"], analyze_request.video_filename, settings.max_upload_bytes)
    if not video:
        raise HTTPException(status_code=400, detail="Video file is empty")
    log.info("Read %d bytes of video from %s", len(video), analyze_request.video_filename)

    if analyze_request.route_id and await routes.route_exists(analyze_request.route_id):
        raise HTTPException(status_code=409, detail=f"Route {analyze_request.route_id} already exists")

    return await analyzer.analyze(analyze_request, video)


@router.get("/routes", response_model=ListRoutesResponse)
async def list_routes(
    page: int = 1,
    size: int = DEFAULT_PAGE_SIZE,
    routes: RouteService = Depends(get_route_service),
) -> ListRoutesResponse:
    if page < 1:
        page = 1
    if size < 1 or size > MAX_PAGE_SIZE:
        size = DEFAULT_PAGE_SIZE

    records, total = await routes.list_routes(page, size)
    log.info("Returning %d of %d routes", len(records), total)
    return ListRoutesResponse(
        routes=[record_to_response(r) for r in records],
        total=total,
        page=page,
        size=size,
    )


@router.get("/routes/area", response_model=AreaRoutesResponse)
async def get_routes_by_area(
    ne_lat: float,
    ne_lon: float,
    sw_lat: float,
    sw_lon: float,
    routes: RouteService = Depends(get_route_service),
) -> AreaRoutesResponse:
    try:
        bbox = BoundingBox(ne_lat=ne_lat, ne_lon=ne_lon, sw_lat=sw_lat, sw_lon=sw_lon)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    records = await routes.get_routes_by_area(bbox)
    return AreaRoutesResponse(routes=[record_to_response(r) for r in records], total=len(records))


@router.get("/routes/{route_id}", response_model=RouteResponse)
async def get_route(route_id: str, routes: RouteService = Depends(get_route_service)) -> RouteResponse:
    try:
        record = await routes.get_route(route_id)
    except RouteNotFoundError:
        raise HTTPException(status_code=404, detail="Route not found")
    return record_to_response(record)


@router.delete("/routes/{route_id}")
async def delete_route(route_id: str, routes: RouteService = Depends(get_route_service)):
    try:
        await routes.delete_route(route_id)
    except RouteNotFoundError:
        raise HTTPException(status_code=404, detail="Route not found")
    return {"message": "Route deleted"}


@router.get("/routes/{route_id}/video")
async def get_route_video(
    route_id: str,
    annotated: bool = False,
    routes: RouteService = Depends(get_route_service),
):
    try:
        record = await routes.get_route(route_id)
    except RouteNotFoundError:
        raise HTTPException(status_code=404, detail="Route not found")

    path = record.annotated_video_path if annotated else record.video_path
    if not path or not Path(path).exists():
        raise HTTPException(status_code=404, detail="Video not found for this route")
    return FileResponse(path, media_type="video/mp4", filename=Path(path).name)


@router.get("/health", response_model=HealthResponse)
async def health(inference: InferenceClient = Depends(get_inference_client)):
    try:
        upstream = await inference.check_health()
    except InferenceError as e:
        log.error("Inference service unhealthy: %s", e)
        body = HealthResponse(status="unhealthy", message="Inference service unavailable")
        return JSONResponse(status_code=503, content=body.model_dump())
    return HealthResponse(status="healthy", message="Service is running", inference=upstream)
