# path: road-marking-api/app/services/result_assembler.py

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union
import io
import json
import logging
import zipfile

from pydantic import ValidationError

from app.models.route_models import (
    AnalysisResult,
    AnalyzeRequest,
    BundleAnalysis,
    BundleSegment,
    Coordinate,
    SegmentInfo,
)
from app.services.errors import BundleError
from app.services.route_stats import summarize_plan
from app.services.segment_builder import build_segments
from app.utils.geo import lerp


log = logging.getLogger(__name__)

ANALYSIS_FILE = "analysis_results.json"
ANNOTATED_PREFIX = "annotated_"
ANNOTATED_SUFFIX = ".mp4"


@dataclass(frozen=True)
class FrameResults:
    frame_results: List[int]
    message: Optional[str] = None


@dataclass(frozen=True)
class AnalysisBundle:
    analysis: BundleAnalysis
    annotated_video: Optional[bytes] = None
    annotated_filename: Optional[str] = None


UpstreamResult = Union[FrameResults, AnalysisBundle]


def unpack_bundle(data: bytes) -> AnalysisBundle:
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise BundleError(f"invalid ZIP archive: {e}") from e

    analysis_raw = None
    video = None
    video_name = None
    with archive:
        for name in archive.namelist():
            if name == ANALYSIS_FILE:
                analysis_raw = archive.read(name)
                log.info("Found %s: %d bytes", name, len(analysis_raw))
            elif name.startswith(ANNOTATED_PREFIX) and name.endswith(ANNOTATED_SUFFIX):
                video = archive.read(name)
                video_name = name
                log.info("Found annotated video %s: %d bytes", name, len(video))

    if analysis_raw is None:
        raise BundleError(f"{ANALYSIS_FILE} not found in ZIP archive")

    try:
        analysis = BundleAnalysis.model_validate(json.loads(analysis_raw))
    except (ValueError, ValidationError) as e:
        raise BundleError(f"failed to parse {ANALYSIS_FILE}: {e}") from e

    return AnalysisBundle(analysis=analysis, annotated_video=video, annotated_filename=video_name)


def bundle_segments(start: Coordinate, end: Coordinate, segments: List[BundleSegment]) -> List[SegmentInfo]:
    """
    Attach route coordinates to pre-aggregated segments.

    The upstream numbers are kept as-is; only the start/end coordinates are
    derived, by even progress along the route.
    """
    count = len(segments)
    out = []
    for i, seg in enumerate(segments):
        start_progress = i / count
        end_progress = 1.0 if i == count - 1 else (i + 1) / count
        out.append(
            SegmentInfo(
                segment_id=seg.segment_id,
                frames_count=seg.frames_count,
                coverage_percentage=seg.coverage_percentage,
                start_coordinate=lerp(start, end, start_progress),
                end_coordinate=lerp(start, end, end_progress),
                has_data=seg.has_data,
            )
        )
    return out


def assemble_result(request: AnalyzeRequest, upstream: UpstreamResult) -> AnalysisResult:
    if isinstance(upstream, FrameResults):
        plan = build_segments(request.start, request.end, request.segment_length_m, upstream.frame_results)
        segments, stats = summarize_plan(plan, total_frames=len(upstream.frame_results))
    elif isinstance(upstream, AnalysisBundle):
        segments = bundle_segments(request.start, request.end, upstream.analysis.segments)
        stats = upstream.analysis.overall_stats
    else:
        raise TypeError(f"unsupported upstream result: {type(upstream).__name__}")

    return AnalysisResult(
        start_point=request.start,
        end_point=request.end,
        segment_length_m=request.segment_length_m,
        overall_stats=stats,
        segments=segments,
    )
