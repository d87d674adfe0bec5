# path: road-marking-api/app/services/analyzer.py

from __future__ import annotations

import logging

from app.models.route_models import AnalyzeRequest, AnalyzeResponse
from app.services.inference_client import InferenceClient
from app.services.result_assembler import AnalysisBundle, assemble_result
from app.services.route_service import RouteService, generate_route_id


log = logging.getLogger(__name__)


class AnalyzerService:
    def __init__(self, inference: InferenceClient, routes: RouteService):
        self.inference = inference
        self.routes = routes

    async def analyze(self, request: AnalyzeRequest, video: bytes) -> AnalyzeResponse:
        """
        Run one analysis end to end: upstream inference, segment assembly,
        then storage of the route and its video.

        Upstream failures propagate (nothing is stored). A storage failure
        is logged and the computed result is still returned.
        """
        route_id = request.route_id or generate_route_id()
        log.info(
            "Analyzing route %s: start(%.6f, %.6f) end(%.6f, %.6f) segment %d m",
            route_id, request.start.lat, request.start.lon,
            request.end.lat, request.end.lon, request.segment_length_m,
        )

        upstream = await self.inference.analyze(
            video=video,
            filename=request.video_filename,
            start=request.start,
            end=request.end,
            segment_length_m=request.segment_length_m,
        )
        result = assemble_result(request, upstream)
        stats = result.overall_stats
        log.info("Route %s: %d segments, average coverage %.1f%%",
                 route_id, stats.total_segments, stats.average_coverage)

        annotated_name = annotated_video = None
        if isinstance(upstream, AnalysisBundle):
            annotated_name = upstream.annotated_filename
            annotated_video = upstream.annotated_video

        message = "Analysis completed"
        stored_id = route_id
        try:
            await self.routes.save_route(
                route_id,
                result,
                video_filename=request.video_filename,
                video=video,
                annotated_filename=annotated_name,
                annotated_video=annotated_video,
            )
        except Exception:
            log.exception("Route %s analyzed but not saved", route_id)
            message = "Analysis completed, but the route could not be saved"
            stored_id = None

        return AnalyzeResponse(
            status="success",
            message=message,
            route_id=stored_id,
            overall_stats=result.overall_stats,
            segments=result.segments,
        )
