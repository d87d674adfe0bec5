# path: road-marking-api/app/services/inference_client.py

from __future__ import annotations

from typing import Dict, Optional
import io
import logging
import zipfile

import httpx
from pydantic import ValidationError

from app.models.route_models import Coordinate, FrameResultsPayload
from app.services.errors import InferenceError
from app.services.result_assembler import FrameResults, UpstreamResult, unpack_bundle


log = logging.getLogger(__name__)

BUNDLE_ENDPOINT = "/analyze-road-marking"
FRAMES_ENDPOINT = "/analyze"
HEALTH_ENDPOINT = "/health"


def _form_fields(mode: str, start: Coordinate, end: Coordinate, segment_length_m: int) -> Dict[str, str]:
    # The two upstream endpoints spell their form fields differently
    if mode == "bundle":
        return {
            "lat1": f"{start.lat:.6f}",
            "lon1": f"{start.lon:.6f}",
            "lat2": f"{end.lat:.6f}",
            "lon2": f"{end.lon:.6f}",
            "segment_length_m": str(segment_length_m),
        }
    return {
        "startLat": f"{start.lat:.6f}",
        "startLon": f"{start.lon:.6f}",
        "endLat": f"{end.lat:.6f}",
        "endLon": f"{end.lon:.6f}",
        "segmentLength": str(segment_length_m),
    }


def decode_response(content: bytes) -> UpstreamResult:
    if zipfile.is_zipfile(io.BytesIO(content)):
        return unpack_bundle(content)

    try:
        payload = FrameResultsPayload.model_validate_json(content)
    except ValidationError as e:
        raise InferenceError(f"malformed inference response: {e}") from e

    if payload.status != "success":
        raise InferenceError(f"inference service reported {payload.status}: {payload.message or 'no message'}")
    return FrameResults(frame_results=payload.frame_results, message=payload.message)


class InferenceClient:
    """
    Talks to the external road-marking model service.

    ``mode`` selects the upstream endpoint: ``bundle`` returns a ZIP with
    pre-aggregated statistics and an annotated video, ``frames`` returns the
    raw per-frame detections as JSON. Responses are decoded by content, so
    either endpoint may answer in either shape.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 300,
        mode: str = "bundle",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.mode = mode
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def analyze(
        self,
        video: bytes,
        filename: str,
        start: Coordinate,
        end: Coordinate,
        segment_length_m: int,
    ) -> UpstreamResult:
        endpoint = BUNDLE_ENDPOINT if self.mode == "bundle" else FRAMES_ENDPOINT
        log.info("Sending %d bytes of video to %s%s", len(video), self._client.base_url, endpoint)

        try:
            resp = await self._client.post(
                endpoint,
                data=_form_fields(self.mode, start, end, segment_length_m),
                files={"video": (filename, video, "application/octet-stream")},
            )
        except httpx.HTTPError as e:
            raise InferenceError(f"inference service request failed: {e}") from e

        if resp.status_code != httpx.codes.OK:
            raise InferenceError(f"inference service returned {resp.status_code}: {resp.text[:500]}")

        log.info("Inference response: %d bytes (%s)", len(resp.content), resp.headers.get("content-type", "unknown"))
        return decode_response(resp.content)

    async def check_health(self) -> dict:
        try:
            resp = await self._client.get(HEALTH_ENDPOINT)
        except httpx.HTTPError as e:
            raise InferenceError(f"inference service unavailable: {e}") from e
        if resp.status_code != httpx.codes.OK:
            raise InferenceError(f"inference service returned status {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            data = None
        return data if isinstance(data, dict) else {"status": "healthy"}

    async def aclose(self) -> None:
        await self._client.aclose()
