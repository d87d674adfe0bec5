# path: road-marking-api/app/models/route_models.py

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_SEGMENT_LENGTH_M = 100

AnalysisStatus = Literal["success", "error"]


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, lat: float):
        if not (-90.0 <= lat <= 90.0):
            raise ValueError(f"lat out of range [-90,90]: {lat}")
        return lat

    @field_validator("lon")
    @classmethod
    def validate_lon(cls, lon: float):
        if not (-180.0 <= lon <= 180.0):
            raise ValueError(f"lon out of range [-180,180]: {lon}")
        return lon


class BoundingBox(BaseModel):
    ne_lat: float = Field(ge=-90, le=90)
    ne_lon: float = Field(ge=-180, le=180)
    sw_lat: float = Field(ge=-90, le=90)
    sw_lon: float = Field(ge=-180, le=180)

    @model_validator(mode="after")
    def validate_corners(self):
        if self.sw_lat > self.ne_lat:
            raise ValueError("sw_lat must not be greater than ne_lat")
        if self.sw_lon > self.ne_lon:
            raise ValueError("sw_lon must not be greater than ne_lon")
        return self


class AnalyzeRequest(BaseModel):
    start: Coordinate
    end: Coordinate
    segment_length_m: int = Field(default=DEFAULT_SEGMENT_LENGTH_M, gt=0)
    route_id: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_-]{1,36}$")
    video_filename: str = Field(min_length=1)


class SegmentInfo(BaseModel):
    segment_id: int
    frames_count: int = Field(ge=0)
    coverage_percentage: float = Field(ge=0, le=100)
    start_coordinate: Coordinate
    end_coordinate: Coordinate
    has_data: bool


class OverallStats(BaseModel):
    total_frames: int = Field(ge=0)
    total_distance_meters: float = Field(ge=0)
    segment_length_meters: int = Field(gt=0)
    total_segments: int = Field(ge=0)
    segments_with_data: int = Field(ge=0)
    average_coverage: float = Field(ge=0, le=100)


class AnalysisResult(BaseModel):
    start_point: Coordinate
    end_point: Coordinate
    segment_length_m: int = Field(gt=0)
    overall_stats: OverallStats
    segments: List[SegmentInfo]


class AnalyzeResponse(BaseModel):
    status: AnalysisStatus = "success"
    message: str
    route_id: Optional[str] = None
    overall_stats: Optional[OverallStats] = None
    segments: List[SegmentInfo] = Field(default_factory=list)


class RouteResponse(BaseModel):
    id: str
    name: str
    start_point: Coordinate
    end_point: Coordinate
    segment_length_m: int
    overall_stats: OverallStats
    segments: List[SegmentInfo]
    video_filename: Optional[str] = None
    has_video: bool = False
    has_annotated_video: bool = False
    created_at: datetime


class ListRoutesResponse(BaseModel):
    routes: List[RouteResponse]
    total: int
    page: int
    size: int


class AreaRoutesResponse(BaseModel):
    routes: List[RouteResponse]
    total: int


class HealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    message: Optional[str] = None
    inference: Optional[dict] = None


# --- Upstream (inference service) payloads ---


class FrameResultsPayload(BaseModel):
    status: str
    message: Optional[str] = None
    frame_results: List[int] = Field(default_factory=list)

    @field_validator("frame_results")
    @classmethod
    def validate_binary(cls, values: List[int]):
        for v in values:
            if v not in (0, 1):
                raise ValueError(f"frame result must be 0 or 1, got {v}")
        return values


class BundleSegment(BaseModel):
    segment_id: int
    frames_count: int = Field(ge=0)
    coverage_percentage: float = Field(ge=0, le=100)
    has_data: bool


class BundleAnalysis(BaseModel):
    status: Optional[str] = None
    overall_stats: OverallStats
    segments: List[BundleSegment] = Field(default_factory=list)
