# path: road-marking-api/app/services/route_stats.py

from __future__ import annotations

from typing import List, Sequence, Tuple
import math

from app.models.route_models import OverallStats, SegmentInfo
from app.services.segment_builder import SegmentBucket, SegmentPlan


def round_half_up(value: float, digits: int) -> float:
    # Half away from zero; inputs here are never negative
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def coverage_percentage(frames: Sequence[int]) -> float:
    if not frames:
        return 0.0
    marked = sum(frames)
    return round_half_up(marked * 100.0 / len(frames), 1)


def summarize_segment(bucket: SegmentBucket) -> SegmentInfo:
    has_data = len(bucket.frames) > 0
    return SegmentInfo(
        segment_id=bucket.index + 1,
        frames_count=len(bucket.frames),
        coverage_percentage=coverage_percentage(bucket.frames),
        start_coordinate=bucket.start,
        end_coordinate=bucket.end,
        has_data=has_data,
    )


def average_coverage(segments: Sequence[SegmentInfo]) -> float:
    covered = [s.coverage_percentage for s in segments if s.has_data]
    if not covered:
        return 0.0
    return round_half_up(sum(covered) / len(covered), 1)


def overall_stats(
    segments: Sequence[SegmentInfo],
    total_frames: int,
    total_distance_m: float,
    segment_length_m: int,
) -> OverallStats:
    return OverallStats(
        total_frames=total_frames,
        total_distance_meters=round_half_up(total_distance_m, 2),
        segment_length_meters=segment_length_m,
        total_segments=len(segments),
        segments_with_data=sum(1 for s in segments if s.has_data),
        average_coverage=average_coverage(segments),
    )


def summarize_plan(plan: SegmentPlan, total_frames: int) -> Tuple[List[SegmentInfo], OverallStats]:
    segments = [summarize_segment(b) for b in plan.buckets]
    stats = overall_stats(segments, total_frames, plan.total_distance_m, plan.segment_length_m)
    return segments, stats
