# path: road-marking-api/app/services/segment_builder.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple
import math

from app.models.route_models import Coordinate
from app.utils.geo import distance_m, interpolate, lerp

# Upper bound on buckets per route
MAX_SEGMENTS = 10_000


@dataclass
class SegmentBucket:
    index: int
    start: Coordinate
    end: Coordinate
    frames: List[int] = field(default_factory=list)


@dataclass
class SegmentPlan:
    total_distance_m: float
    segment_length_m: int
    buckets: List[SegmentBucket]


def segment_count(total_distance_m: float, segment_length_m: int) -> int:
    if segment_length_m <= 0:
        raise ValueError(f"segment_length_m must be positive, got {segment_length_m}")
    if total_distance_m <= 0:
        # Identical endpoints: a single zero-length segment holds every frame
        return 1
    return int(math.ceil(total_distance_m / segment_length_m))


def planned_segment_count(start: Coordinate, end: Coordinate, segment_length_m: int) -> int:
    count = segment_count(distance_m(start, end), segment_length_m)
    if count > MAX_SEGMENTS:
        raise ValueError(
            f"Route would split into {count} segments (> {MAX_SEGMENTS}); use a longer segment length"
        )
    return count


def segment_bounds(
    start: Coordinate,
    end: Coordinate,
    index: int,
    num_segments: int,
    segment_length_m: int,
    total_distance_m: float,
) -> Tuple[Coordinate, Coordinate]:
    if total_distance_m <= 0:
        return start, end

    start_ratio = index * segment_length_m / total_distance_m
    if index == num_segments - 1:
        end_ratio = 1.0
    else:
        end_ratio = min((index + 1) * segment_length_m, total_distance_m) / total_distance_m
    return lerp(start, end, start_ratio), lerp(start, end, end_ratio)


def segment_index(frame_distance_m: float, segment_length_m: int, num_segments: int) -> int:
    idx = int(math.floor(frame_distance_m / segment_length_m))
    # Far endpoint can land exactly on (or float just past) the last boundary
    return max(0, min(idx, num_segments - 1))


def build_segments(
    start: Coordinate,
    end: Coordinate,
    segment_length_m: int,
    frame_results: Sequence[int],
) -> SegmentPlan:
    """
    Partition the straight start->end route into fixed-length segments and
    assign each frame result to one of them.

    Frames are spread evenly along the route (frame i sits at ratio
    i/(n-1)) and bucketed by their haversine distance from the start.
    Segments that receive no frames are still part of the plan.
    """
    total = distance_m(start, end)
    num_segments = planned_segment_count(start, end, segment_length_m)

    buckets = []
    for i in range(num_segments):
        seg_start, seg_end = segment_bounds(start, end, i, num_segments, segment_length_m, total)
        buckets.append(SegmentBucket(index=i, start=seg_start, end=seg_end))

    frame_coords = interpolate(start, end, len(frame_results))
    for coord, result in zip(frame_coords, frame_results):
        idx = segment_index(distance_m(start, coord), segment_length_m, num_segments)
        buckets[idx].frames.append(int(result))

    return SegmentPlan(
        total_distance_m=total,
        segment_length_m=segment_length_m,
        buckets=buckets,
    )
