import pytest

from app.models.route_models import AnalyzeRequest, BundleAnalysis, Coordinate
from app.services.errors import BundleError, UpstreamError
from app.services.result_assembler import (
    AnalysisBundle,
    FrameResults,
    assemble_result,
    unpack_bundle,
)


def _request(start, end, segment_length=100):
    return AnalyzeRequest(start=start, end=end, segment_length_m=segment_length, video_filename="road.mp4")


def test_bundle_coordinates_span_route_exactly(bundle_analysis):
    start = Coordinate(lat=0, lon=0)
    end = Coordinate(lat=0, lon=3)
    bundle = AnalysisBundle(analysis=BundleAnalysis.model_validate(bundle_analysis(3)))

    result = assemble_result(_request(start, end), bundle)

    segs = result.segments
    assert len(segs) == 3
    assert segs[0].start_coordinate == start
    assert segs[2].end_coordinate == end
    assert segs[0].end_coordinate.lon == pytest.approx(1.0)
    assert segs[1].start_coordinate.lon == pytest.approx(1.0)
    assert segs[1].end_coordinate.lon == pytest.approx(2.0)


def test_bundle_passes_upstream_numbers_through(bundle_analysis):
    raw = bundle_analysis(3)
    raw["segments"][1].update(frames_count=0, coverage_percentage=0.0, has_data=False)
    bundle = AnalysisBundle(analysis=BundleAnalysis.model_validate(raw))

    result = assemble_result(_request(Coordinate(lat=0, lon=0), Coordinate(lat=0, lon=3)), bundle)

    assert result.overall_stats.model_dump() == raw["overall_stats"]
    assert [s.frames_count for s in result.segments] == [4, 0, 4]
    assert [s.has_data for s in result.segments] == [True, False, True]


def test_single_bundle_segment_covers_whole_route(bundle_analysis):
    start = Coordinate(lat=10, lon=10)
    end = Coordinate(lat=10.01, lon=10.02)
    bundle = AnalysisBundle(analysis=BundleAnalysis.model_validate(bundle_analysis(1)))

    (only,) = assemble_result(_request(start, end), bundle).segments
    assert only.start_coordinate == start
    assert only.end_coordinate == end


def test_frame_results_are_aggregated(moscow_start, moscow_end):
    result = assemble_result(_request(moscow_start, moscow_end, 50), FrameResults(frame_results=[1, 0] * 10))

    assert result.overall_stats.total_frames == 20
    assert result.overall_stats.total_segments == 3
    assert result.segment_length_m == 50
    assert result.start_point == moscow_start
    assert result.end_point == moscow_end


def test_unpack_bundle_reads_json_and_video(make_bundle, bundle_analysis):
    data = make_bundle(bundle_analysis(2), video=b"annotated-bytes", video_name="annotated_clip.mp4")

    bundle = unpack_bundle(data)

    assert bundle.analysis.overall_stats.total_segments == 2
    assert bundle.annotated_video == b"annotated-bytes"
    assert bundle.annotated_filename == "annotated_clip.mp4"


def test_unpack_bundle_without_video(make_bundle, bundle_analysis):
    bundle = unpack_bundle(make_bundle(bundle_analysis(2)))
    assert bundle.annotated_video is None


def test_missing_analysis_json_is_fatal(make_bundle):
    with pytest.raises(BundleError, match="analysis_results.json"):
        unpack_bundle(make_bundle(None, video=b"video"))


def test_corrupt_archive_is_an_upstream_error():
    with pytest.raises(UpstreamError):
        unpack_bundle(b"PK\x03\x04 definitely not a zip")


def test_malformed_analysis_json_is_fatal(make_bundle):
    with pytest.raises(BundleError):
        unpack_bundle(make_bundle({"segments": []}))
