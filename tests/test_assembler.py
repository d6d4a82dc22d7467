import numpy as np
import pytest

from conftest import bad_marker, good_marker
from marker_localizer.assembler import FailurePolicy, ResultAssembler, axis_points, draw_axes
from marker_localizer.errors import FrameAborted
from marker_localizer.estimator import MarkerPoseEstimator
from marker_localizer.ml_types import GlobalPose, PoseFailure


def _inputs(markers, intrinsics):
    cam = MarkerPoseEstimator().estimate(markers, intrinsics, 0.1)
    glob = [
        p if isinstance(p, PoseFailure) else GlobalPose(p.tvec.copy(), np.array([0.0, 0.0, 0.0, 1.0]))
        for p in cam
    ]
    return cam, glob


def test_records_carry_id_pose_anchor_and_stamp(header, intrinsics, blank_image):
    markers = [good_marker(3), good_marker(8, x=0.1)]
    cam, glob = _inputs(markers, intrinsics)

    result = ResultAssembler("map", 0.1).assemble(header, markers, cam, glob, blank_image, intrinsics)

    arr = result.marker_array
    assert arr.frame_id == "map"
    assert arr.stamp == header.stamp
    assert arr.ids == [3, 8]
    rec = arr.markers[1]
    assert rec.stamp == header.stamp
    assert rec.pixel_x == pytest.approx(float(markers[1].corners[0][0]))
    assert rec.pixel_y == pytest.approx(float(markers[1].corners[0][1]))
    assert result.skipped == []


def test_overlay_is_drawn_on_a_copy(header, intrinsics, blank_image):
    markers = [good_marker(3)]
    cam, glob = _inputs(markers, intrinsics)

    result = ResultAssembler("map", 0.1).assemble(header, markers, cam, glob, blank_image, intrinsics)

    assert blank_image.sum() == 0
    assert result.image.sum() > 0
    # red, green and blue strokes all present
    for channel in range(3):
        assert result.image[:, :, channel].max() == 255


def test_skip_marker_policy_drops_only_the_failure(header, intrinsics, blank_image):
    markers = [good_marker(1), bad_marker(2), good_marker(3, x=0.1)]
    cam, glob = _inputs(markers, intrinsics)

    result = ResultAssembler("map", 0.1, FailurePolicy.SKIP_MARKER).assemble(
        header, markers, cam, glob, blank_image, intrinsics
    )

    assert result.marker_array.ids == [1, 3]
    assert [f.marker_id for f in result.skipped] == [2]


def test_abort_frame_policy_raises(header, intrinsics, blank_image):
    markers = [good_marker(1), bad_marker(2)]
    cam, glob = _inputs(markers, intrinsics)

    with pytest.raises(FrameAborted) as info:
        ResultAssembler("map", 0.1, "abort_frame").assemble(header, markers, cam, glob, blank_image, intrinsics)
    assert info.value.marker_id == 2


def test_no_markers_gives_empty_array_and_untouched_image(header, intrinsics, blank_image):
    result = ResultAssembler("map", 0.1).assemble(header, [], [], [], blank_image, intrinsics)
    assert result.marker_array.markers == []
    assert np.array_equal(result.image, blank_image)


def test_misaligned_inputs_rejected(header, intrinsics, blank_image):
    with pytest.raises(ValueError):
        ResultAssembler("map", 0.1).assemble(header, [good_marker(1)], [], [], blank_image, intrinsics)


def test_policy_from_name():
    assert FailurePolicy.from_name("ABORT_FRAME") is FailurePolicy.ABORT_FRAME
    assert FailurePolicy.from_name(FailurePolicy.SKIP_MARKER) is FailurePolicy.SKIP_MARKER
    with pytest.raises(ValueError):
        FailurePolicy.from_name("retry")


def test_axis_points_scale():
    pts = axis_points(0.05)
    assert pts.shape == (4, 3)
    assert np.allclose(pts[3], [0.0, 0.0, 0.05])


def test_draw_axes_projects_origin_to_principal_point(intrinsics, blank_image):
    """Marker straight ahead: the origin lands on (cx, cy)."""
    assert draw_axes(blank_image, intrinsics.camera_matrix, np.zeros(3), np.array([0.0, 0.0, 1.0]), 0.05)
    # x axis runs right from the centre in red
    assert tuple(blank_image[240, 345]) == (0, 0, 255)


def test_draw_axes_rejects_unprojectable_pose(intrinsics, blank_image):
    drawn = draw_axes(blank_image, intrinsics.camera_matrix, np.zeros(3), np.array([0.0, 0.0, 1e-9]), 0.05)
    assert drawn is False
    assert blank_image.sum() == 0
