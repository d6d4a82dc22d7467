from unittest.mock import patch

import cv2
import numpy as np
import pytest

from conftest import bad_marker, project_marker
from marker_localizer import estimator as estimator_mod
from marker_localizer.estimator import MarkerPoseEstimator, marker_object_points
from marker_localizer.intrinsics import CameraIntrinsics
from marker_localizer.ml_types import CameraRelativePose, DetectedMarker, PoseFailure


POSES = [
    ([0.0, 0.0, 0.0], [0.0, 0.0, 0.5]),
    ([0.2, -0.3, 0.1], [0.05, -0.02, 0.8]),
    ([-0.4, 0.1, 1.2], [-0.2, 0.1, 1.5]),
    ([0.5, 0.5, -0.3], [0.1, 0.15, 0.6]),
]


@pytest.mark.parametrize("rvec,tvec", POSES)
def test_project_then_estimate_recovers_pose(intrinsics, rvec, tvec):
    """Feeding projected corners back in returns the original pose."""
    marker = project_marker(3, rvec, tvec, length=0.1)

    [pose] = MarkerPoseEstimator().estimate([marker], intrinsics, 0.1)

    assert isinstance(pose, CameraRelativePose)
    assert pose.marker_id == 3
    np.testing.assert_allclose(pose.tvec, tvec, atol=1e-4)
    R_expected, _ = cv2.Rodrigues(np.array(rvec, dtype=np.float64))
    np.testing.assert_allclose(pose.rotation, R_expected, atol=1e-4)


def test_rotation_is_proper(intrinsics):
    [pose] = MarkerPoseEstimator().estimate([project_marker(1, *POSES[2])], intrinsics, 0.1)
    R = pose.rotation
    assert np.allclose(R @ R.T, np.eye(3), atol=1e-9)
    assert np.isclose(np.linalg.det(R), 1.0)


def test_translation_scales_with_marker_length(intrinsics):
    """Same pixels, twice the edge length -> twice the distance."""
    marker = project_marker(1, [0.1, 0.0, 0.0], [0.0, 0.0, 1.0], length=0.05)
    est = MarkerPoseEstimator()
    [small] = est.estimate([marker], intrinsics, 0.05)
    [large] = est.estimate([marker], intrinsics, 0.10)
    np.testing.assert_allclose(large.tvec, 2.0 * small.tvec, atol=1e-6)


def test_output_order_matches_input(intrinsics):
    markers = [project_marker(i, [0.0, 0.0, 0.0], [0.1 * i, 0.0, 1.0]) for i in (9, 4, 7)]
    poses = MarkerPoseEstimator().estimate(markers, intrinsics, 0.1)
    assert [p.marker_id for p in poses] == [9, 4, 7]


def test_failure_is_isolated_to_one_marker(intrinsics):
    markers = [project_marker(1, *POSES[1]), bad_marker(2), project_marker(3, *POSES[0])]
    poses = MarkerPoseEstimator().estimate(markers, intrinsics, 0.1)
    assert [type(p) for p in poses] == [CameraRelativePose, PoseFailure, CameraRelativePose]
    assert poses[1].marker_id == 2


def test_wrong_corner_count_is_failure(intrinsics):
    marker = DetectedMarker(5, np.zeros((3, 2), dtype=np.float32))
    [pose] = MarkerPoseEstimator().estimate([marker], intrinsics, 0.1)
    assert isinstance(pose, PoseFailure)


def test_solver_reporting_failure_is_pose_failure(intrinsics):
    with patch.object(estimator_mod.cv2, "solvePnP", return_value=(False, None, None)):
        [pose] = MarkerPoseEstimator().estimate([project_marker(1, *POSES[0])], intrinsics, 0.1)
    assert isinstance(pose, PoseFailure)
    assert "empty" in pose.reason


def test_solver_exception_is_pose_failure(intrinsics):
    with patch.object(estimator_mod.cv2, "solvePnP", side_effect=cv2.error("boom")):
        [pose] = MarkerPoseEstimator().estimate([project_marker(1, *POSES[0])], intrinsics, 0.1)
    assert isinstance(pose, PoseFailure)


def test_distortion_ignored_by_default(intrinsics):
    """Corners are taken as already undistorted unless told otherwise."""
    distorted = CameraIntrinsics.create(intrinsics.camera_matrix, [0.3, -0.2, 0.01, 0.01, 0.05], 640, 480)
    marker = project_marker(1, *POSES[1])

    with patch.object(estimator_mod.cv2, "solvePnP", wraps=cv2.solvePnP) as spy:
        MarkerPoseEstimator().estimate([marker], distorted, 0.1)
        MarkerPoseEstimator(use_distortion=True).estimate([marker], distorted, 0.1)

    np.testing.assert_array_equal(spy.call_args_list[0].args[3], np.zeros(4))
    np.testing.assert_array_equal(spy.call_args_list[1].args[3], distorted.dist_coeffs)


def test_non_positive_length_rejected(intrinsics):
    with pytest.raises(ValueError):
        MarkerPoseEstimator().estimate([], intrinsics, 0.0)


def test_object_points_follow_detector_corner_order():
    pts = marker_object_points(0.2)
    np.testing.assert_allclose(pts[0], [-0.1, 0.1, 0.0])
    np.testing.assert_allclose(pts[2], [0.1, -0.1, 0.0])
