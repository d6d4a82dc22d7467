from __future__ import annotations

import cv2
import numpy as np

from .intrinsics import CameraIntrinsics
from .ml_types import CameraRelativePose, DetectedMarker, PoseEstimate, PoseFailure


def marker_object_points(marker_length: float) -> np.ndarray:
    """3D corners of a square marker centred at its origin, in detector corner order."""
    h = marker_length / 2.0
    return np.array(
        [[-h, h, 0.0], [h, h, 0.0], [h, -h, 0.0], [-h, -h, 0.0]],
        dtype=np.float64,
    )


class MarkerPoseEstimator:
    """
    Per-marker PnP on a square of known edge length.

    Corners are expected in undistorted pixel space, so the solver runs
    with zero distortion unless `use_distortion` is set.
    """

    def __init__(self, use_distortion: bool = False):
        self.use_distortion = use_distortion

    def estimate(
        self,
        markers: list[DetectedMarker],
        intrinsics: CameraIntrinsics,
        marker_length: float,
    ) -> list[PoseEstimate]:
        if marker_length <= 0:
            raise ValueError(f"marker_length must be positive, got {marker_length}")
        obj = marker_object_points(marker_length)
        if self.use_distortion:
            dist = intrinsics.dist_coeffs
        else:
            dist = np.zeros(4, dtype=np.float64)
        return [self._solve(m, obj, intrinsics.camera_matrix, dist) for m in markers]

    def _solve(self, marker: DetectedMarker, obj, K, dist) -> PoseEstimate:
        img = np.asarray(marker.corners, dtype=np.float64).reshape(-1, 2)
        if img.shape != (4, 2) or not np.all(np.isfinite(img)):
            return PoseFailure(marker.marker_id, f"expected 4 finite corners, got shape {img.shape}")
        try:
            ok, rvec, tvec = cv2.solvePnP(obj, img, K, dist, flags=cv2.SOLVEPNP_IPPE_SQUARE)
        except cv2.error as exc:
            return PoseFailure(marker.marker_id, f"solvePnP error: {exc}")

        if not ok or rvec is None or tvec is None or rvec.size != 3 or tvec.size != 3:
            return PoseFailure(marker.marker_id, "solver returned an empty pose")
        rvec = rvec.reshape(3)
        tvec = tvec.reshape(3)
        if not (np.all(np.isfinite(rvec)) and np.all(np.isfinite(tvec))):
            return PoseFailure(marker.marker_id, "solver returned a non-finite pose")

        R, _ = cv2.Rodrigues(rvec)
        return CameraRelativePose(marker.marker_id, rvec, tvec, R)
