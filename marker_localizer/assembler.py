from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Sequence, Union

import cv2
import numpy as np

from .errors import FrameAborted
from .intrinsics import CameraIntrinsics
from .ml_types import (
    CameraRelativePose,
    DetectedMarker,
    FrameHeader,
    FrameResult,
    GlobalPose,
    MarkerArray,
    MarkerRecord,
    PoseEstimate,
    PoseFailure,
)

logger = logging.getLogger(__name__)

AXIS_COLORS = ((0, 0, 255), (0, 255, 0), (255, 0, 0))  # BGR: x red, y green, z blue
AXIS_LABELS = ("x", "y", "z")


class FailurePolicy(str, Enum):
    """What a per-marker pose failure does to the rest of its frame."""

    SKIP_MARKER = "skip_marker"
    ABORT_FRAME = "abort_frame"

    @classmethod
    def from_name(cls, name: Union[str, "FailurePolicy"]) -> "FailurePolicy":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        for policy in cls:
            if policy.value == key:
                return policy
        raise ValueError(f"unknown failure policy {name!r}; expected one of {[p.value for p in cls]}")

    @property
    def aborts_frame(self) -> bool:
        return self is FailurePolicy.ABORT_FRAME


def axis_points(length: float) -> np.ndarray:
    return np.array(
        [[0.0, 0.0, 0.0], [length, 0.0, 0.0], [0.0, length, 0.0], [0.0, 0.0, length]],
        dtype=np.float64,
    )


def draw_axes(
    image: np.ndarray,
    camera_matrix: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    length: float,
    dist_coeffs: Optional[np.ndarray] = None,
    thickness: int = 1,
) -> bool:
    """
    Draw origin + x/y/z axis lines and labels for one pose.
    Returns False when the projection is unusable and nothing was drawn.
    """
    if dist_coeffs is None:
        dist_coeffs = np.zeros(4, dtype=np.float64)
    pts, _ = cv2.projectPoints(
        axis_points(length),
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
        camera_matrix,
        dist_coeffs,
    )
    pts = pts.reshape(-1, 2)
    if not np.all(np.isfinite(pts)) or np.any(np.abs(pts) > 1e6):
        return False

    origin = tuple(int(round(v)) for v in pts[0])
    for end, color, label in zip(pts[1:], AXIS_COLORS, AXIS_LABELS):
        tip = tuple(int(round(v)) for v in end)
        cv2.line(image, origin, tip, color, thickness)
        cv2.putText(image, label, tip, cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)
    return True


class ResultAssembler:
    def __init__(
        self,
        global_frame: str,
        marker_length: float,
        policy: FailurePolicy = FailurePolicy.SKIP_MARKER,
        axis_scale: float = 0.5,
        use_distortion: bool = False,
    ):
        self.global_frame = global_frame
        self.marker_length = marker_length
        self.policy = FailurePolicy.from_name(policy)
        self.axis_scale = axis_scale
        # must match the estimator so axes land on the solved pose
        self.use_distortion = use_distortion

    def assemble(
        self,
        header: FrameHeader,
        markers: Sequence[DetectedMarker],
        camera_poses: Sequence[PoseEstimate],
        global_poses: Sequence[Union[GlobalPose, PoseFailure]],
        image: np.ndarray,
        intrinsics: CameraIntrinsics,
    ) -> FrameResult:
        """
        Build the marker array and the annotated image for one frame.

        The three sequences are aligned with `markers`. A PoseFailure in
        either pose sequence is handled by the policy: SKIP_MARKER leaves
        the marker out and records it in FrameResult.skipped; ABORT_FRAME
        raises FrameAborted before anything is produced.
        """
        if not (len(markers) == len(camera_poses) == len(global_poses)):
            raise ValueError(
                f"misaligned inputs: {len(markers)} markers, "
                f"{len(camera_poses)} camera poses, {len(global_poses)} global poses"
            )

        array = MarkerArray(self.global_frame, header.stamp)
        skipped: list[PoseFailure] = []
        drawable: list[CameraRelativePose] = []

        for marker, cam_pose, g_pose in zip(markers, camera_poses, global_poses):
            failure = _first_failure(cam_pose, g_pose)
            if failure is not None:
                if self.policy.aborts_frame:
                    raise FrameAborted(failure.marker_id, failure.reason)
                skipped.append(failure)
                continue

            px, py = marker.anchor
            array.markers.append(MarkerRecord(marker.marker_id, g_pose, px, py, header.stamp))
            drawable.append(cam_pose)

        annotated = image.copy()
        length = self.marker_length * self.axis_scale
        dist = intrinsics.dist_coeffs if self.use_distortion else None
        for pose in drawable:
            if not draw_axes(annotated, intrinsics.camera_matrix, pose.rvec, pose.tvec, length, dist):
                logger.debug("axis overlay for marker %d projects off-image", pose.marker_id)

        return FrameResult(array, annotated, skipped)


def _first_failure(cam_pose, g_pose) -> Optional[PoseFailure]:
    if isinstance(cam_pose, PoseFailure):
        return cam_pose
    if isinstance(g_pose, PoseFailure):
        return g_pose
    return None
