from __future__ import annotations

from typing import Optional

from .errors import FrameLookupFailure
from .frame_tree import FrameTree
from .ml_types import CameraRelativePose, GlobalPose
from .transforms import RigidTransform


def camera_from_marker(pose: CameraRelativePose) -> RigidTransform:
    return RigidTransform.from_rvec_tvec(pose.rvec, pose.tvec)


class FrameComposer:
    """Re-expresses camera-relative marker poses in the global frame."""

    def __init__(self, frame_tree: FrameTree, global_frame: str, camera_frame: str):
        self.frame_tree = frame_tree
        self.global_frame = global_frame
        self.camera_frame = camera_frame

    def lookup(self, stamp: Optional[float] = None) -> RigidTransform:
        """T_global_camera at the most recent available time."""
        try:
            return self.frame_tree.lookup_transform(self.global_frame, self.camera_frame, stamp)
        except FrameLookupFailure:
            raise
        except Exception as exc:
            raise FrameLookupFailure(self.global_frame, self.camera_frame, str(exc)) from exc

    @staticmethod
    def compose(camera_relative: CameraRelativePose, global_from_camera: RigidTransform) -> GlobalPose:
        global_from_marker = global_from_camera @ camera_from_marker(camera_relative)
        return GlobalPose(global_from_marker.translation, global_from_marker.rotation)
