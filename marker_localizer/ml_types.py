from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np


@dataclass
class FrameHeader:
    seq: int
    stamp: float  # seconds
    frame_id: str = ""


@dataclass
class ImageFrame:
    header: FrameHeader
    image: Any  # numpy array
    encoding: str = "bgr8"


@dataclass
class DetectedMarker:
    marker_id: int
    corners: Any  # (4,2) ndarray, detector corner order

    @property
    def anchor(self) -> tuple[float, float]:
        """Pixel coordinates of the first corner."""
        c = np.asarray(self.corners, dtype=np.float64).reshape(-1, 2)
        return float(c[0, 0]), float(c[0, 1])


@dataclass
class CameraRelativePose:
    marker_id: int
    rvec: np.ndarray  # (3,)
    tvec: np.ndarray  # (3,)
    rotation: np.ndarray  # (3,3)


@dataclass
class PoseFailure:
    marker_id: int
    reason: str


PoseEstimate = Union[CameraRelativePose, PoseFailure]


@dataclass
class GlobalPose:
    position: np.ndarray  # (3,)
    orientation: np.ndarray  # quaternion (x, y, z, w)


@dataclass
class MarkerRecord:
    marker_id: int
    pose: GlobalPose
    pixel_x: float
    pixel_y: float
    stamp: float


@dataclass
class MarkerArray:
    frame_id: str
    stamp: float
    markers: list[MarkerRecord] = field(default_factory=list)

    @property
    def ids(self) -> list[int]:
        return [m.marker_id for m in self.markers]


@dataclass
class FrameResult:
    marker_array: MarkerArray
    image: Any
    skipped: list[PoseFailure] = field(default_factory=list)


@dataclass
class StampedTransform:
    stamp: float
    parent_frame: str
    child_frame: str
    transform: Any  # RigidTransform

    def __repr__(self) -> str:
        return f"StampedTransform({self.parent_frame} -> {self.child_frame} @ {self.stamp:.3f})"


def marker_frame_name(marker_id: int) -> str:
    return f"aruco_marker_{int(marker_id)}"
