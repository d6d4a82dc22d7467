from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import cv2
import numpy as np

from .errors import NotReady


@dataclass(frozen=True)
class CameraIntrinsics:
    """Camera matrix + distortion, treated as an immutable snapshot."""

    camera_matrix: np.ndarray
    dist_coeffs: np.ndarray
    width: int = 0
    height: int = 0

    @classmethod
    def create(
        cls,
        matrix,
        distortion: Optional[Sequence[float]] = None,
        width: int = 0,
        height: int = 0,
    ) -> "CameraIntrinsics":
        K = np.array(matrix, dtype=np.float64)
        if K.size == 9:
            K = K.reshape(3, 3)
        if K.shape != (3, 3):
            raise ValueError(f"camera matrix must be 3x3, got shape {K.shape}")

        if distortion is None or len(np.ravel(distortion)) == 0:
            dist = np.zeros(4, dtype=np.float64)
        else:
            dist = np.array(distortion, dtype=np.float64).reshape(-1)

        K.setflags(write=False)
        dist.setflags(write=False)
        return cls(K, dist, int(width), int(height))

    @property
    def fx(self) -> float:
        return float(self.camera_matrix[0, 0])

    @property
    def fy(self) -> float:
        return float(self.camera_matrix[1, 1])

    @property
    def cx(self) -> float:
        return float(self.camera_matrix[0, 2])

    @property
    def cy(self) -> float:
        return float(self.camera_matrix[1, 2])


class IntrinsicsStore:
    """
    Holds the latest CameraIntrinsics.

    `update` swaps the whole snapshot under a lock and `snapshot` hands
    out the current one; callers keep the object they got for the rest
    of their frame. Once ready, the store never goes back to not-ready.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._current: Optional[CameraIntrinsics] = None

    @property
    def ready(self) -> bool:
        with self._lock:
            return self._current is not None

    def update(self, matrix, distortion=None, width: int = 0, height: int = 0) -> bool:
        """Replace the snapshot. Returns True on the first update."""
        snap = CameraIntrinsics.create(matrix, distortion, width, height)
        with self._lock:
            first = self._current is None
            self._current = snap
        return first

    def update_from_camera_info(self, k: Sequence[float], d: Sequence[float], width: int, height: int) -> bool:
        """Accept the 9 row-major K values and 0-5 distortion values of a camera-info message."""
        if len(k) != 9:
            raise ValueError(f"camera info K must have 9 values, got {len(k)}")
        return self.update(np.asarray(k, dtype=np.float64).reshape(3, 3), d, width, height)

    def snapshot(self) -> CameraIntrinsics:
        with self._lock:
            snap = self._current
        if snap is None:
            raise NotReady("camera intrinsics not received yet")
        return snap


def load_calib(path: str) -> CameraIntrinsics:
    if not Path(path).exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise ValueError(f"Calibration unreadable: {path}")
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    if K is None:
        raise ValueError(f"{path}: missing camera_matrix")
    return CameraIntrinsics.create(K, dist, w, h)


def default_intrinsics(width: int, height: int) -> CameraIntrinsics:
    """Pinhole guess (f = image width, centred principal point) for dry runs."""
    f = float(width)
    K = [[f, 0.0, width / 2.0], [0.0, f, height / 2.0], [0.0, 0.0, 1.0]]
    return CameraIntrinsics.create(K, None, width, height)
