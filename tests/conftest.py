import logging

import cv2
import numpy as np
import pytest

from marker_localizer.config import NodeConfig
from marker_localizer.estimator import marker_object_points
from marker_localizer.frame_tree import StaticFrameTree
from marker_localizer.intrinsics import CameraIntrinsics
from marker_localizer.ml_types import DetectedMarker, FrameHeader
from marker_localizer.output import OutputSink
from marker_localizer.transforms import RigidTransform


K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]])


def project_marker(marker_id, rvec, tvec, length=0.1, camera_matrix=K, dist_coeffs=None):
    """Project a square marker at a camera-relative pose into pixel corners."""
    pts, _ = cv2.projectPoints(
        marker_object_points(length),
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
        camera_matrix,
        np.zeros(4) if dist_coeffs is None else np.asarray(dist_coeffs, dtype=np.float64),
    )
    return DetectedMarker(marker_id, pts.reshape(4, 2).astype(np.float32))


def good_marker(marker_id, x=0.0):
    return project_marker(marker_id, [0.1, -0.2, 0.05], [x, -0.02, 0.8])


def bad_marker(marker_id):
    corners = np.full((4, 2), np.nan, dtype=np.float32)
    return DetectedMarker(marker_id, corners)


class RecordingOutput(OutputSink):
    def __init__(self):
        """Collect everything the node publishes."""
        self.transforms = []
        self.marker_arrays = []
        self.images = []
        self.opened = False
        self.closed = False

    def open(self, session_dir):
        self.opened = True

    def send_transform(self, transform):
        self.transforms.append(transform)

    def write_markers(self, markers):
        self.marker_arrays.append(markers)

    def write_image(self, header, image):
        self.images.append((header, image))

    def close(self):
        self.closed = True


class FlakyFrameTree(StaticFrameTree):
    """Answers the first `ok_lookups` lookups, then reports the camera frame as gone."""

    def __init__(self, ok_lookups):
        super().__init__()
        self.ok_lookups = ok_lookups
        self.calls = 0

    def lookup_transform(self, target_frame, source_frame, stamp=None):
        self.calls += 1
        if self.calls > self.ok_lookups:
            self._edges.clear()
        return super().lookup_transform(target_frame, source_frame, stamp)


@pytest.fixture
def intrinsics():
    return CameraIntrinsics.create(K, [0.0, 0.0, 0.0, 0.0, 0.0], 640, 480)


@pytest.fixture
def config():
    return NodeConfig(
        marker_size=0.1,
        camera_frame="cam",
        global_frame="map",
        dictionary="DICT_4X4_50",
    )


@pytest.fixture
def camera_tree():
    tree = StaticFrameTree()
    tree.set_transform("map", "cam", RigidTransform.create([1.0, 2.0, 0.5], [0.0, 0.0, 0.0, 1.0]))
    return tree


@pytest.fixture
def header():
    return FrameHeader(seq=1, stamp=100.0, frame_id="cam")


@pytest.fixture
def quiet_logger():
    logger = logging.getLogger("marker_localizer.test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = True
    return logger


@pytest.fixture
def blank_image():
    return np.zeros((480, 640, 3), dtype=np.uint8)
