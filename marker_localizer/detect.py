import cv2
from typing import Any, Tuple

from .dictionaries import get_dictionary
from .ml_types import DetectedMarker


DetectorState = Tuple[Any, Any, Any]


def _make_params():
    """Create detector parameters across OpenCV versions."""
    if hasattr(cv2.aruco, "DetectorParameters_create"):
        return cv2.aruco.DetectorParameters_create()
    return cv2.aruco.DetectorParameters()


def build_detector(dict_name: str) -> DetectorState:
    dictionary = get_dictionary(dict_name)
    params = _make_params()
    detector = None
    # Prefer the newer ArucoDetector API if present
    if hasattr(cv2.aruco, "ArucoDetector"):
        detector = cv2.aruco.ArucoDetector(dictionary, params)
    return dictionary, params, detector


def detect_markers(image, detector_state: DetectorState) -> list[DetectedMarker]:
    """Run the fiducial detector; rejected candidates are dropped."""
    dictionary, params, detector = detector_state
    if detector is not None:
        corners, ids, _rej = detector.detectMarkers(image)
    else:
        corners, ids, _rej = cv2.aruco.detectMarkers(
            image, dictionary, parameters=params
        )

    dets: list[DetectedMarker] = []
    if ids is not None and len(ids) > 0:
        for i, mid in enumerate(ids.flatten()):
            dets.append(DetectedMarker(int(mid), corners[i].reshape(4, 2)))
    return dets
