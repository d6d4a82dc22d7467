from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

import cv2
import numpy as np

from .ml_types import FrameHeader, ImageFrame


class BaseCapture(ABC):
    """Source of stamped camera frames for the localizer loop."""

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Optional[ImageFrame]: ...

    @abstractmethod
    def stop(self) -> None: ...


def video_source(device: Union[int, str]) -> Union[int, str]:
    """Camera index for integers and digit strings, otherwise a file path or stream URL."""
    if isinstance(device, str) and device.strip().isdigit():
        return int(device)
    return device


class OpenCVCapture(BaseCapture):
    """
    Frames from cv2.VideoCapture, stamped with wall-clock time and the
    configured camera frame id. Requested size and rate only apply to
    live devices; files and streams keep their own.
    """

    def __init__(self, device: Union[int, str], fps: int, width: int, height: int, frame_id: str = ""):
        self.source = video_source(device)
        self.fps = fps
        self.width = width
        self.height = height
        self.frame_id = frame_id
        self.cap: Any = None
        self.seq = 0

    def start(self) -> None:
        cap = cv2.VideoCapture(self.source)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"cannot open video source {self.source!r}")

        if isinstance(self.source, int):
            for prop, value in (
                (cv2.CAP_PROP_FRAME_WIDTH, self.width),
                (cv2.CAP_PROP_FRAME_HEIGHT, self.height),
                (cv2.CAP_PROP_FPS, self.fps),
            ):
                if value:
                    cap.set(prop, value)
        self.cap = cap

    def next_frame(self) -> Optional[ImageFrame]:
        if self.cap is None:
            raise RuntimeError("capture not started")
        ok, img = self.cap.read()
        if not ok or img is None:
            return None
        self.seq += 1
        return ImageFrame(FrameHeader(self.seq, time.time(), self.frame_id), img, "bgr8")

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """Black frames paced at `fps`, for dry runs."""

    def __init__(self, fps: int, width: int, height: int, frame_id: str = ""):
        self.period = 1.0 / fps if fps > 0 else 0.0
        self.shape = (height, width, 3)
        self.frame_id = frame_id
        self.seq = 0
        self._due = 0.0

    def start(self) -> None:
        self._due = time.time()

    def next_frame(self) -> Optional[ImageFrame]:
        delay = self._due - time.time()
        if delay > 0:
            time.sleep(delay)
        stamp = time.time()
        self._due = stamp + self.period
        self.seq += 1
        return ImageFrame(FrameHeader(self.seq, stamp, self.frame_id), np.zeros(self.shape, dtype=np.uint8), "bgr8")

    def stop(self) -> None:
        return None
