from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import cv2

from .csv_writer import MarkerCsvWriter, TransformCsvWriter
from .ml_types import FrameHeader, MarkerArray, StampedTransform


class OutputSink(ABC):
    """Receives the three per-frame outputs of the node."""

    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def send_transform(self, transform: StampedTransform) -> None: ...

    @abstractmethod
    def write_markers(self, markers: MarkerArray) -> None: ...

    @abstractmethod
    def write_image(self, header: FrameHeader, image) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    """markers.csv (one row per global-frame marker) + transforms.csv (one row per broadcast)."""

    def __init__(self, markers_filename: str = "markers.csv", transforms_filename: str = "transforms.csv"):
        self.markers_filename = markers_filename
        self.transforms_filename = transforms_filename
        self._markers: Optional[MarkerCsvWriter] = None
        self._transforms: Optional[TransformCsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self._markers = MarkerCsvWriter(str(session_dir / self.markers_filename))
        self._markers.open()
        self._transforms = TransformCsvWriter(str(session_dir / self.transforms_filename))
        self._transforms.open()

    def send_transform(self, transform: StampedTransform) -> None:
        if self._transforms is None:
            return
        self._transforms.append(transform)

    def write_markers(self, markers: MarkerArray) -> None:
        if self._markers is None:
            return
        for rec in markers.markers:
            self._markers.append(markers.frame_id, rec)

    def write_image(self, header: FrameHeader, image) -> None:
        return None

    def close(self) -> None:
        for w in (self._markers, self._transforms):
            if w is not None:
                w.close()
        self._markers = None
        self._transforms = None


class AnnotatedImageOutput(OutputSink):
    def __init__(self, subdir: str = "annotated"):
        self.subdir = subdir
        self.out_dir: Optional[Path] = None
        self.last_path: Optional[str] = None

    def open(self, session_dir: Path) -> None:
        self.out_dir = Path(session_dir) / self.subdir
        self.out_dir.mkdir(parents=True, exist_ok=True)

    def send_transform(self, transform: StampedTransform) -> None:
        return None

    def write_markers(self, markers: MarkerArray) -> None:
        return None

    def write_image(self, header: FrameHeader, image) -> None:
        if self.out_dir is None:
            return
        p = self.out_dir / f"f{header.seq:06d}_aruco.jpg"
        if not cv2.imwrite(str(p), image):
            raise IOError(f"failed to write {p}")
        self.last_path = str(p)

    def close(self) -> None:
        self.out_dir = None

