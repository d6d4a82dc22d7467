from __future__ import annotations

import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .capture import BaseCapture, OpenCVCapture, SyntheticCapture
from .config import NodeConfig
from .frame_tree import FrameTree, StaticFrameTree
from .intrinsics import CameraIntrinsics, default_intrinsics, load_calib
from .logging_utils import add_file_handler, setup_logger
from .node import MarkerLocalizerNode
from .output import AnnotatedImageOutput, CsvOutput, OutputSink
from .storage import SessionStorage


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    frames_published: int
    markers_csv_path: str
    log_path: str
    avg_fps: float
    errors: int


class LocalizerWorker:
    def __init__(
        self,
        config: NodeConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        frame_tree: Optional[FrameTree] = None,
        intrinsics: Optional[CameraIntrinsics] = None,
        detector=None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_frame)

        if outputs is None:
            outputs = [CsvOutput()]
            if config.save_annotated:
                outputs.append(AnnotatedImageOutput())

        self.outputs = outputs
        self.capture = capture
        self.frame_tree = frame_tree or StaticFrameTree.from_config(config.static_transforms)
        self.node = MarkerLocalizerNode(
            config, self.frame_tree, outputs=self.outputs, logger=self.logger, detector=detector
        )
        self._intrinsics = intrinsics
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(
                self.config.fps, self.config.width, self.config.height, self.config.camera_frame
            )
        return OpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
            self.config.camera_frame,
        )

    def _resolve_intrinsics(self) -> Optional[CameraIntrinsics]:
        if self._intrinsics is not None:
            return self._intrinsics
        if self.config.calibration_path:
            return load_calib(self.config.calibration_path)
        if self.config.dry_run:
            return default_intrinsics(self.config.width, self.config.height)
        return None

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_frame}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_frame, log_file)

        for out in self.outputs:
            out.open(Path(storage.session_dir))

        intrinsics = self._resolve_intrinsics()
        if intrinsics is not None:
            self.node.set_intrinsics(intrinsics)
        else:
            self.logger.warning("no calibration configured; frames are skipped until camera info arrives")

        cap = self._build_capture()

        self.logger.info("session started: %s", session_path)

        cap.start()
        t0 = time.time()
        frames = 0
        errors = 0

        try:
            while True:
                if self._stop_event.is_set():
                    break
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    errors += 1
                    continue

                result = self.node.on_image(f)
                self.logger.info(
                    "frame=%d published=%s markers=%s",
                    f.header.seq,
                    result is not None,
                    result.marker_array.ids if result is not None else [],
                )
                frames += 1

        finally:
            try:
                cap.stop()
            except Exception:
                self.logger.exception("capture stop failed")

            for out in self.outputs:
                try:
                    out.close()
                except Exception:
                    self.logger.exception("output close failed")

        avg = frames / max(1e-6, (time.time() - t0))
        stats = self.node.stats
        self.logger.info(
            "summary frames=%d published=%d avg_fps=%.2f errors=%d stats=%s",
            frames, stats["published"], avg, errors, dict(stats),
        )
        self.logger.removeHandler(file_handler)
        file_handler.close()

        markers_csv = str(Path(storage.session_dir) / "markers.csv")
        return SessionSummary(
            str(session_path),
            frames,
            stats["published"],
            markers_csv,
            log_file,
            avg,
            errors,
        )
