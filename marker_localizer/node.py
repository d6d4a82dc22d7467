from __future__ import annotations

import logging
from collections import Counter
from functools import partial
from typing import Callable, Optional, Sequence

import numpy as np

from .assembler import FailurePolicy, ResultAssembler
from .composer import FrameComposer, camera_from_marker
from .config import NodeConfig
from .detect import build_detector, detect_markers
from .dictionaries import resolve
from .errors import DecodeFailure, FrameAborted, FrameLookupFailure, InvalidConfiguration, NotReady
from .estimator import MarkerPoseEstimator
from .frame_tree import FrameTree
from .imaging import to_bgr8
from .intrinsics import CameraIntrinsics, IntrinsicsStore
from .logging_utils import setup_logger
from .ml_types import (
    DetectedMarker,
    FrameHeader,
    FrameResult,
    ImageFrame,
    PoseFailure,
    StampedTransform,
    marker_frame_name,
)
from .output import OutputSink

Detector = Callable[[np.ndarray], list[DetectedMarker]]


class MarkerLocalizerNode:
    """
    Turns camera frames into global-frame marker poses.

    Per frame: detect, estimate camera-relative poses, broadcast one
    camera -> aruco_marker_<id> transform per posed marker, compose each
    pose with the latest global <- camera transform, then publish the
    marker array and the annotated image.

    Dropped frames (no intrinsics yet, undecodable image, frame-tree
    lookup failure, policy abort) publish neither the marker array nor
    the image. Transforms already broadcast earlier in the same frame
    are not retracted.
    """

    def __init__(
        self,
        config: NodeConfig,
        frame_tree: FrameTree,
        outputs: Optional[Sequence[OutputSink]] = None,
        logger: Optional[logging.Logger] = None,
        detector: Optional[Detector] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_frame)

        if not config.marker_size > 0:
            raise InvalidConfiguration(f"marker_size must be positive, got {config.marker_size}")
        self.dictionary_id = resolve(config.dictionary)
        try:
            policy = FailurePolicy.from_name(config.failure_policy)
        except ValueError as exc:
            raise InvalidConfiguration(str(exc)) from exc

        for key in ("marker_size", "camera_frame", "global_frame", "image_topic",
                    "camera_info_topic", "dictionary", "failure_policy", "corners_undistorted"):
            self.logger.info("%s: %s", key, getattr(config, key))

        self.outputs = list(outputs or [])
        self.intrinsics = IntrinsicsStore()
        self.estimator = MarkerPoseEstimator(use_distortion=not config.corners_undistorted)
        self.composer = FrameComposer(frame_tree, config.global_frame, config.camera_frame)
        self.assembler = ResultAssembler(
            config.global_frame,
            config.marker_size,
            policy,
            use_distortion=not config.corners_undistorted,
        )
        if detector is None:
            detector = partial(detect_markers, detector_state=build_detector(config.dictionary))
        self.detect = detector
        self.stats: Counter = Counter()

    def on_camera_info(self, k: Sequence[float], d: Sequence[float], width: int, height: int) -> None:
        first = self.intrinsics.update_from_camera_info(k, d, width, height)
        if first:
            snap = self.intrinsics.snapshot()
            self.logger.info("Received camera info.")
            self.logger.info(
                "Camera Info: width=%d height=%d K=%s D=%s",
                snap.width,
                snap.height,
                np.round(snap.camera_matrix.reshape(-1), 6).tolist(),
                np.round(snap.dist_coeffs, 6).tolist(),
            )

    def set_intrinsics(self, intrinsics: CameraIntrinsics) -> None:
        self.on_camera_info(
            intrinsics.camera_matrix.reshape(-1).tolist(),
            intrinsics.dist_coeffs.tolist(),
            intrinsics.width,
            intrinsics.height,
        )

    def on_image(self, frame: ImageFrame) -> Optional[FrameResult]:
        intrinsics = self._snapshot(frame.header)
        if intrinsics is None:
            return None
        try:
            image = to_bgr8(frame.image, frame.encoding)
        except DecodeFailure as e:
            self.stats["decode_failure"] += 1
            self.logger.error("Image conversion failed for frame %d: %s", frame.header.seq, e)
            return None
        markers = self.detect(image)
        return self.process_frame(frame.header, image, markers, intrinsics)

    def process_frame(
        self,
        header: FrameHeader,
        image: np.ndarray,
        markers: Sequence[DetectedMarker],
        intrinsics: Optional[CameraIntrinsics] = None,
    ) -> Optional[FrameResult]:
        if intrinsics is None:
            intrinsics = self._snapshot(header)
            if intrinsics is None:
                return None

        markers = list(markers)
        estimates = self.estimator.estimate(markers, intrinsics, self.config.marker_size)
        global_poses = []

        try:
            for est in estimates:
                if isinstance(est, PoseFailure):
                    self.logger.warning("Pose estimation failed for marker %d: %s", est.marker_id, est.reason)
                    if self.assembler.policy.aborts_frame:
                        raise FrameAborted(est.marker_id, est.reason)
                    global_poses.append(est)
                    continue

                self._broadcast(StampedTransform(
                    header.stamp,
                    self.config.camera_frame,
                    marker_frame_name(est.marker_id),
                    camera_from_marker(est),
                ))
                self.logger.debug("Detected marker %d", est.marker_id)

                global_from_camera = self.composer.lookup()
                global_poses.append(self.composer.compose(est, global_from_camera))

            result = self.assembler.assemble(header, markers, estimates, global_poses, image, intrinsics)
        except FrameLookupFailure as e:
            self.stats["lookup_failure"] += 1
            self.logger.warning("Frame lookup failed, dropping frame %d: %s", header.seq, e)
            return None
        except FrameAborted as e:
            self.stats["aborted"] += 1
            self.logger.warning("Dropping frame %d: %s", header.seq, e)
            return None

        for out in self.outputs:
            out.write_image(header, result.image)
            out.write_markers(result.marker_array)

        self.stats["published"] += 1
        self.stats["markers"] += len(result.marker_array.markers)
        self.stats["skipped_markers"] += len(result.skipped)
        return result

    def _snapshot(self, header: FrameHeader) -> Optional[CameraIntrinsics]:
        try:
            return self.intrinsics.snapshot()
        except NotReady:
            self.stats["not_ready"] += 1
            self.logger.warning("Waiting for camera info, skipping frame %d.", header.seq)
            return None

    def _broadcast(self, transform: StampedTransform) -> None:
        for out in self.outputs:
            out.send_transform(transform)
