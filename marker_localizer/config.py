from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional


@dataclass
class NodeConfig:
    # pose pipeline
    marker_size: float = 0.1
    camera_frame: str = "camera_rgb_optical_frame"
    global_frame: str = "map"
    dictionary: str = "DICT_4X4_1000"
    failure_policy: str = "skip_marker"  # "skip_marker" or "abort_frame"
    corners_undistorted: bool = True
    # input channel ids, informational only
    image_topic: str = "/camera/color/image_raw"
    camera_info_topic: str = "/camera/color/camera_info"
    # worker
    device: int | str = 0
    fps: int = 15
    width: int = 1280
    height: int = 720
    calibration_path: Optional[str] = None
    session_root: str = "data/sessions"
    duration_sec: float = 30.0
    max_frames: Optional[int] = None
    dry_run: bool = False
    save_annotated: bool = True
    static_transforms: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "NodeConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def config_from_dict(raw: dict[str, Any]) -> NodeConfig:
    cfg = NodeConfig()
    cfg.marker_size = float(raw.get("marker_size", cfg.marker_size))
    cfg.camera_frame = str(raw.get("camera_frame", cfg.camera_frame))
    cfg.global_frame = str(raw.get("global_frame", cfg.global_frame))
    cfg.dictionary = str(raw.get("dictionary", cfg.dictionary))
    cfg.failure_policy = str(raw.get("failure_policy", cfg.failure_policy))
    cfg.corners_undistorted = bool(raw.get("corners_undistorted", cfg.corners_undistorted))
    cfg.image_topic = str(raw.get("image_topic", cfg.image_topic))
    cfg.camera_info_topic = str(raw.get("camera_info_topic", cfg.camera_info_topic))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    if cfg.calibration_path is not None:
        cfg.calibration_path = str(cfg.calibration_path)
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.save_annotated = bool(raw.get("save_annotated", cfg.save_annotated))

    transforms_raw = raw.get("static_transforms", cfg.static_transforms)
    if not isinstance(transforms_raw, list):
        raise ValueError("static_transforms must be a list of {parent, child, translation, rotation}")
    cfg.static_transforms = [dict(t) for t in transforms_raw]
    return cfg


def load_config(path: str | Path) -> NodeConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")
    return config_from_dict(raw)
