import argparse
import signal
import sys

from .config import NodeConfig, load_config
from .errors import InvalidConfiguration
from .worker import LocalizerWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Estimate global-frame poses of fiducial markers")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--marker-size", type=float)
    ap.add_argument("--camera-frame")
    ap.add_argument("--global-frame")
    ap.add_argument("--dict")
    ap.add_argument("--failure-policy", choices=["skip_marker", "abort_frame"])
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--no-save-annotated", action="store_true")

    return ap


def _apply_args(cfg: NodeConfig, args: argparse.Namespace) -> NodeConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        marker_size=args.marker_size,
        camera_frame=args.camera_frame,
        global_frame=args.global_frame,
        dictionary=args.dict,
        failure_policy=args.failure_policy,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        dry_run=args.dry_run if args.dry_run else None,
        save_annotated=False if args.no_save_annotated else None,
    )
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else NodeConfig()
    cfg = _apply_args(cfg, args)

    try:
        worker = LocalizerWorker(cfg)
    except InvalidConfiguration as exc:
        print(f"invalid configuration: {exc}", file=sys.stderr)
        return 2

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
