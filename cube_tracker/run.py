import argparse
import logging
import signal
import sys

from .capture import CameraNotFoundError
from .config import TrackerConfig, load_config
from .logging_utils import setup_logger
from .tracker import CubeTracker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Track a six-marker cube and smooth its pose")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--marker-length-m", type=float)
    ap.add_argument("--smoothing", type=float, help="EMA factor in (0, 1]")
    ap.add_argument("--position-blend", choices=["slerp", "lerp"])
    ap.add_argument("--calib")
    ap.add_argument("--dict")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--csv", help="Write the smoothed pose of every frame to this CSV")
    ap.add_argument("--log-file")
    ap.add_argument("--log-level", help="Console log level (default: INFO)")
    ap.add_argument("--log-file-level", help="Level for --log-file, e.g. DEBUG for per-frame lines")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")

    return ap


def _apply_args(cfg: TrackerConfig, args: argparse.Namespace) -> TrackerConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        marker_length_m=args.marker_length_m,
        smoothing_factor=args.smoothing,
        position_blend=args.position_blend,
        calibration_path=args.calib,
        aruco_dict=args.dict,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        csv_path=args.csv,
        log_path=args.log_file,
        log_level=args.log_level,
        log_file_level=args.log_file_level,
        dry_run=args.dry_run if args.dry_run else None,
    )
    return cfg.validate()


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    level = logging.DEBUG if args.verbose else cfg.log_level
    logger = setup_logger(cfg.camera_name, level)
    tracker = CubeTracker(cfg, logger=logger)

    def _handle_signal(_sig, _frame):
        tracker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = tracker.run()
    except CameraNotFoundError as e:
        logger.error("%s", e)
        return 1

    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
