"""Printable face markers for the tracked cube.

Usage:
    python -m cube_tracker.markers --config cube.json --output-dir markers/
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from .config import TrackerConfig, load_config
from .detect import dictionary_size, get_dict


def render_marker(marker_id: int, dict_name: str, size_px: int, border_bits: int = 1) -> np.ndarray:
    """Grayscale ArUco marker image."""
    dictionary = get_dict(dict_name)
    limit = dictionary_size(dictionary)
    if not 0 <= marker_id < limit:
        raise ValueError(f"Marker id {marker_id} is outside {dict_name} (0..{limit - 1})")
    return cv2.aruco.generateImageMarker(dictionary, marker_id, size_px, borderBits=border_bits)


def render_marker_scene(
    marker_id: int,
    dict_name: str,
    width: int,
    height: int,
    size_px: int,
    center: Optional[tuple[int, int]] = None,
) -> np.ndarray:
    """BGR image with one marker on a white background, centred unless told otherwise."""
    marker = render_marker(marker_id, dict_name, size_px)
    cx, cy = center if center is not None else (width // 2, height // 2)
    top, left = cy - size_px // 2, cx - size_px // 2
    if top < 0 or left < 0 or top + size_px > height or left + size_px > width:
        raise ValueError("Marker does not fit in the image")

    image = np.full((height, width), 255, dtype=np.uint8)
    image[top:top + size_px, left:left + size_px] = marker
    return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)


def write_face_markers(cfg: TrackerConfig, output_dir: str | Path, size_px: int = 400) -> list[Path]:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = []
    for face in cfg.face_table():
        label = face.name or f"id{face.marker_id}"
        path = out / f"{label}_{face.marker_id}.png"
        cv2.imwrite(str(path), render_marker(face.marker_id, cfg.aruco_dict, size_px))
        paths.append(path)
    return paths


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate the cube's face markers as PNG images")
    parser.add_argument("--config", help="Tracker config (default: built-in six-face cube)")
    parser.add_argument("--output-dir", default="markers", help="Output directory (default: markers)")
    parser.add_argument("--size", type=int, default=400, help="Marker size in pixels (default: 400)")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else TrackerConfig()
        paths = write_face_markers(cfg, args.output_dir, args.size)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for path in paths:
        print(f"Created marker: {path}")
    print(f"Print at {cfg.marker_length_m * 1000:.0f} mm edge length.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
