"""Render printable markers for a configured dictionary.

    marker-localizer-markers --ids 0 1 2 --dict DICT_4X4_50
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

from .dictionaries import get_dictionary
from .errors import InvalidConfiguration


def render_marker(dict_name: str, marker_id: int, size_px: int = 200, border_bits: int = 1) -> np.ndarray:
    """Grayscale marker image, black border included, `size_px` square."""
    dictionary = get_dictionary(dict_name)
    if hasattr(cv2.aruco, "generateImageMarker"):               # OpenCV >= 4.7
        return cv2.aruco.generateImageMarker(dictionary, marker_id, size_px, borderBits=border_bits)
    return cv2.aruco.drawMarker(dictionary, marker_id, size_px, borderBits=border_bits)


def place_marker(
    canvas_shape: tuple[int, int],
    marker: np.ndarray,
    top_left: tuple[int, int],
) -> np.ndarray:
    """Paste `marker` onto a white BGR canvas of (height, width) at (x, y)."""
    h, w = canvas_shape
    canvas = np.full((h, w), 255, dtype=np.uint8)
    x, y = top_left
    mh, mw = marker.shape[:2]
    if x < 0 or y < 0 or x + mw > w or y + mh > h:
        raise ValueError(f"marker of {mw}x{mh} at {top_left} does not fit a {w}x{h} canvas")
    canvas[y:y + mh, x:x + mw] = marker
    return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate printable fiducial markers")
    parser.add_argument("--output-dir", default="markers", help="Output directory (default: markers)")
    parser.add_argument("--ids", type=int, nargs="+", required=True, help="Marker IDs to generate")
    parser.add_argument("--dict", default="DICT_4X4_1000", help="Dictionary name (default: DICT_4X4_1000)")
    parser.add_argument("--size", type=int, default=400, help="Marker size in pixels (default: 400)")
    parser.add_argument("--border-bits", type=int, default=1)
    args = parser.parse_args(argv)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        images = [(mid, render_marker(args.dict, mid, args.size, args.border_bits)) for mid in args.ids]
    except (InvalidConfiguration, cv2.error) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for marker_id, img in images:
        output_path = output_dir / f"{args.dict}_id_{marker_id}.png"
        cv2.imwrite(str(output_path), img)
        print(f"Created marker: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
