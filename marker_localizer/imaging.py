import cv2
import numpy as np

from .errors import DecodeFailure

# encoding -> (channels, cvtColor code or None)
_CONVERSIONS = {
    "bgr8": (3, None),
    "rgb8": (3, cv2.COLOR_RGB2BGR),
    "bgra8": (4, cv2.COLOR_BGRA2BGR),
    "rgba8": (4, cv2.COLOR_RGBA2BGR),
    "mono8": (1, cv2.COLOR_GRAY2BGR),
}


def to_bgr8(image, encoding: str = "bgr8") -> np.ndarray:
    """Return a BGR8 copy of `image`; raises DecodeFailure on unsupported input."""
    key = (encoding or "").strip().lower()
    if key not in _CONVERSIONS:
        raise DecodeFailure(f"unsupported image encoding {encoding!r}")
    if image is None:
        raise DecodeFailure("empty image")

    img = np.asarray(image)
    if img.dtype != np.uint8:
        raise DecodeFailure(f"expected 8-bit image, got dtype {img.dtype}")

    channels, code = _CONVERSIONS[key]
    if channels == 1 and img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]
    actual = 1 if img.ndim == 2 else (img.shape[2] if img.ndim == 3 else -1)
    if img.size == 0 or actual != channels:
        raise DecodeFailure(f"{encoding} image has shape {img.shape}")

    if code is None:
        return img.copy()
    try:
        return cv2.cvtColor(img, code)
    except cv2.error as exc:
        raise DecodeFailure(str(exc)) from exc
