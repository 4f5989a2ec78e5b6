"""Image codec helpers: RGBA float load and scaled save through OpenCV."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from ..errors import ImageLoadError, ImageSaveError

LOGGER = logging.getLogger(__name__)

NO_ALPHA_SUFFIXES = {".jpg", ".jpeg", ".jpe"}

_CHANNEL_CONVERSIONS = {
    1: cv2.COLOR_GRAY2RGBA,
    3: cv2.COLOR_BGR2RGBA,
    4: cv2.COLOR_BGRA2RGBA,
}


@dataclass
class ImageBuffer:
    """Decoded RGBA pixels, float32 in 0..255, row-major (height, width, 4)."""

    path: Path
    data: np.ndarray

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])


def _depth_scale(raw: np.ndarray) -> float:
    if raw.dtype == np.uint8:
        return 1.0
    if raw.dtype == np.uint16:
        return 255.0 / 65535.0
    # floating point codecs (EXR, HDR) decode to 0..1
    return 255.0


def load_image_rgba(path: Union[str, Path]) -> ImageBuffer:
    """Decode a file into a 4-channel float32 RGBA buffer."""

    path = Path(path)
    raw = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if raw is None:
        raise ImageLoadError(f"Unable to decode image {path}")

    channels = 1 if raw.ndim == 2 else int(raw.shape[2])
    conversion = _CHANNEL_CONVERSIONS.get(channels)
    if conversion is None:
        raise ImageLoadError(f"Unsupported channel count {channels} in {path}")

    rgba = cv2.cvtColor(raw, conversion)
    data = rgba.astype(np.float32) * _depth_scale(raw)
    image = ImageBuffer(path=path, data=np.ascontiguousarray(data, dtype=np.float32))
    LOGGER.debug("Loaded %dx%d image from %s", image.width, image.height, path)
    return image


def to_bgr_uint8(data: np.ndarray) -> np.ndarray:
    """Convert an RGBA float buffer into the 8-bit BGR layout inference libraries expect."""

    clipped = np.clip(data[..., :3], 0.0, 255.0).astype(np.uint8)
    return cv2.cvtColor(clipped, cv2.COLOR_RGB2BGR)


def save_image_rgba(path: Union[str, Path], data: np.ndarray, max_pixel: float = 255.0) -> Path:
    """Persist an RGBA float buffer, rescaling values so that ``max_pixel`` maps to 255."""

    path = Path(path)
    if max_pixel <= 0:
        raise ImageSaveError(f"Invalid pixel ceiling {max_pixel} for {path}")
    if data.ndim != 3 or data.shape[2] != 4:
        raise ImageSaveError(f"Expected an RGBA buffer for {path}, got shape {data.shape}")

    scaled = np.clip(data * (255.0 / max_pixel), 0.0, 255.0).astype(np.uint8)
    if path.suffix.lower() in NO_ALPHA_SUFFIXES:
        encoded = cv2.cvtColor(scaled, cv2.COLOR_RGBA2BGR)
    else:
        encoded = cv2.cvtColor(scaled, cv2.COLOR_RGBA2BGRA)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        written = cv2.imwrite(str(path), encoded)
    except (cv2.error, OSError) as exc:
        raise ImageSaveError(f"Unable to write image {path}: {exc}") from exc
    if not written:
        raise ImageSaveError(f"Unable to write image {path}")
    LOGGER.debug("Saved %dx%d image to %s", data.shape[1], data.shape[0], path)
    return path
