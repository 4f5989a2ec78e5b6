"""Bounding box overlay: class run partitioning and in-place rendering."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from itertools import groupby
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from ..errors import OverlayError

LOGGER = logging.getLogger(__name__)

# RGB render style per class index, wrapped modulo the palette length
CLASS_COLORS: List[Tuple[int, int, int]] = [
    (0, 255, 175),
    (0, 0, 255),
    (255, 0, 200),
    (255, 255, 0),
    (0, 255, 255),
    (255, 128, 0),
    (128, 0, 255),
    (0, 255, 0),
]


@dataclass(frozen=True)
class ClassRun:
    """A maximal contiguous range of detections sharing one class index."""

    class_id: int
    start: int
    count: int

    @property
    def stop(self) -> int:
        return self.start + self.count


def partition_class_runs(class_ids: Sequence[int]) -> List[ClassRun]:
    """Split detections, in detector order, into maximal runs of equal class."""

    runs: List[ClassRun] = []
    start = 0
    for class_id, members in groupby(class_ids):
        count = sum(1 for _ in members)
        runs.append(ClassRun(class_id=int(class_id), start=start, count=count))
        start += count
    return runs


def class_color(class_id: int) -> Tuple[int, int, int]:
    return CLASS_COLORS[int(class_id) % len(CLASS_COLORS)]


def _pixel_bounds(box: np.ndarray, width: int, height: int) -> Tuple[int, int, int, int]:
    x0 = max(0, int(math.floor(box[0])))
    y0 = max(0, int(math.floor(box[1])))
    x1 = min(width, int(math.ceil(box[2])))
    y1 = min(height, int(math.ceil(box[3])))
    return x0, y0, x1, y1


def draw_class_boxes(
    src: np.ndarray,
    dst: np.ndarray,
    boxes: np.ndarray,
    class_id: int,
    *,
    alpha: float = 0.4,
    line_width: int = 2,
) -> None:
    """Blend a translucent class-coloured fill and outline for every box into ``dst``.

    ``src`` and ``dst`` may be the same array. Boxes are ``(x0, y0, x1, y1)`` rows
    in pixel coordinates and are clipped to the image bounds.
    """

    if src.shape != dst.shape or dst.ndim != 3 or dst.shape[2] != 4:
        raise OverlayError(f"Overlay expects matching RGBA buffers, got {src.shape} and {dst.shape}")
    boxes = np.asarray(boxes, dtype=np.float32)
    if boxes.ndim != 2 or boxes.shape[1] != 4:
        raise OverlayError(f"Overlay expects an (N, 4) box array, got shape {boxes.shape}")
    if not np.all(np.isfinite(boxes)):
        raise OverlayError("Overlay received non-finite box coordinates")

    if dst is not src:
        np.copyto(dst, src)

    height, width = dst.shape[:2]
    color = np.asarray(class_color(class_id), dtype=np.float32)
    outline = (float(color[0]), float(color[1]), float(color[2]), 255.0)
    for box in boxes:
        x0, y0, x1, y1 = _pixel_bounds(box, width, height)
        if x1 <= x0 or y1 <= y0:
            LOGGER.debug("Skipping empty box %s after clipping", box.tolist())
            continue
        region = dst[y0:y1, x0:x1, :3]
        region *= 1.0 - alpha
        region += alpha * color
        if line_width > 0:
            try:
                cv2.rectangle(dst, (x0, y0), (x1 - 1, y1 - 1), outline, line_width)
            except cv2.error as exc:
                raise OverlayError(f"Failed to draw box outline: {exc}") from exc
