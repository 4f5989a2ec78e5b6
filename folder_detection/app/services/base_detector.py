"""Detector handle contract shared by inference backends."""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict

import numpy as np

from ..errors import DetectionError, OverlayError
from ..models import DetectorConfig
from .overlay import draw_class_boxes

LOGGER = logging.getLogger(__name__)


class BaseDetector(ABC):
    """Opaque handle to an inference engine, constructed once per batch.

    Subclasses implement ``_infer``; buffer bookkeeping, overlay rendering,
    profiling and lifecycle checks live here so every backend honours the
    same contract.
    """

    def __init__(self, config: DetectorConfig) -> None:
        self.config = config
        self._profiling = False
        self._closed = False

    @property
    @abstractmethod
    def class_names(self) -> Dict[int, str]:
        """Mapping of class index to human readable name."""

    @property
    def max_bounding_boxes(self) -> int:
        return self.config.max_detections

    @property
    def num_classes(self) -> int:
        return len(self.class_names)

    @property
    def closed(self) -> bool:
        return self._closed

    def enable_profiler(self) -> None:
        self._profiling = True
        LOGGER.info("Profiler enabled for %s", type(self).__name__)

    def detect(
        self,
        image: np.ndarray,
        width: int,
        height: int,
        boxes: np.ndarray,
        confidences: np.ndarray,
        max_count: int,
    ) -> int:
        """Run inference, fill at most ``max_count`` rows of the buffers and return the count."""

        self._ensure_open()
        if image.ndim != 3 or image.shape[0] != height or image.shape[1] != width:
            raise DetectionError(f"Image shape {image.shape} does not match {width}x{height}")
        limit = min(max_count, self.max_bounding_boxes, boxes.shape[0], confidences.shape[0])
        if limit <= 0:
            return 0

        started = time.perf_counter()
        try:
            count = self._infer(image, boxes, confidences, limit)
        except DetectionError:
            raise
        except Exception as exc:
            raise DetectionError(f"Inference failed: {exc}") from exc
        if self._profiling:
            LOGGER.info(
                "[profiler] detect %dx%d -> %d boxes in %.2f ms",
                width,
                height,
                count,
                (time.perf_counter() - started) * 1000,
            )
        return min(count, limit)

    def draw_boxes(
        self,
        src: np.ndarray,
        dst: np.ndarray,
        width: int,
        height: int,
        boxes: np.ndarray,
        class_id: int,
    ) -> None:
        """Overlay ``boxes`` (a contiguous subset of the output buffer) tagged with ``class_id``."""

        self._ensure_open()
        if dst.ndim != 3 or dst.shape[0] != height or dst.shape[1] != width:
            raise OverlayError(f"Image shape {dst.shape} does not match {width}x{height}")
        started = time.perf_counter()
        draw_class_boxes(
            src,
            dst,
            boxes,
            class_id,
            alpha=self.config.overlay_alpha,
            line_width=self.config.overlay_line_width,
        )
        if self._profiling:
            LOGGER.info(
                "[profiler] draw %d boxes of class %d in %.2f ms",
                len(boxes),
                class_id,
                (time.perf_counter() - started) * 1000,
            )

    def synchronize(self) -> None:
        """Block until outstanding accelerator work has finished."""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()
        LOGGER.info("%s released", type(self).__name__)

    def __enter__(self) -> "BaseDetector":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @abstractmethod
    def _infer(self, image: np.ndarray, boxes: np.ndarray, confidences: np.ndarray, limit: int) -> int:
        """Backend inference writing ``(x0, y0, x1, y1)`` rows and ``(prob, class)`` pairs."""

    def _release(self) -> None:
        return None

    def _ensure_open(self) -> None:
        if self._closed:
            raise DetectionError(f"{type(self).__name__} has already been closed")
