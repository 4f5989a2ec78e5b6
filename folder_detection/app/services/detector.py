"""YOLO detection service wrapper."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

try:  # pragma: no cover - import guarded for environments without ultralytics
    import torch
    from ultralytics import YOLO
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "ultralytics package is required for folder detection. Install the project via "
        "`pip install -e .` before running detect.py."
    ) from exc

from ..errors import DetectorInitError
from ..models import DetectorConfig
from ..utils.images import to_bgr_uint8
from .base_detector import BaseDetector

LOGGER = logging.getLogger(__name__)


def _require_file(path: Optional[Path], label: str) -> None:
    if path is not None and not path.is_file():
        raise DetectorInitError(
            f"{label} not found at {path}. Fetch weights with scripts/download_model_weights.py "
            "or point the settings at an existing file."
        )


class YOLODetector(BaseDetector):
    """Encapsulates Ultralytics YOLO inference behind the detector handle contract."""

    def __init__(self, config: DetectorConfig) -> None:
        super().__init__(config)
        definition = config.model_definition_path
        weights = config.weights_path
        if definition is None and weights is None:
            raise DetectorInitError("No model definition or weights path configured")
        _require_file(definition, "Model definition")
        _require_file(weights, "Weights file")

        source = definition or weights
        LOGGER.info("Loading YOLO model from %s", source)
        try:
            model = YOLO(str(source))
            if definition is not None and weights is not None:
                LOGGER.info("Loading weights from %s", weights)
                model = model.load(str(weights))
        except Exception as exc:
            raise DetectorInitError(f"Failed to initialise YOLO model from {source}: {exc}") from exc

        self._model = model
        self._class_map: Dict[int, str] = {int(k): str(v) for k, v in dict(model.names).items()}
        if not self._class_map:
            raise DetectorInitError(f"Model {source} does not declare any classes")

    @property
    def class_names(self) -> Dict[int, str]:
        return self._class_map

    def _predict_kwargs(self, limit: int) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "verbose": False,
            "conf": self.config.confidence_threshold,
            "iou": self.config.iou_threshold,
            "max_det": limit,
        }
        if self.config.device is not None:
            kwargs["device"] = self.config.device
        return kwargs

    def _infer(self, image: np.ndarray, boxes: np.ndarray, confidences: np.ndarray, limit: int) -> int:
        frame = to_bgr_uint8(image)
        results = self._model(frame, **self._predict_kwargs(limit))

        count = 0
        for result in results:
            found = result.boxes
            if found is None or len(found) == 0:
                continue
            xyxy = found.xyxy.cpu().numpy()
            scores = found.conf.cpu().numpy()
            classes = found.cls.cpu().numpy()
            take = min(len(xyxy), limit - count)
            boxes[count:count + take] = xyxy[:take]
            confidences[count:count + take, 0] = scores[:take]
            confidences[count:count + take, 1] = classes[:take]
            count += take
            if count >= limit:
                break
        LOGGER.debug("Detected %d objects", count)
        return count

    def synchronize(self) -> None:
        if torch.cuda.is_available() and self.config.device != "cpu":
            torch.cuda.synchronize()

    def _release(self) -> None:
        self._model = None
        if torch.cuda.is_available():
            torch.cuda.empty_cache()


def create_detector(config: DetectorConfig) -> BaseDetector:
    """Construct the detector handle, raising DetectorInitError on bad configuration."""

    detector = YOLODetector(config)
    LOGGER.info(
        "Detector ready: %d classes, maximum bounding boxes %d",
        detector.num_classes,
        detector.max_bounding_boxes,
    )
    return detector
