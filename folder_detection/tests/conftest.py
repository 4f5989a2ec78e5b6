"""Pytest fixtures: a deterministic in-memory detector and sample image folders."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytest

from folder_detection.app.config.settings import AppSettings
from folder_detection.app.errors import DetectionError
from folder_detection.app.models import DetectorConfig
from folder_detection.app.services.base_detector import BaseDetector

ScriptedBox = Tuple[Sequence[float], float, int]


class FakeDetector(BaseDetector):
    """Returns the same scripted detections for every image and records overlay calls."""

    CLASS_NAMES = {0: "person", 1: "car", 2: "dog"}

    def __init__(
        self,
        detections: Optional[List[ScriptedBox]] = None,
        config: Optional[DetectorConfig] = None,
        fail_on_calls: Sequence[int] = (),
    ) -> None:
        super().__init__(config or DetectorConfig(max_detections=10))
        self.detections = detections or []
        self.fail_on_calls = set(fail_on_calls)
        self.detect_calls = 0
        self.draw_calls: List[Tuple[np.ndarray, int]] = []
        self.sync_calls = 0

    @property
    def class_names(self) -> Dict[int, str]:
        return self.CLASS_NAMES

    def _infer(self, image: np.ndarray, boxes: np.ndarray, confidences: np.ndarray, limit: int) -> int:
        self.detect_calls += 1
        if self.detect_calls in self.fail_on_calls:
            raise DetectionError("scripted failure")
        count = min(len(self.detections), limit)
        for index, (bbox, score, class_id) in enumerate(self.detections[:count]):
            boxes[index] = bbox
            confidences[index, 0] = score
            confidences[index, 1] = class_id
        return count

    def draw_boxes(self, src, dst, width, height, boxes, class_id) -> None:
        self.draw_calls.append((np.array(boxes, copy=True), class_id))
        super().draw_boxes(src, dst, width, height, boxes, class_id)

    def synchronize(self) -> None:
        self.sync_calls += 1


@pytest.fixture()
def fake_detector_factory():
    def build(detections: Optional[List[ScriptedBox]] = None, **kwargs) -> FakeDetector:
        return FakeDetector(detections, **kwargs)

    return build


def write_sample_image(path: Path, width: int = 64, height: int = 48, value: int = 90) -> Path:
    image = np.full((height, width, 3), value, dtype=np.uint8)
    image[:, : width // 2, 0] = 200
    path.parent.mkdir(parents=True, exist_ok=True)
    assert cv2.imwrite(str(path), image)
    return path


@pytest.fixture()
def write_image():
    return write_sample_image


@pytest.fixture()
def image_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "images"
    folder.mkdir()
    write_sample_image(folder / "frame_a.png")
    return folder


@pytest.fixture()
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        weights_path=tmp_path / "model.pt",
        output_dir=tmp_path / "out",
        enable_profiler=False,
    )
