"""Shared data models for folder detection."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np


@dataclass
class Detection:
    """Represents a single detected object."""

    bbox: Sequence[float]
    confidence: float
    class_id: int
    class_name: str

    @property
    def width(self) -> float:
        return float(self.bbox[2] - self.bbox[0])

    @property
    def height(self) -> float:
        return float(self.bbox[3] - self.bbox[1])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bbox": [float(v) for v in self.bbox],
            "confidence": self.confidence,
            "class_id": self.class_id,
            "class_name": self.class_name,
        }


@dataclass
class OutputBuffers:
    """Reusable detector output storage shared by every image in a batch.

    ``boxes`` holds one ``(x0, y0, x1, y1)`` row per detection and
    ``confidences`` one ``(probability, class_index, ...)`` row per detection.
    Only the first ``count`` rows returned by the detector are meaningful.
    """

    boxes: np.ndarray
    confidences: np.ndarray

    @property
    def capacity(self) -> int:
        return int(self.boxes.shape[0])

    def class_ids(self, count: int) -> List[int]:
        return [int(value) for value in self.confidences[:count, 1]]

    def to_detections(self, count: int, class_names: Dict[int, str]) -> List[Detection]:
        detections: List[Detection] = []
        for index in range(count):
            class_id = int(self.confidences[index, 1])
            detections.append(
                Detection(
                    bbox=[float(v) for v in self.boxes[index]],
                    confidence=float(self.confidences[index, 0]),
                    class_id=class_id,
                    class_name=class_names.get(class_id, str(class_id)),
                )
            )
        return detections


@dataclass
class ImageReport:
    """Outcome of processing one directory entry."""

    filename: str
    status: str
    num_boxes: int = 0
    detections: List[Detection] = field(default_factory=list)
    saved_path: Optional[Path] = None
    overlay_failures: int = 0
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.status,
            "num_boxes": self.num_boxes,
            "detections": [detection.to_dict() for detection in self.detections],
            "saved_path": str(self.saved_path) if self.saved_path else None,
            "overlay_failures": self.overlay_failures,
            "error": self.error,
        }


@dataclass
class BatchSummary:
    """Aggregate counters for a completed (or aborted) batch."""

    processed: int = 0
    detected: int = 0
    saved: int = 0
    save_attempts: int = 0
    skipped: Dict[str, str] = field(default_factory=dict)
    aborted: bool = False

    def record(self, report: ImageReport) -> None:
        self.processed += 1
        if report.skipped:
            self.skipped[report.filename] = report.error or "unknown error"
            return
        self.detected += 1
        if report.status in ("saved", "save_failed"):
            self.save_attempts += 1
        if report.status == "saved":
            self.saved += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "detected": self.detected,
            "saved": self.saved,
            "save_attempts": self.save_attempts,
            "skipped": dict(self.skipped),
            "aborted": self.aborted,
        }


@dataclass(frozen=True)
class DetectorConfig:
    """Everything needed to construct a detector handle."""

    model_definition_path: Optional[Path] = None
    weights_path: Optional[Path] = None
    confidence_threshold: float = 0.5
    iou_threshold: float = 0.45
    max_detections: int = 100
    device: Optional[str] = None
    overlay_alpha: float = 0.4
    overlay_line_width: int = 2
