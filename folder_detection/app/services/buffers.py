"""Allocation of the detector output buffers shared across a batch."""
from __future__ import annotations

import logging

import numpy as np

from ..errors import BufferAllocationError
from ..models import OutputBuffers

LOGGER = logging.getLogger(__name__)

BOX_COORDINATES = 4
# probability and class index are always stored, even for single-class models
MIN_CONFIDENCE_COLUMNS = 2


def allocate_output_buffers(max_boxes: int, num_classes: int) -> OutputBuffers:
    """Allocate box and confidence storage sized from the detector capacity."""

    if max_boxes <= 0 or num_classes <= 0:
        raise BufferAllocationError(
            f"Invalid buffer capacity: max_boxes={max_boxes}, num_classes={num_classes}"
        )
    columns = max(num_classes, MIN_CONFIDENCE_COLUMNS)
    try:
        boxes = np.zeros((max_boxes, BOX_COORDINATES), dtype=np.float32)
        confidences = np.zeros((max_boxes, columns), dtype=np.float32)
    except (MemoryError, ValueError) as exc:
        raise BufferAllocationError(f"Failed to allocate output memory: {exc}") from exc
    LOGGER.info("Allocated output buffers for %d boxes x %d classes", max_boxes, num_classes)
    return OutputBuffers(boxes=boxes, confidences=confidences)
