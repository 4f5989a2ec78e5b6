"""Per-image orchestration: load, detect, overlay, synchronise and save."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .config.settings import AppSettings
from .errors import BatchAbortedError, DetectionError, ImageLoadError, ImageSaveError, OverlayError
from .models import BatchSummary, Detection, ImageReport, OutputBuffers
from .services.base_detector import BaseDetector
from .services.output_writer import ResultsWriter
from .services.overlay import partition_class_runs
from .utils.images import ImageBuffer, load_image_rgba, save_image_rgba

LOGGER = logging.getLogger(__name__)


def resolve_save_path(source: Path, settings: AppSettings) -> Optional[Path]:
    """Return where the overlaid image goes, or None when saving was not requested."""

    if settings.output_dir is not None:
        return settings.output_dir / source.name
    if settings.in_place:
        return source
    return None


def log_detections(filename: str, detections: List[Detection]) -> None:
    LOGGER.info("%s: %d bounding boxes detected", filename, len(detections))
    for index, detection in enumerate(detections):
        x0, y0, x1, y1 = detection.bbox
        LOGGER.info(
            "bounding box %d   (%.2f, %.2f)  (%.2f, %.2f)  w=%.2f  h=%.2f  %s %.2f",
            index,
            x0,
            y0,
            x1,
            y1,
            detection.width,
            detection.height,
            detection.class_name,
            detection.confidence,
        )


def overlay_detections(
    detector: BaseDetector,
    image: ImageBuffer,
    buffers: OutputBuffers,
    count: int,
) -> int:
    """Draw one overlay call per run of equal class; return the number of failed calls."""

    failures = 0
    for run in partition_class_runs(buffers.class_ids(count)):
        try:
            detector.draw_boxes(
                image.data,
                image.data,
                image.width,
                image.height,
                buffers.boxes[run.start:run.stop],
                run.class_id,
            )
        except OverlayError as exc:
            failures += 1
            LOGGER.warning(
                "Failed to draw boxes %d-%d of class %d on %s: %s",
                run.start,
                run.stop - 1,
                run.class_id,
                image.path.name,
                exc,
            )
    return failures


def process_image(
    path: Path,
    detector: BaseDetector,
    buffers: OutputBuffers,
    settings: AppSettings,
) -> ImageReport:
    """Run the full per-file pipeline. Only a load failure under ``stop_on_load_error`` raises."""

    filename = path.name
    try:
        image = load_image_rgba(path)
    except ImageLoadError as exc:
        if settings.stop_on_load_error:
            raise BatchAbortedError(filename, str(exc)) from exc
        LOGGER.warning("Failed to load image '%s': %s", filename, exc)
        return ImageReport(filename=filename, status="skipped", error=str(exc))

    try:
        count = detector.detect(
            image.data,
            image.width,
            image.height,
            buffers.boxes,
            buffers.confidences,
            buffers.capacity,
        )
    except DetectionError as exc:
        LOGGER.error("Failed to classify '%s': %s", filename, exc)
        return ImageReport(filename=filename, status="skipped", error=str(exc))

    detections = buffers.to_detections(count, detector.class_names)
    log_detections(filename, detections)
    report = ImageReport(filename=filename, status="detected", num_boxes=count, detections=detections)

    save_path = resolve_save_path(path, settings)
    if save_path is None:
        return report

    report.overlay_failures = overlay_detections(detector, image, buffers, count)
    detector.synchronize()

    LOGGER.info("Writing %dx%d image to '%s'", image.width, image.height, save_path)
    try:
        save_image_rgba(save_path, image.data, settings.image_scale)
    except ImageSaveError as exc:
        LOGGER.error("Failed saving %dx%d image to '%s': %s", image.width, image.height, save_path, exc)
        report.status = "save_failed"
        report.error = str(exc)
        return report

    LOGGER.info("Successfully wrote %dx%d image to '%s'", image.width, image.height, save_path)
    report.status = "saved"
    report.saved_path = save_path
    return report


def nested_output_name(folder: Path, settings: AppSettings) -> Optional[str]:
    """Name of the output directory when it lives directly inside ``folder``."""

    if settings.output_dir is None:
        return None
    output_dir = settings.output_dir.resolve()
    if output_dir.parent != folder.resolve():
        return None
    return output_dir.name


def process_directory(
    folder: Path,
    entries: Iterable[str],
    detector: BaseDetector,
    buffers: OutputBuffers,
    settings: AppSettings,
    writer: Optional[ResultsWriter] = None,
) -> BatchSummary:
    """Apply ``process_image`` once per directory entry, in enumeration order."""

    summary = BatchSummary()
    output_name = nested_output_name(folder, settings)
    for name in entries:
        if name == output_name:
            LOGGER.debug("Ignoring output directory %s", name)
            continue
        LOGGER.info("Processing %s", name)
        try:
            report = process_image(folder / name, detector, buffers, settings)
        except BatchAbortedError as exc:
            LOGGER.error("%s", exc)
            report = ImageReport(filename=name, status="skipped", error=exc.reason)
            summary.record(report)
            summary.aborted = True
            if writer is not None:
                writer.append_report(report)
            break
        summary.record(report)
        if writer is not None:
            writer.append_report(report)
    return summary
