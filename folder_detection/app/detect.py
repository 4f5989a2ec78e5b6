"""Entry point for batch object detection over an image folder."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError

from .config.settings import AppSettings, load_settings
from .errors import BufferAllocationError, DetectorInitError, DirectoryOpenError, ResultsWriteError
from .models import BatchSummary
from .processor import process_directory
from .services.buffers import allocate_output_buffers
from .services.detector import create_detector
from .services.output_writer import ResultsWriter
from .utils.directory import managed_directory

LOGGER = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="folder-detect",
        description="Run object detection over every image in a folder",
    )
    parser.add_argument("folder", type=Path, help="Folder containing the images to process")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with setting overrides")
    parser.add_argument("--model-definition", type=str, default=None, help="Network definition (model YAML)")
    parser.add_argument("--weights", type=str, default=None, help="Path to trained weights file")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold")
    parser.add_argument("--max-detections", type=int, default=None, help="Bounding box capacity per image")
    parser.add_argument("--device", type=str, default=None, help="Inference device, e.g. cpu or 0")
    parser.add_argument("--output-dir", type=str, default=None, help="Save overlaid images into this folder")
    parser.add_argument("--in-place", action="store_true", help="Overwrite source images with the overlay")
    parser.add_argument("--results-json", type=str, default=None, help="Write per-image records to this JSON file")
    parser.add_argument(
        "--stop-on-load-error",
        action="store_true",
        help="Abort the whole batch when a file cannot be loaded",
    )
    parser.add_argument("--no-profiler", action="store_true", help="Disable per-call timing logs")
    parser.add_argument("--log-format", choices=["text", "json"], default=None, help="Logging format")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def setup_logging(settings: AppSettings) -> None:
    log_level = logging.DEBUG if settings.verbose else logging.INFO
    if settings.log_format == "json":
        formatter = logging.Formatter('{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler])


def resolve_settings(args: argparse.Namespace) -> AppSettings:
    overrides: Dict[str, Any] = {}
    if args.model_definition:
        overrides["model_definition_path"] = args.model_definition
    if args.weights:
        overrides["weights_path"] = args.weights
    if args.conf is not None:
        overrides["confidence_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.max_detections is not None:
        overrides["max_detections"] = args.max_detections
    if args.device:
        overrides["device"] = args.device
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.in_place:
        overrides["in_place"] = True
    if args.results_json:
        overrides["results_path"] = args.results_json
    if args.stop_on_load_error:
        overrides["stop_on_load_error"] = True
    if args.no_profiler:
        overrides["enable_profiler"] = False
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.verbose:
        overrides["verbose"] = True

    return load_settings(args.config, **overrides)


def _results_metadata(folder: Path, settings: AppSettings) -> Dict[str, Any]:
    return {
        "folder": str(folder),
        "model_definition_path": str(settings.model_definition_path) if settings.model_definition_path else None,
        "weights_path": str(settings.weights_path) if settings.weights_path else None,
        "confidence_threshold": settings.confidence_threshold,
        "iou_threshold": settings.iou_threshold,
        "max_detections": settings.max_detections,
    }


def log_summary(summary: BatchSummary) -> None:
    LOGGER.info(
        "Processed %d entries | detected=%d | saved=%d | skipped=%d",
        summary.processed,
        summary.detected,
        summary.saved,
        len(summary.skipped),
    )
    for filename, reason in summary.skipped.items():
        LOGGER.info("  skipped %s: %s", filename, reason)


def run_batch(folder: Path, settings: AppSettings) -> int:
    """Open the folder, build the detector and buffers, then process every entry."""

    LOGGER.info("Starting folder detection on %s", folder)
    writer: Optional[ResultsWriter] = None
    try:
        with managed_directory(folder) as entries:
            detector = create_detector(settings.detector_config())
            try:
                if settings.enable_profiler:
                    detector.enable_profiler()
                buffers = allocate_output_buffers(detector.max_bounding_boxes, detector.num_classes)
                if settings.results_path is not None:
                    writer = ResultsWriter(settings.results_path, metadata=_results_metadata(folder, settings))
                summary = process_directory(folder, entries, detector, buffers, settings, writer)
            finally:
                detector.close()
    except DirectoryOpenError as exc:
        LOGGER.error("Unable to open directory %s", exc)
        return EXIT_FAILURE
    except (DetectorInitError, BufferAllocationError, ResultsWriteError) as exc:
        LOGGER.error("Initialisation failed: %s", exc)
        return EXIT_FAILURE

    log_summary(summary)
    exit_code = EXIT_FAILURE if summary.aborted else EXIT_SUCCESS
    if writer is not None:
        try:
            writer.close(summary)
        except ResultsWriteError as exc:
            LOGGER.error("%s", exc)
            exit_code = EXIT_FAILURE
    LOGGER.info("Shutting down")
    return exit_code


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        settings = resolve_settings(args)
    except (ValidationError, ValueError, OSError) as exc:
        parser.error(f"invalid settings: {exc}")
    setup_logging(settings)
    LOGGER.debug("Arguments: %s", vars(args))

    def handle_interrupt(signum: int, frame: Optional[object]) -> None:  # pragma: no cover - signal handling
        LOGGER.warning("Received interrupt signal (%d), shutting down", signum)
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, handle_interrupt)
    sys.exit(run_batch(args.folder, settings))


if __name__ == "__main__":  # pragma: no cover
    main()
