"""Persistence of per-image detection records and batch summaries."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import ResultsWriteError
from ..models import BatchSummary, ImageReport

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class ResultsWriter:
    """Collect image reports and write them as one JSON document."""

    def __init__(self, results_path: Path, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.results_path = results_path
        try:
            self.results_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResultsWriteError(f"Cannot create results directory for {results_path}: {exc}") from exc
        self.records: List[ImageReport] = []
        self.metadata: Dict[str, Any] = metadata or {}

    def append_report(self, report: ImageReport) -> None:
        self.records.append(report)

    def flush(self, summary: Optional[BatchSummary] = None) -> Path:
        """Write every buffered report, plus the summary when given."""

        payload: Dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "metadata": self.metadata,
            "records": [record.to_dict() for record in self.records],
        }
        if summary is not None:
            payload["summary"] = summary.to_dict()
        try:
            with self.results_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
        except OSError as exc:
            raise ResultsWriteError(f"Cannot write results to {self.results_path}: {exc}") from exc
        LOGGER.info("Flushed %d records to %s", len(self.records), self.results_path)
        return self.results_path

    def close(self, summary: Optional[BatchSummary] = None) -> None:
        LOGGER.debug("Closing results writer, forcing flush")
        self.flush(summary)
