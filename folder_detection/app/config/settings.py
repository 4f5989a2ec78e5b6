"""Configuration utilities for folder detection runs."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..models import DetectorConfig


class AppSettings(BaseSettings):
    """Application configuration sourced from environment variables, a YAML file or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FOLDER_DETECT_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    model_definition_path: Optional[Path] = Field(
        default=None,
        description="Network definition (Ultralytics model YAML). Optional when weights carry the architecture.",
    )
    weights_path: Optional[Path] = Field(default=Path("models/yolov8n.pt"), description="Trained weights path")
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    iou_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    max_detections: int = Field(default=100, ge=1, description="Bounding box capacity per image.")
    device: Optional[str] = Field(default=None, description="Inference device, e.g. 'cpu' or '0'.")
    enable_profiler: bool = Field(default=True, description="Log per-call inference timings.")
    output_dir: Optional[Path] = Field(default=None, description="Directory for overlaid images.")
    in_place: bool = Field(default=False, description="Overwrite source images with the overlay.")
    results_path: Optional[Path] = Field(default=None, description="JSON file for per-image records.")
    stop_on_load_error: bool = Field(default=False, description="Abort the batch on the first unreadable file.")
    image_scale: float = Field(default=255.0, gt=0.0, description="Pixel intensity ceiling used when saving.")
    overlay_alpha: float = Field(default=0.4, ge=0.0, le=1.0)
    overlay_line_width: int = Field(default=2, ge=0)
    log_format: str = Field(default="text", pattern="^(text|json)$")
    verbose: bool = Field(default=False)

    @field_validator("model_definition_path", "weights_path", "output_dir", "results_path", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return Path(value).expanduser()

    @property
    def save_requested(self) -> bool:
        return self.in_place or self.output_dir is not None

    def detector_config(self) -> DetectorConfig:
        return DetectorConfig(
            model_definition_path=self.model_definition_path,
            weights_path=self.weights_path,
            confidence_threshold=self.confidence_threshold,
            iou_threshold=self.iou_threshold,
            max_detections=self.max_detections,
            device=self.device,
            overlay_alpha=self.overlay_alpha,
            overlay_line_width=self.overlay_line_width,
        )


def read_settings_file(path: Path) -> Dict[str, Any]:
    """Read a YAML mapping of setting overrides."""

    with Path(path).expanduser().open("r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Settings file {path} is not valid YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Settings file {path} must contain a mapping, got {type(payload).__name__}")
    return payload


def load_settings(config_file: Optional[Path] = None, **overrides: object) -> AppSettings:
    """Return application settings, applying an optional YAML file then explicit overrides."""

    values: Dict[str, Any] = {}
    if config_file is not None:
        values.update(read_settings_file(config_file))
    values.update(overrides)
    return AppSettings(**values)
