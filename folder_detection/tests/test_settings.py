from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from folder_detection.app.config.settings import AppSettings, load_settings


def test_defaults_detect_without_saving() -> None:
    settings = AppSettings()
    assert settings.save_requested is False
    assert settings.image_scale == 255.0
    assert settings.enable_profiler is True


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FOLDER_DETECT_CONFIDENCE_THRESHOLD", "0.7")
    monkeypatch.setenv("FOLDER_DETECT_OUTPUT_DIR", str(tmp_path / "annotated"))

    settings = load_settings()

    assert settings.confidence_threshold == 0.7
    assert settings.output_dir == tmp_path / "annotated"
    assert settings.save_requested


def test_yaml_file_then_explicit_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "settings.yaml"
    config_file.write_text(
        "\n".join(
            [
                "model_definition_path: ~/models/drone.yaml",
                "weights_path: /opt/models/drone.pt",
                "max_detections: 64",
                "iou_threshold: 0.3",
            ]
        )
    )

    settings = load_settings(config_file, iou_threshold=0.6)
    config = settings.detector_config()

    assert config.model_definition_path == Path("~/models/drone.yaml").expanduser()
    assert config.weights_path == Path("/opt/models/drone.pt")
    assert config.max_detections == 64
    assert config.iou_threshold == 0.6


def test_empty_yaml_file_is_allowed(tmp_path: Path) -> None:
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")
    assert load_settings(config_file).max_detections == 100


def test_yaml_must_be_mapping(tmp_path: Path) -> None:
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_settings(config_file)


def test_malformed_yaml_is_value_error(tmp_path: Path) -> None:
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("weights_path: [unclosed\n")
    with pytest.raises(ValueError, match="not valid YAML"):
        load_settings(config_file)


@pytest.mark.parametrize(
    "overrides",
    [
        {"confidence_threshold": 1.2},
        {"max_detections": 0},
        {"image_scale": 0},
        {"log_format": "xml"},
    ],
)
def test_invalid_values_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        AppSettings(**overrides)
