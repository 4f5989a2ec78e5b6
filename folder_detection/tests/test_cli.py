from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest

from folder_detection.app import detect
from folder_detection.app.errors import DetectorInitError
from folder_detection.app.services.buffers import allocate_output_buffers
from folder_detection.app.utils import directory

BOXES = [([2, 2, 10, 10], 0.9, 0), ([30, 20, 40, 30], 0.7, 1)]


@pytest.fixture()
def lifecycle(monkeypatch, fake_detector_factory):
    """Swap the YOLO factory for a fake and record detector and buffer requests."""

    calls: dict = {"create": [], "allocate": [], "detectors": []}

    def fake_create(config):
        calls["create"].append(config)
        detector = fake_detector_factory(BOXES, config=config)
        calls["detectors"].append(detector)
        return detector

    def recording_allocate(max_boxes, num_classes):
        calls["allocate"].append((max_boxes, num_classes))
        return allocate_output_buffers(max_boxes, num_classes)

    monkeypatch.setattr(detect, "create_detector", fake_create)
    monkeypatch.setattr(detect, "allocate_output_buffers", recording_allocate)
    return calls


def run_cli(argv: List[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        detect.main(argv)
    return excinfo.value.code


def test_missing_folder_argument_is_usage_error(lifecycle) -> None:
    assert run_cli([]) == 2
    assert lifecycle["create"] == []
    assert lifecycle["allocate"] == []


def test_extra_positional_argument_is_usage_error(lifecycle, tmp_path: Path) -> None:
    assert run_cli([str(tmp_path), str(tmp_path)]) == 2
    assert lifecycle["create"] == []


def test_invalid_threshold_is_usage_error(lifecycle, image_folder: Path) -> None:
    assert run_cli([str(image_folder), "--conf", "1.5"]) == 2
    assert lifecycle["create"] == []


def test_malformed_config_file_is_usage_error(lifecycle, image_folder: Path, tmp_path: Path) -> None:
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("weights_path: [unclosed\n")

    assert run_cli([str(image_folder), "--config", str(config_file)]) == 2
    assert lifecycle["create"] == []


def test_missing_folder_fails_before_detector(lifecycle, tmp_path: Path, caplog) -> None:
    caplog.set_level("ERROR")
    assert run_cli([str(tmp_path / "missing"), "--no-profiler"]) == 1
    assert lifecycle["create"] == []
    assert lifecycle["allocate"] == []
    assert "No such file or directory" in caplog.text


def test_full_batch_writes_overlays_and_results(lifecycle, image_folder: Path, tmp_path: Path, write_image) -> None:
    write_image(image_folder / "frame_b.png")
    (image_folder / "readme.txt").write_text("not an image")
    out_dir = tmp_path / "out"
    results = tmp_path / "results.json"

    code = run_cli(
        [
            str(image_folder),
            "--weights",
            str(tmp_path / "model.pt"),
            "--max-detections",
            "5",
            "--output-dir",
            str(out_dir),
            "--results-json",
            str(results),
        ]
    )

    assert code == 0
    assert (out_dir / "frame_a.png").exists()
    assert (out_dir / "frame_b.png").exists()
    assert lifecycle["allocate"] == [(5, 3)]
    assert lifecycle["detectors"][0].closed
    assert lifecycle["create"][0].weights_path == tmp_path / "model.pt"

    payload = json.loads(results.read_text(encoding="utf-8"))
    assert payload["summary"]["processed"] == 3
    assert payload["summary"]["saved"] == 2
    assert list(payload["summary"]["skipped"]) == ["readme.txt"]
    assert {record["filename"] for record in payload["records"]} == {"frame_a.png", "frame_b.png", "readme.txt"}


def test_stop_on_load_error_exits_with_failure(lifecycle, image_folder: Path) -> None:
    (image_folder / "broken.png").write_text("not an image")
    (image_folder / "frame_a.png").unlink()

    assert run_cli([str(image_folder), "--stop-on-load-error"]) == 1
    assert lifecycle["detectors"][0].closed


def test_detector_init_failure_is_fatal(monkeypatch, image_folder: Path) -> None:
    def failing_create(config):
        raise DetectorInitError("bad model")

    monkeypatch.setattr(detect, "create_detector", failing_create)
    assert run_cli([str(image_folder)]) == 1


def test_missing_weights_file_is_reported(image_folder: Path, tmp_path: Path, caplog) -> None:
    caplog.set_level("ERROR")
    assert run_cli([str(image_folder), "--weights", str(tmp_path / "absent.pt")]) == 1
    assert "Weights file not found" in caplog.text


@pytest.mark.parametrize("stop_flag", [[], ["--stop-on-load-error"]])
def test_directory_handle_released_after_batch(lifecycle, image_folder: Path, monkeypatch, stop_flag) -> None:
    (image_folder / "broken.png").write_text("not an image")
    closed: List[bool] = []
    real_scandir = directory.os.scandir

    class ClosingScanner:
        def __init__(self, path) -> None:
            self._inner = real_scandir(path)

        def __iter__(self):
            return iter(self._inner)

        def close(self) -> None:
            closed.append(True)
            self._inner.close()

    monkeypatch.setattr(directory.os, "scandir", ClosingScanner)

    run_cli([str(image_folder), "--no-profiler", *stop_flag])

    assert closed == [True]
    assert lifecycle["detectors"][0].closed


def test_unusable_results_path_is_fatal(lifecycle, image_folder: Path, tmp_path: Path, caplog) -> None:
    caplog.set_level("ERROR")
    blocker = tmp_path / "blocker"
    blocker.write_text("regular file")

    assert run_cli([str(image_folder), "--results-json", str(blocker / "results.json")]) == 1
    assert lifecycle["detectors"][0].closed
    assert "Cannot create results directory" in caplog.text


def test_results_write_failure_after_batch_is_fatal(lifecycle, image_folder: Path, tmp_path: Path, caplog) -> None:
    caplog.set_level("ERROR")
    results = tmp_path / "results.json"
    results.mkdir()
    out_dir = tmp_path / "out"

    assert run_cli([str(image_folder), "--output-dir", str(out_dir), "--results-json", str(results)]) == 1
    assert (out_dir / "frame_a.png").exists()
    assert "Cannot write results" in caplog.text
