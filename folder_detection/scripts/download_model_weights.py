#!/usr/bin/env python3
"""Download published YOLOv8 weights into the location folder detection reads by default."""
from __future__ import annotations

import argparse
from pathlib import Path

import requests

MODEL_URLS = {
    "n": "https://github.com/ultralytics/assets/releases/download/v0.0.0/yolov8n.pt",
    "s": "https://github.com/ultralytics/assets/releases/download/v0.0.0/yolov8s.pt",
    "m": "https://github.com/ultralytics/assets/releases/download/v0.0.0/yolov8m.pt",
    "l": "https://github.com/ultralytics/assets/releases/download/v0.0.0/yolov8l.pt",
    "x": "https://github.com/ultralytics/assets/releases/download/v0.0.0/yolov8x.pt",
}
DEFAULT_MODELS_DIR = Path("models")
CHUNK_SIZE = 1 << 20


def download_weights(url: str, target: Path, force: bool = False) -> Path:
    if target.exists() and not force:
        print(f"Weights already present at {target}, use --force to replace them")
        return target
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_suffix(target.suffix + ".part")
    with requests.get(url, timeout=60, stream=True) as response:
        response.raise_for_status()
        with partial.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                handle.write(chunk)
    partial.replace(target)
    print(f"Model weights downloaded to {target}")
    return target


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download YOLOv8 weights")
    parser.add_argument("--variant", choices=MODEL_URLS.keys(), default="n", help="YOLOv8 variant to download")
    parser.add_argument("--url", type=str, default=None, help="Model weights URL override")
    parser.add_argument("--output", type=Path, default=None, help="Destination path")
    parser.add_argument("--force", action="store_true", help="Replace an existing weights file")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    url = args.url or MODEL_URLS[args.variant]
    target = args.output or DEFAULT_MODELS_DIR / Path(url).name
    download_weights(url, target, force=args.force)


if __name__ == "__main__":
    main()
