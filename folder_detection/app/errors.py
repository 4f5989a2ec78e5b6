"""Exception hierarchy for folder detection runs."""
from __future__ import annotations


class FolderDetectionError(Exception):
    """Base class for every error raised by the batch runner."""


class DirectoryOpenError(FolderDetectionError):
    """The input folder could not be opened for enumeration."""


class DetectorInitError(FolderDetectionError):
    """The inference engine could not be constructed from its configuration."""


class BufferAllocationError(FolderDetectionError):
    """The shared output buffers could not be allocated."""


class ImageLoadError(FolderDetectionError):
    """A directory entry could not be decoded as an image."""


class ImageSaveError(FolderDetectionError):
    """An image could not be written back to storage."""


class DetectionError(FolderDetectionError):
    """Inference failed; output buffers hold undefined data."""


class OverlayError(FolderDetectionError):
    """Drawing bounding boxes onto an image failed."""


class BatchAbortedError(FolderDetectionError):
    """Processing stopped before the directory was exhausted."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Batch aborted at '{filename}': {reason}")
        self.filename = filename
        self.reason = reason


class ResultsWriteError(FolderDetectionError):
    """The JSON results file could not be created or written."""
