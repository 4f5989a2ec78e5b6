"""Directory enumeration utilities for batch detection."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator, Union

from ..errors import DirectoryOpenError

LOGGER = logging.getLogger(__name__)


def open_directory(path: Union[str, Path]) -> "os._ScandirIterator":
    """Open a directory for enumeration, translating OS failures into DirectoryOpenError."""

    try:
        scanner = os.scandir(path)
    except OSError as exc:
        reason = exc.strerror or str(exc)
        raise DirectoryOpenError(f"{path}: {reason}") from exc
    LOGGER.info("Directory %s opened successfully", path)
    return scanner


def iter_entry_names(scanner: Iterator[os.DirEntry]) -> Iterator[str]:
    """Yield entry names in the order the operating system returns them."""

    count = 0
    for entry in scanner:
        count += 1
        yield entry.name
    LOGGER.info("End of directory reached after %d entries", count)


@contextmanager
def managed_directory(path: Union[str, Path]) -> Generator[Iterator[str], None, None]:
    """Context manager yielding lazy entry names and ensuring the handle is released."""

    scanner = open_directory(path)
    try:
        yield iter_entry_names(scanner)
    finally:
        LOGGER.debug("Releasing directory handle for %s", path)
        scanner.close()
