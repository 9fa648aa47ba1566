"""Small filesystem helpers."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from nearbuild.errors import BuildError


def copy(source: str | os.PathLike[str], destination_dir: str | os.PathLike[str]) -> Path:
    """Copy ``source`` into ``destination_dir`` and return the new path.

    Nothing is copied when the destination is the source itself, so the file
    is never truncated.
    """
    source = Path(source)
    if not source.name:
        raise BuildError(f"`{source}` has no file name")
    out_path = Path(destination_dir) / source.name
    if source != out_path:
        try:
            shutil.copy(source, out_path)
        except OSError as err:
            raise BuildError(f"failed to copy `{source}` to `{out_path}`") from err
    return out_path


def force_canonicalize_dir(directory: str | os.PathLike[str]) -> Path:
    """Create the directory if it is missing and return its absolute path."""
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise BuildError(f"failed to create directory `{directory}`") from err
    try:
        return directory.resolve(strict=True)
    except OSError as err:
        raise BuildError(f"failed to canonicalize path: {directory} ") from err