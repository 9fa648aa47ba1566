"""Validated path to a ``Cargo.toml`` manifest."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from nearbuild.errors import BuildError

MANIFEST_FILE_NAME = "Cargo.toml"

_NOT_A_MANIFEST = "the manifest-path must be a path to a Cargo.toml file"


@dataclass(frozen=True)
class ManifestPath:
    """Absolute path to a ``Cargo.toml`` file."""

    path: Path

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "ManifestPath":
        """Check that ``path`` names an existing ``Cargo.toml`` and make it absolute."""
        path = Path(path)
        if path.name != MANIFEST_FILE_NAME:
            raise BuildError(_NOT_A_MANIFEST)
        try:
            canonical = path.resolve(strict=True)
        except FileNotFoundError as err:
            try:
                pwd = os.getcwd()
            except OSError as cwd_err:
                raise BuildError(
                    f"manifest path `{path}` in `workdir not determined: {cwd_err!r}` "
                    "does not exist"
                ) from err
            raise BuildError(f"manifest path `{path}` in `{pwd}` does not exist") from err
        except OSError as err:
            raise BuildError(f"failed to canonicalize manifest path: {err}") from err
        return cls(canonical)

    def directory(self) -> Path:
        """The directory that holds the manifest."""
        parent = self.path.parent
        if parent == self.path:
            raise BuildError("Unable to infer the directory containing Cargo.toml file")
        return parent