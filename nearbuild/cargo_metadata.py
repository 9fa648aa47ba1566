"""Project metadata obtained from ``cargo metadata``."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nearbuild.errors import BuildError
from nearbuild.fsutil import force_canonicalize_dir
from nearbuild.manifest_path import MANIFEST_FILE_NAME, ManifestPath

logger = logging.getLogger(__name__)

_MALFORMED = "Error invoking `cargo metadata`. Your `Cargo.toml` file is likely malformed"
_LOCKED_HINT = "remove the --locked flag"
_LOCKED_ERROR = "Cargo.lock is absent or not up-to-date"

_YELLOW = "33"
_CYAN = "36"


def _style(text: str, code: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if "NO_COLOR" in os.environ or not (isatty and isatty()):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _metadata_command(manifest_path: ManifestPath, no_locked: bool) -> list[str]:
    cargo = os.environ.get("CARGO", "cargo")
    cmd = [
        cargo,
        "metadata",
        "--format-version",
        "1",
        "--manifest-path",
        str(manifest_path.path),
    ]
    if not no_locked:
        cmd.append("--locked")
    return cmd


def _root_package(metadata: dict[str, Any]) -> dict[str, Any] | None:
    packages = metadata.get("packages") or []
    resolve = metadata.get("resolve")
    if resolve is not None:
        root = resolve.get("root")
        if root is None:
            return None
        return next((pkg for pkg in packages if pkg.get("id") == root), None)
    workspace_root = metadata.get("workspace_root")
    if workspace_root is None:
        return None
    root_manifest = Path(workspace_root) / MANIFEST_FILE_NAME
    return next(
        (
            pkg
            for pkg in packages
            if pkg.get("manifest_path") is not None
            and Path(pkg["manifest_path"]) == root_manifest
        ),
        None,
    )


def get_cargo_metadata(
    manifest_path: ManifestPath, no_locked: bool
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Run ``cargo metadata`` and return its output together with the root package."""
    logger.info("Fetching cargo metadata for %s", manifest_path.path)
    cmd = _metadata_command(manifest_path, no_locked)
    logger.debug("metadata command: %r", cmd)
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as err:
        raise BuildError(f"{_MALFORMED}: {err}") from err

    if proc.returncode != 0:
        stderr = proc.stderr or ""
        if _LOCKED_HINT in stderr:
            print(_style("An error with Cargo.lock has been encountered...", _YELLOW))
            print(
                _style(
                    "You can choose to disable `--locked` flag for downstream `cargo` "
                    "command with `--no-locked` flag.",
                    _CYAN,
                )
            )
            time.sleep(5)
            raise BuildError(f"{_LOCKED_ERROR}: {stderr.strip()}")
        raise BuildError(f"{_MALFORMED}: {stderr.strip()}")

    try:
        metadata = json.loads(proc.stdout)
    except json.JSONDecodeError as err:
        raise BuildError(f"{_MALFORMED}: {err}") from err
    root_package = _root_package(metadata)
    if root_package is None:
        raise BuildError(_MALFORMED)
    return metadata, root_package


@dataclass
class CrateMetadata:
    """Relevant metadata of a contract crate."""

    root_package: dict[str, Any]
    target_directory: Path
    manifest_path: ManifestPath
    raw_metadata: dict[str, Any]

    @classmethod
    def collect(cls, manifest_path: ManifestPath, no_locked: bool) -> "CrateMetadata":
        """Query cargo for the crate at ``manifest_path`` and prepare its output directory."""
        metadata, root_package = get_cargo_metadata(manifest_path, no_locked)

        try:
            cargo_target = force_canonicalize_dir(metadata["target_directory"])
            workspace_root = Path(metadata["workspace_root"]).resolve(strict=True)
        except KeyError as err:
            raise BuildError(f"{_MALFORMED}: missing `{err.args[0]}`") from err
        except OSError as err:
            raise BuildError(f"failed to canonicalize workspace root: {err}") from err
        metadata["target_directory"] = str(cargo_target)
        metadata["workspace_root"] = str(workspace_root)

        target_directory = force_canonicalize_dir(cargo_target / "near")
        package_name = root_package["name"].replace("-", "_")
        if manifest_path.directory() != workspace_root:
            # A workspace member gets a sub-folder named after its package.
            target_directory = force_canonicalize_dir(target_directory / package_name)

        crate_metadata = cls(
            root_package=root_package,
            target_directory=target_directory,
            manifest_path=manifest_path,
            raw_metadata=metadata,
        )
        logger.debug("crate metadata : %r", crate_metadata)
        return crate_metadata

    def resolve_output_dir(self, cli_override: str | os.PathLike[str] | None = None) -> Path:
        """The directory artifacts go to: the override if given, else the target directory."""
        if cli_override is not None:
            result = force_canonicalize_dir(cli_override)
        else:
            result = self.target_directory
        logger.debug("resolved output directory: %s", result)
        return result

    def formatted_package_name(self) -> str:
        """The package name with dashes replaced by underscores."""
        return self.root_package["name"].replace("-", "_")