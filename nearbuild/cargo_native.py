"""Running ``cargo build`` and locating the artifact it produced."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from nearbuild.errors import BuildError
from nearbuild.fsutil import force_canonicalize_dir
from nearbuild.manifest_path import ManifestPath

logger = logging.getLogger(__name__)

COMPILATION_TARGET = "wasm32-unknown-unknown"

_NO_ARTIFACTS = (
    "Cargo failed to produce any compilation artifacts. "
    "Please check that your project contains a NEAR smart contract."
)
_COLOR_CHOICES = ("auto", "always", "never")


def _dylib_extension() -> str:
    platform = sys.platform
    if platform.startswith("linux"):
        return "so"
    if platform == "darwin":
        return "dylib"
    if platform in ("win32", "cygwin"):
        return "dll"
    raise BuildError("Unsupported platform")


class ArtifactType(Enum):
    """Kind of file a compilation is expected to produce."""

    WASM = "wasm"
    DYLIB = "dylib"

    def extension(self) -> str:
        """File extension, without the dot, of artifacts of this kind."""
        if self is ArtifactType.WASM:
            return "wasm"
        return _dylib_extension()


@dataclass(frozen=True)
class CompiledArtifact:
    """A file produced by a compilation."""

    path: Path
    fresh: bool
    from_docker: bool = False
    artifact_type: ArtifactType = ArtifactType.WASM


def merge_env(
    env: Iterable[tuple[str, str]] | Mapping[str, str], hide_warnings: bool = False
) -> dict[str, str]:
    """Combine environment overrides for cargo.

    ``RUSTFLAGS`` values are appended to the flags already set in the process
    environment instead of replacing them; other keys take the last value.
    """
    pairs = list(env.items()) if isinstance(env, Mapping) else list(env)
    if hide_warnings:
        pairs.append(("RUSTFLAGS", "-Awarnings"))

    merged: dict[str, str] = {}
    for key, value in pairs:
        if key == "RUSTFLAGS":
            flags = merged.get(key)
            if flags is None:
                flags = os.environ.get(key, "")
            merged[key] = f"{flags} {value}" if flags else value
        else:
            merged[key] = value
    return merged


def select_artifact(
    artifacts: Sequence[Mapping[str, Any]], artifact_type: ArtifactType
) -> CompiledArtifact:
    """Pick the single file of ``artifact_type`` from the last compiler artifact message."""
    if not artifacts:
        raise BuildError(_NO_ARTIFACTS)
    last = artifacts[-1]
    extension = artifact_type.extension()
    matching = [
        Path(name)
        for name in last.get("filenames") or []
        if Path(name).suffix == f".{extension}"
    ]
    if not matching:
        raise BuildError(
            f"Compilation resulted in no '.{extension}' target files. "
            "Please check that your project contains a NEAR smart contract."
        )
    if len(matching) > 1:
        shown = [str(path) for path in matching]
        raise BuildError(
            f"Compilation resulted in more than one '.{extension}' target file: {shown}"
        )
    return CompiledArtifact(
        path=matching[0],
        fresh=not bool(last.get("fresh", False)),
        from_docker=False,
        artifact_type=artifact_type,
    )


def _color_value(color: Any) -> str:
    value = str(getattr(color, "value", color)).lower()
    if value not in _COLOR_CHOICES:
        raise ValueError(f"unknown color preference: {color!r}")
    return value


def _echo_stream(stream) -> None:
    for line in stream:
        print(f" │ {line.rstrip(chr(10)).rstrip(chr(13))}", file=sys.stderr)


def _invoke_cargo(
    command: str,
    args: Sequence[str],
    working_dir: Path | None,
    env: Mapping[str, str],
    color: Any,
) -> list[dict[str, Any]]:
    """Run cargo and return the compiler artifact messages it printed."""
    cargo = os.environ.get("CARGO", "cargo")
    cmd = [cargo, command, *args, "--color", _color_value(color)]
    full_env = {**os.environ, **env}

    cwd = None
    if working_dir is not None:
        cwd = force_canonicalize_dir(working_dir)
        logger.debug("Setting cargo working dir to '%s'", cwd)

    logger.info("Invoking cargo: %r", cmd)
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=full_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as err:
        raise BuildError(f"Error executing `{cmd}`") from err

    # stderr is drained concurrently so the child never blocks on a full pipe
    stderr_thread = threading.Thread(target=_echo_stream, args=(proc.stderr,), daemon=True)
    stderr_thread.start()

    artifacts: list[dict[str, Any]] = []
    with proc.stdout:
        for line in proc.stdout:
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue
            reason = message.get("reason")
            if reason == "compiler-artifact":
                artifacts.append(message)
            elif reason == "compiler-message":
                rendered = (message.get("message") or {}).get("rendered")
                if rendered:
                    for rendered_line in rendered.splitlines():
                        print(f" │ {rendered_line}", file=sys.stderr)

    stderr_thread.join()
    proc.stderr.close()
    returncode = proc.wait()
    if returncode != 0:
        raise BuildError(f"`{cmd}` failed with exit code: {returncode}")
    return artifacts


def compile_artifact(
    manifest_path: ManifestPath,
    args: Sequence[str],
    env: Iterable[tuple[str, str]] | Mapping[str, str] = (),
    hide_warnings: bool = False,
    color: Any = "auto",
    artifact_type: ArtifactType = ArtifactType.WASM,
) -> CompiledArtifact:
    """Build the project at ``manifest_path`` and return the produced artifact."""
    merged = merge_env(env, hide_warnings)
    try:
        working_dir = manifest_path.directory()
    except BuildError:
        working_dir = None
    artifacts = _invoke_cargo(
        "build",
        ["--message-format=json-render-diagnostics", *args],
        working_dir,
        merged,
        color,
    )
    return select_artifact(artifacts, artifact_type)


def _rustc_target_libdir() -> Path:
    proc = subprocess.run(
        ["rustc", "--target", COMPILATION_TARGET, "--print", "target-libdir"],
        capture_output=True,
    )
    if proc.returncode != 0:
        raise BuildError(
            "Getting rustc's wasm32-unknown-unknown target wasn't successful. "
            f"Got {proc.returncode}"
        )
    try:
        return Path(proc.stdout.decode("utf-8").strip())
    except UnicodeDecodeError as err:
        raise BuildError(f"rustc printed a non UTF-8 path: {err}") from err


def _invoke_rustup(args: Sequence[str]) -> bytes:
    rustup = os.environ.get("RUSTUP", "rustup")
    cmd = [rustup, *args]
    logger.info("Invoking rustup: %r", cmd)
    try:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE)
    except OSError as err:
        raise BuildError(f"Error executing `{cmd}`") from err
    if proc.returncode != 0:
        raise BuildError(f"`{cmd}` failed with exit code: {proc.returncode}")
    return proc.stdout


def wasm32_exists() -> bool:
    """Whether the ``wasm32-unknown-unknown`` target looks installed."""
    try:
        libdir = _rustc_target_libdir()
    except (BuildError, OSError):
        logger.error("Some error in getting the target libdir, trying rustup..")
        try:
            _invoke_rustup(["target", "list", "--installed"])
        except BuildError:
            return False
        return True

    if libdir.exists():
        logger.info("Found %s in %s", COMPILATION_TARGET, libdir)
        return True
    logger.info("Failed to find %s in %s", COMPILATION_TARGET, libdir)
    return False