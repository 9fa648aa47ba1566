"""Helpers for building a sub-contract from a cargo build script."""

from __future__ import annotations

import hashlib
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from nearbuild.cargo_native import ArtifactType, CompiledArtifact
from nearbuild.errors import BuildError

#: Cargo accepts the ``cargo::`` prefix for build script output since this version.
DEPRECATE_SINGLE_COLON_SINCE = (1, 77, 0)

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def _version_tuple(version) -> tuple[int, ...]:
    if isinstance(version, str):
        match = re.match(r"\s*(\d+)\.(\d+)\.(\d+)", version)
        if match is None:
            raise ValueError(f"invalid version: {version!r}")
        return tuple(int(part) for part in match.groups())
    return tuple(int(part) for part in version)


def cargo_separator(version) -> str:
    """The separator after ``cargo`` in build script instructions for ``version``."""
    parsed = _version_tuple(version)
    if parsed >= DEPRECATE_SINGLE_COLON_SINCE:
        return "::"
    return ":"


def _warn(version, message: str) -> None:
    print(f"cargo{cargo_separator(version)}warning={message}")


def base58_encode(data: bytes) -> str:
    """Encode ``data`` with the Bitcoin base58 alphabet."""
    data = bytes(data)
    zeros = len(data) - len(data.lstrip(b"\0"))
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, rem = divmod(number, 58)
        digits.append(_BASE58_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(digits))


def artifact_checksum(path) -> bytes:
    """SHA-256 digest of the file at ``path``."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 16), b""):
            digest.update(chunk)
    return digest.digest()


def _print_artifact(skipped: bool, artifact_path: Path, version) -> None:
    if skipped:
        _warn(version, f"Build empty artifact stub-file written to: `{artifact_path}`")
        return
    checksum = artifact_checksum(artifact_path)
    _warn(version, "")
    _warn(version, "")
    _warn(version, f"Build artifact path: {artifact_path}")
    _warn(version, f"Sub-build artifact SHA-256 checksum hex: {checksum.hex()}")
    _warn(version, f"Sub-build artifact SHA-256 checksum bs58: {base58_encode(checksum)}")
    _warn(version, "")
    _warn(version, "")


@dataclass
class BuildScriptOpts:
    """How a build script reacts to, and reports, a sub-contract build."""

    #: Variable to export the artifact path to with a ``rustc-env`` instruction.
    result_env_key: str | None = None
    #: Paths for ``rerun-if-changed`` instructions.
    rerun_if_changed_list: list[str] = field(default_factory=list)
    #: Pairs of variable name and value; the build is skipped on any match.
    build_skipped_when_env_is: list[tuple[str, str]] = field(default_factory=list)
    #: Where an empty placeholder artifact is written when the build is skipped.
    stub_path: str | None = None
    #: Substitute ``CARGO_TARGET_DIR`` used for the sub-build.
    distinct_target_dir: str | None = None

    def should_skip(self, version) -> bool:
        """Whether any configured variable currently holds its skip value."""
        skip = False
        for key, value_to_skip in self.build_skipped_when_env_is:
            actual = os.environ.get(key)
            if actual is not None and actual == value_to_skip:
                skip = True
                _warn(
                    version,
                    f"`{key}` env set to `{actual}`, build was configured to skip on this value",
                )
        return skip

    def create_empty_stub(self) -> CompiledArtifact:
        """Write an empty stub file and return it as the artifact."""
        if self.stub_path is None:
            raise BuildError(
                "build must be skipped, but `BuildScriptOpts.stub_path` wasn't configured"
            )
        stub = Path(self.stub_path)
        try:
            stub.write_bytes(b"")
            resolved = stub.resolve(strict=True)
        except OSError as err:
            raise BuildError(f"failed to create stub file `{stub}`: {err}") from err
        return CompiledArtifact(
            path=resolved, fresh=True, from_docker=False, artifact_type=ArtifactType.WASM
        )

    def post_build(
        self,
        skipped: bool,
        artifact_path,
        workdir: str,
        version,
        version_mismatch: str | None = None,
    ) -> None:
        """Print the cargo instructions that follow a (possibly skipped) build."""
        separator = cargo_separator(version)
        artifact_path = Path(artifact_path)
        if version_mismatch is not None:
            _warn(
                version,
                f"INFO: `cargo-near` version was coerced during build: {version_mismatch}.",
            )
            _warn(
                version,
                "`cargo-near` crate version (used in `build.rs`) did not match "
                "`cargo-near` build environment.",
            )
            _warn(
                version,
                "You may consider to optionally make 2 following versions match exactly, "
                "if they're too far away:",
            )
            _warn(
                version,
                "1. `cargo-near` CLI version being run in docker container, OR version of "
                "`cargo-near` CLI on host for a NO-Docker build.",
            )
            _warn(version, "2. `cargo-near` version in `[build-dependencies]` in Cargo.toml.")
        if self.result_env_key is not None:
            try:
                _print_artifact(skipped, artifact_path, version)
            except OSError as err:
                raise BuildError(f"failed to read artifact `{artifact_path}`: {err}") from err
            print(f"cargo{separator}rustc-env={self.result_env_key}={artifact_path}")
            _warn(
                version,
                f"Path to result artifact of build in `{workdir}` is exported to "
                f"`{self.result_env_key}`",
            )
        for path in self.rerun_if_changed_list:
            print(f"cargo{separator}rerun-if-changed={path}")