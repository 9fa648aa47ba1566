"""The ``[package.metadata.near.reproducible_build]`` section of a manifest."""

from __future__ import annotations

import json
import os
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from nearbuild.cargo_metadata import CrateMetadata
from nearbuild.errors import BuildError

_SECTION = "Malformed `[package.metadata.near.reproducible_build]` in Cargo.toml"
_KNOWN_KEYS = frozenset({"image", "image_digest", "passed_env", "container_build_command"})

_GREEN = "32"
_YELLOW = "33"
_MAGENTA = "35"
_CYAN = "36"


def _style(text: str, code: str) -> str:
    isatty = getattr(sys.stdout, "isatty", None)
    if "NO_COLOR" in os.environ or not (isatty and isatty()):
        return text
    return f"\x1b[{code}m{text}\x1b[0m"


def _has_invalid_chars(text: str) -> bool:
    return any(ord(c) > 127 or ord(c) < 32 or ord(c) == 127 or c == " " for c in text)


def _debug_list(items: list[str]) -> str:
    return "[" + ", ".join(json.dumps(item, ensure_ascii=False) for item in items) + "]"


def _required_string(data: Mapping[str, Any], key: str) -> str:
    if key not in data:
        raise BuildError(f"{_SECTION}: missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise BuildError(f"{_SECTION}: invalid type for `{key}`, expected a string")
    return value


def _optional_string_list(data: Mapping[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise BuildError(f"{_SECTION}: invalid type for `{key}`, expected a sequence of strings")
    return list(value)


def _parse_repository(repository: str | None) -> str | None:
    if repository is None:
        return None
    try:
        parts = urlsplit(repository)
    except ValueError as err:
        raise BuildError(f"invalid repository url `{repository}`: {err}") from err
    if not parts.scheme:
        raise BuildError(f"invalid repository url `{repository}`: relative URL without a base")
    return repository


@dataclass
class ReproducibleBuild:
    """Settings for a reproducible build inside a docker container."""

    image: str
    image_digest: str
    passed_env: list[str] | None = None
    container_build_command: list[str] | None = None
    #: Clonable git remote taken from ``package.repository``; only ``https`` is supported.
    repository: str | None = None
    unknown_keys: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls, data: Any, repository: str | None = None
    ) -> "ReproducibleBuild":
        """Read the section from parsed manifest data, without validating it."""
        if not isinstance(data, Mapping):
            raise BuildError(f"{_SECTION}: invalid type, expected a table")
        unknown = {key: data[key] for key in sorted(data) if key not in _KNOWN_KEYS}
        return cls(
            image=_required_string(data, "image"),
            image_digest=_required_string(data, "image_digest"),
            passed_env=_optional_string_list(data, "passed_env"),
            container_build_command=_optional_string_list(data, "container_build_command"),
            repository=_parse_repository(repository),
            unknown_keys=unknown,
        )

    @classmethod
    def parse(cls, crate_metadata: CrateMetadata) -> "ReproducibleBuild":
        """Read and validate the section from the crate's metadata."""
        package = crate_metadata.root_package
        metadata = package.get("metadata")
        near = metadata.get("near") if isinstance(metadata, Mapping) else None
        section = near.get("reproducible_build") if isinstance(near, Mapping) else None

        if section is None:
            _print_missing_section_help()
            raise BuildError(
                "Missing `[package.metadata.near.reproducible_build]` in Cargo.toml"
            )

        build_meta = cls.from_mapping(section, package.get("repository"))
        build_meta.validate()
        print(f"{_style('reproducible build metadata:', _GREEN)} {build_meta}")
        if build_meta.container_build_command is not None:
            print(
                _style(
                    "using `container_build_command` from "
                    "`[package.metadata.near.reproducible_build]` in Cargo.toml",
                    _CYAN,
                )
            )
        return build_meta

    def _validate_image(self) -> None:
        if _has_invalid_chars(self.image):
            raise BuildError(
                f"{_SECTION}: `{self.image}`\n`image`: string contains invalid characters"
            )

    def _validate_image_digest(self) -> None:
        if _has_invalid_chars(self.image_digest):
            raise BuildError(
                f"{_SECTION}: `{self.image_digest}`\n"
                "`image_digest`: string contains invalid characters"
            )

    def _validate_container_build_command(self) -> None:
        command = self.container_build_command or []
        is_cargo_near = command[:2] == ["cargo", "near"]
        for token in command:
            if _has_invalid_chars(token):
                raise BuildError(
                    f"{_SECTION}: `{token}`\n"
                    "`container_build_command`: string token contains invalid characters"
                )
            if is_cargo_near and token == "--no-locked":
                raise BuildError(
                    f"{_SECTION}:\n"
                    "`container_build_command`: `--no-locked` forbidden for "
                    "`cargo near` build command"
                )

    def _validate_no_unknown_keys(self) -> None:
        if self.unknown_keys:
            keys = ",".join(sorted(self.unknown_keys))
            raise BuildError(f"{_SECTION}, contains unknown keys: `{keys}`")

    def _validate_repository(self) -> None:
        if self.repository is None:
            raise BuildError(
                "Malformed NEP330 metadata in Cargo.toml: \n"
                "`[package.repository]`: should not be empty"
            )
        if urlsplit(self.repository).scheme != "https":
            raise BuildError(
                f"Malformed NEP330 metadata in Cargo.toml:: {self.repository}\n"
                "`[package.repository]`: only `https` scheme is supported at the moment"
            )

    def validate(self) -> None:
        """Raise ``BuildError`` if the settings are malformed."""
        self._validate_image()
        self._validate_image_digest()
        self._validate_container_build_command()
        self._validate_no_unknown_keys()
        self._validate_repository()
        if self.passed_env is not None and self.container_build_command is None:
            raise BuildError(
                f"{_SECTION}: \n"
                "using optional `passed_env` field requires that "
                "`container_build_command` is set too"
            )

    def concat_image(self) -> str:
        """The image reference pinned by digest: ``image@digest``."""
        return f"{self.image}@{self.image_digest}"

    def __str__(self) -> str:
        lines = [
            "",
            f"    image: {self.image}",
            f"    image digest: {self.image_digest}",
        ]
        if self.passed_env is not None:
            lines.append(f"    passed environment variables: {_debug_list(self.passed_env)}")
        else:
            lines.append(f"    passed environment variables: {_style('ABSENT', _GREEN)}")
        if self.container_build_command is not None:
            lines.append(
                f"    container build command: {_debug_list(self.container_build_command)}"
            )
        else:
            lines.append(f"    container build command: {_style('ABSENT', _YELLOW)}")
        repository = self.repository if self.repository is not None else "<empty>"
        lines.append(f"    clonable remote of git repository: {repository}")
        return "\n".join(lines) + "\n"


def _print_missing_section_help() -> None:
    section = "`[package.metadata.near.reproducible_build]`"
    print(
        _style("An error with missing ", _YELLOW)
        + _style(section, _MAGENTA)
        + _style(" in Cargo.toml has been encountered...", _YELLOW)
    )
    print(_style("You can choose to disable docker build with `--no-docker` flag...", _CYAN))
    time.sleep(7)
    print()
    print(
        _style("Alternatively you can add and commit ", _CYAN)
        + _style(section + " ", _MAGENTA)
        + _style("to your contract's Cargo.toml:", _CYAN)
    )
    print(
        _style("- default values for the section can be found in the manifest template of ", _CYAN)
        + _style("`cargo near new`", _MAGENTA)
    )
    print(
        _style(
            "- the same can also be found in Cargo.toml of template project, generated by ",
            _CYAN,
        )
        + _style("`cargo near new`", _MAGENTA)
    )
    time.sleep(12)