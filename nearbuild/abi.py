"""Writing a contract ABI to disk and preparing the ABI generation step."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import zstandard

from nearbuild.abi_types import Compression, Format, file_extension
from nearbuild.cargo_metadata import CrateMetadata
from nearbuild.errors import BuildError

REQUIRED_NEAR_SDK_FEATURES = ("__abi-generate", "__abi-embed")

_UNRESOLVED = (
    "unable to appropriately resolve the dependency graph, "
    "perhaps your `Cargo.toml` file is malformed"
)
_NO_NEAR_SDK = "`near-sdk` dependency not found"


def _serialize(contract_abi: Any, format: Format) -> bytes:
    if format is Format.JSON:
        text = json.dumps(contract_abi, indent=2, separators=(",", ": "), ensure_ascii=False)
    elif format is Format.JSON_MIN:
        text = json.dumps(contract_abi, separators=(",", ":"), ensure_ascii=False)
    else:
        raise ValueError(f"unknown ABI format: {format!r}")
    return text.encode("utf-8")


def _compress(data: bytes, compression: Compression) -> bytes:
    if compression is Compression.NO_OP:
        return data
    if compression is Compression.ZSTD:
        level = zstandard.MAX_COMPRESSION_LEVEL
        return zstandard.ZstdCompressor(level=level).compress(data)
    raise ValueError(f"unknown ABI compression: {compression!r}")


def write_to_file(
    contract_abi: Any,
    crate_metadata: CrateMetadata,
    format: Format = Format.JSON,
    compression: Compression = Compression.NO_OP,
) -> Path:
    """Serialize the ABI into the crate's target directory and return the file path."""
    payload = _compress(_serialize(contract_abi, format), compression)
    out_path = Path(crate_metadata.target_directory) / (
        f"{crate_metadata.formatted_package_name()}_abi."
        f"{file_extension(format, compression)}"
    )
    try:
        out_path.write_bytes(payload)
    except OSError as err:
        raise BuildError(f"failed to write ABI to `{out_path}`: {err}") from err
    return out_path


def strip_docs(abi_root: dict[str, Any]) -> dict[str, Any]:
    """Remove function docs and schema descriptions from the ABI, in place."""
    body = abi_root.get("body") or {}
    for function in body.get("functions") or []:
        if isinstance(function, dict):
            function.pop("doc", None)
    root_schema = body.get("root_schema") or {}
    for schema in (root_schema.get("definitions") or {}).values():
        # boolean schemas carry no metadata
        if isinstance(schema, dict):
            schema.pop("description", None)
    return abi_root


def extract_metadata(crate_metadata: CrateMetadata) -> dict[str, Any]:
    """ABI metadata describing the crate's root package."""
    package = crate_metadata.root_package
    return {
        "name": package.get("name"),
        "version": str(package.get("version")),
        "authors": list(package.get("authors") or []),
    }


def find_near_sdk_package(crate_metadata: CrateMetadata) -> dict[str, Any]:
    """The package entry of the ``near-sdk`` dependency of the root package."""
    raw = crate_metadata.raw_metadata
    root_id = crate_metadata.root_package.get("id")
    resolve = raw.get("resolve")
    nodes = (resolve or {}).get("nodes") or []
    root_node = next((node for node in nodes if node.get("id") == root_id), None)
    if root_node is None:
        raise BuildError(_UNRESOLVED)

    dep = next(
        (dep for dep in root_node.get("deps") or [] if dep.get("name") == "near_sdk"),
        None,
    )
    if dep is None:
        raise BuildError(_NO_NEAR_SDK)
    package = next(
        (pkg for pkg in raw.get("packages") or [] if pkg.get("id") == dep.get("pkg")),
        None,
    )
    if package is None:
        raise BuildError(_NO_NEAR_SDK)
    return package


def check_near_sdk_features(package: dict[str, Any]) -> None:
    """Raise ``BuildError`` unless ``near-sdk`` offers the features ABI generation needs."""
    features = package.get("features") or {}
    for required in REQUIRED_NEAR_SDK_FEATURES:
        if required not in features:
            raise BuildError(
                f"missing `{required}` required feature for `near-sdk` dependency: "
                "probably unsupported `near-sdk` version. expected 4.1.* or higher"
            )