"""Output formats of a generated ABI file."""

from __future__ import annotations

from enum import Enum


class Format(Enum):
    """JSON layout of the ABI file."""

    JSON = "json"
    JSON_MIN = "json_min"


class Compression(Enum):
    """Compression applied to the serialized ABI."""

    NO_OP = "noop"
    ZSTD = "zstd"


def file_extension(format: Format, compression: Compression) -> str:
    """File extension for an ABI written with the given format and compression."""
    if compression is Compression.ZSTD:
        return "zst"
    if format in (Format.JSON, Format.JSON_MIN):
        return "json"
    raise ValueError(f"unknown ABI format: {format!r}")