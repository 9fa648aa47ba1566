"""Names of environment variables exported or read during builds."""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

#: Set to ``"true"`` while the ABI generation step is running.
BUILD_RS_ABI_STEP_HINT = "CARGO_NEAR_ABI_GENERATION"

CARGO_NEAR_VERSION = "CARGO_NEAR_VERSION"
CARGO_NEAR_ABI_SCHEMA_VERSION = "CARGO_NEAR_ABI_SCHEMA_VERSION"

# NEP-330 1.2.0: build details extension
NEP330_BUILD_ENVIRONMENT = "NEP330_BUILD_INFO_BUILD_ENVIRONMENT"
NEP330_BUILD_COMMAND = "NEP330_BUILD_INFO_BUILD_COMMAND"
NEP330_CONTRACT_PATH = "NEP330_BUILD_INFO_CONTRACT_PATH"
NEP330_SOURCE_CODE_SNAPSHOT = "NEP330_BUILD_INFO_SOURCE_CODE_SNAPSHOT"

# NEP-330 1.1.0: contract metadata extension
NEP330_LINK = "NEP330_LINK"
NEP330_VERSION = "NEP330_VERSION"

# Not part of the specification.
SERVER_DISABLE_INTERACTIVE = "CARGO_NEAR_SERVER_BUILD_DISABLE_INTERACTIVE"

REPRODUCIBLE_BUILD_KEYS = (
    NEP330_BUILD_ENVIRONMENT,
    NEP330_BUILD_COMMAND,
    NEP330_CONTRACT_PATH,
    NEP330_SOURCE_CODE_SNAPSHOT,
)


def print_env() -> list[str]:
    """Log the variables relevant for reproducible builds and return the logged lines."""
    logger.info("Variables, relevant for reproducible builds:")
    lines = []
    for key in REPRODUCIBLE_BUILD_KEYS:
        value = os.environ.get(key)
        shown = f"'{value}'" if value is not None else "unset"
        line = f"{key}={shown}"
        logger.info("%s", line)
        lines.append(line)
    return lines