[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nearbuild"
version = "0.1.0"
description = "Helpers for building NEAR smart contracts with cargo: ABI files, build-script support and checks for reproducible docker builds"
requires-python = ">=3.10"
keywords = ["near", "cargo", "wasm", "smart-contract", "reproducible-build", "abi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nearbuild"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
