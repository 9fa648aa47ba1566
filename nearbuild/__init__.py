"""Helpers for building NEAR smart contracts with cargo: ABI files, build-script output and reproducible docker build checks."""

__version__ = "0.1.0"