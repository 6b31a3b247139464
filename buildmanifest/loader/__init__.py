"""Manifest loading and validation."""

from .service import (
    ManifestLoader,
    check_version_progression,
    load,
    parse_build_config,
    read_manifest,
)

__all__ = [
    "ManifestLoader",
    "check_version_progression",
    "load",
    "parse_build_config",
    "read_manifest",
]
