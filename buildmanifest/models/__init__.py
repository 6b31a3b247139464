"""Data models for buildmanifest."""

from .build import (
    BuildConfig,
    BuildType,
    CompileOptions,
    DependencyRef,
    ResolvedManifest,
    SigningCredential,
)

__all__ = [
    "BuildConfig",
    "BuildType",
    "CompileOptions",
    "DependencyRef",
    "ResolvedManifest",
    "SigningCredential",
]
