"""Core infrastructure components for buildmanifest."""

from .config import Config, get_config
from .exceptions import (
    BuildManifestError,
    CredentialFileNotFoundError,
    DuplicateDependencyError,
    InlineSecretError,
    InvalidRangeError,
    ManifestParseError,
    MissingFieldError,
    VersionRegressionError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "Config",
    "get_config",
    "BuildManifestError",
    "CredentialFileNotFoundError",
    "DuplicateDependencyError",
    "InlineSecretError",
    "InvalidRangeError",
    "ManifestParseError",
    "MissingFieldError",
    "VersionRegressionError",
    "get_logger",
    "setup_logging",
]
