"""
Custom exception hierarchy for buildmanifest.

All exceptions inherit from BuildManifestError so the invoking build pipeline
can treat every configuration problem the same way: report it and abort.
Configuration errors are never transient, so none of them are retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BuildManifestError(Exception):
    """Base exception for all buildmanifest errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ManifestParseError(BuildManifestError):
    """Raised when a manifest or credentials file cannot be read or parsed."""

    source_path: str = ""
    line_number: int | None = None

    def __str__(self) -> str:
        base = super().__str__()
        location = self.source_path
        if self.line_number is not None:
            location = f"{location}:{self.line_number}"
        return f"Cannot parse '{location}': {base}" if location else f"Cannot parse manifest: {base}"


@dataclass
class MissingFieldError(BuildManifestError):
    """Raised when a required field is absent."""

    field_name: str = ""
    source_path: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        where = f" in '{self.source_path}'" if self.source_path else ""
        return f"Missing required field '{self.field_name}'{where}: {base}"


@dataclass
class InvalidRangeError(BuildManifestError):
    """Raised when SDK levels violate minSdk <= targetSdk <= compileSdk."""

    field_name: str = ""
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        return f"Invalid value for '{self.field_name}' ({self.actual_value!r}): {base}"


@dataclass
class CredentialFileNotFoundError(BuildManifestError):
    """Raised when an explicitly requested credentials file or keystore does not exist."""

    expected_path: str = ""

    def __str__(self) -> str:
        return f"{self.message}: '{self.expected_path}'"


@dataclass
class InlineSecretError(BuildManifestError):
    """Raised when a manifest carries signing secrets as plain literals.

    Secrets belong in the separate, unversioned credentials file.
    """

    field_name: str = ""
    source_path: str = ""

    def __str__(self) -> str:
        # The value itself is never rendered.
        return (
            f"Inline secret '{self.field_name}' found in '{self.source_path}': {self.message}"
        )


@dataclass
class DuplicateDependencyError(BuildManifestError):
    """Raised when two dependency entries share a coordinate."""

    coordinate: str = ""

    def __str__(self) -> str:
        return f"Duplicate dependency '{self.coordinate}': {self.message}"


@dataclass
class VersionRegressionError(BuildManifestError):
    """Raised when a release does not increase versionCode."""

    previous_version_code: int = 0
    version_code: int = 0

    def __str__(self) -> str:
        return (
            f"versionCode {self.version_code} must be greater than the previous "
            f"release ({self.previous_version_code}): {self.message}"
        )
