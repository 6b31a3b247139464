"""
Build configuration data models.

These models hold the normalized, read-only view of an Android build
manifest: application identity and SDK levels, signing credentials,
dependency coordinates, compile options and build types. They are built once
per build invocation and never mutated.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from ..core import properties
from ..core.exceptions import (
    CredentialFileNotFoundError,
    DuplicateDependencyError,
    InvalidRangeError,
    ManifestParseError,
    MissingFieldError,
)

PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")
COORDINATE_PART_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")
NOTATION_PATTERN = re.compile(r"^(?P<configuration>[A-Za-z][A-Za-z0-9]*)\s+(?P<target>.+)$")
PLATFORM_PATTERN = re.compile(r"^platform\(\s*(?P<inner>[^()]+?)\s*\)$")
DESUGARING_CONFIGURATION = "coreLibraryDesugaring"


class BuildConfig(BaseModel):
    """Application identity and SDK levels for one build."""

    application_id: str = Field(description="Application ID (e.g., com.example.app)")
    namespace: str | None = Field(default=None, description="Code namespace; defaults to application_id")
    min_sdk: int = Field(description="Lowest supported SDK level")
    target_sdk: int = Field(description="SDK level the app is tested against")
    compile_sdk: int = Field(description="SDK level the app is compiled against")
    version_code: int = Field(description="Monotonic release number")
    version_name: str = Field(min_length=1, description="User-visible version string")
    ndk_version: str | None = Field(default=None, description="Pinned NDK version")

    model_config = {"frozen": True}

    @field_validator("application_id", "namespace")
    @classmethod
    def _check_package_name(cls, value: str | None) -> str | None:
        if value is not None and not PACKAGE_NAME_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a dotted package name")
        return value

    @field_validator("version_name", "ndk_version")
    @classmethod
    def _check_trimmed(cls, value: str | None) -> str | None:
        # Must match what the loader reads back after stripping.
        if value is not None and (not value.strip() or value != value.strip()):
            raise ValueError(f"'{value}' must be non-blank without surrounding whitespace")
        return value

    @model_validator(mode="after")
    def _check_ranges(self) -> BuildConfig:
        for name in ("min_sdk", "target_sdk", "compile_sdk", "version_code"):
            value = getattr(self, name)
            if value < 1:
                raise InvalidRangeError(
                    message="must be a positive integer",
                    field_name=name,
                    actual_value=value,
                )
        if self.min_sdk > self.target_sdk:
            raise InvalidRangeError(
                message=f"minSdk must not exceed targetSdk ({self.target_sdk})",
                field_name="min_sdk",
                actual_value=self.min_sdk,
            )
        if self.target_sdk > self.compile_sdk:
            raise InvalidRangeError(
                message=f"targetSdk must not exceed compileSdk ({self.compile_sdk})",
                field_name="target_sdk",
                actual_value=self.target_sdk,
            )
        return self

    @property
    def effective_namespace(self) -> str:
        """Namespace used for generated code (falls back to the application ID)."""
        return self.namespace or self.application_id

    def to_properties(self) -> str:
        """Render this record as properties text readable by ``parse_build_config``."""
        values: dict[str, object] = {
            "applicationId": self.application_id,
            "minSdk": self.min_sdk,
            "targetSdk": self.target_sdk,
            "compileSdk": self.compile_sdk,
            "versionCode": self.version_code,
            "versionName": self.version_name,
        }
        if self.namespace is not None:
            values["namespace"] = self.namespace
        if self.ndk_version is not None:
            values["ndkVersion"] = self.ndk_version
        return properties.dumps(values)


class SigningCredential(BaseModel):
    """Release signing key material, read from the credentials file only."""

    keystore_path: Path = Field(description="Path to the keystore file")
    store_password: SecretStr = Field(description="Keystore password")
    key_alias: str = Field(min_length=1, description="Alias of the signing key")
    key_password: SecretStr = Field(description="Password of the signing key")

    model_config = {"frozen": True}

    @property
    def keystore_exists(self) -> bool:
        return self.keystore_path.is_file()

    def verify_keystore(self) -> None:
        """Ensure the keystore file exists, as packaging will need it.

        Raises:
            CredentialFileNotFoundError: If the keystore file is missing.
        """
        if not self.keystore_exists:
            raise CredentialFileNotFoundError(
                message="Signing keystore not found",
                expected_path=str(self.keystore_path),
            )


class DependencyRef(BaseModel):
    """A single dependency coordinate."""

    coordinate: str = Field(description="group:artifact")
    version_constraint: str = Field(default="", description="Version; empty when managed by a BOM")
    configuration: str = Field(default="implementation", description="Gradle configuration name")
    platform: bool = Field(default=False, description="Whether this imports a platform BOM")

    model_config = {"frozen": True}

    @field_validator("coordinate")
    @classmethod
    def _check_coordinate(cls, value: str) -> str:
        parts = value.split(":")
        if len(parts) != 2 or not all(COORDINATE_PART_PATTERN.match(p) for p in parts):
            raise ValueError(f"'{value}' is not a group:artifact coordinate")
        return value

    @property
    def group(self) -> str:
        return self.coordinate.split(":")[0]

    @property
    def artifact(self) -> str:
        return self.coordinate.split(":")[1]

    @property
    def notation(self) -> str:
        """Full ``group:artifact[:version]`` notation."""
        if self.version_constraint:
            return f"{self.coordinate}:{self.version_constraint}"
        return self.coordinate

    @property
    def gradle_notation(self) -> str:
        """Notation as written in a Gradle Kotlin DSL dependencies block."""
        target = f'"{self.notation}"'
        if self.platform:
            target = f"platform({target})"
        return f"{self.configuration}({target})"

    @classmethod
    def from_notation(cls, text: str, source: str = "") -> DependencyRef:
        """Parse ``<configuration> [platform(]group:artifact[:version][)]``.

        Raises:
            ManifestParseError: If the notation is malformed.
        """
        match = NOTATION_PATTERN.match(text.strip())
        if not match:
            raise ManifestParseError(
                message=f"Dependency '{text}' must look like '<configuration> group:artifact[:version]'",
                source_path=source,
            )
        target = match.group("target").strip()
        platform = PLATFORM_PATTERN.match(target)
        if platform:
            target = platform.group("inner")

        coordinate, _, version = target.rpartition(":") if target.count(":") >= 2 else (target, "", "")
        try:
            return cls(
                coordinate=coordinate,
                version_constraint=version,
                configuration=match.group("configuration"),
                platform=platform is not None,
            )
        except ValueError as e:
            raise ManifestParseError(
                message=f"Invalid dependency '{text}'",
                source_path=source,
                cause=e,
            )


class CompileOptions(BaseModel):
    """Java/Kotlin compilation settings."""

    source_compatibility: str = Field(default="11", description="Java source level")
    target_compatibility: str = Field(default="11", description="Java bytecode level")
    jvm_target: str | None = Field(default=None, description="Kotlin JVM target")
    core_library_desugaring: bool = Field(default=False, description="Enable core library desugaring")

    model_config = {"frozen": True}

    @field_validator("source_compatibility", "target_compatibility", "jvm_target")
    @classmethod
    def _normalize_java_version(cls, value: str | None) -> str | None:
        """Accept ``VERSION_11``/``JavaVersion.VERSION_1_8`` spellings as well as ``11``/``1.8``.

        A trailing ``.toString()``, as in ``JavaVersion.VERSION_11.toString()``, is ignored.
        """
        if value is None:
            return None
        text = value.strip()
        if text.endswith(".toString()"):
            text = text[:-len(".toString()")]
        if text.startswith("JavaVersion."):
            text = text[len("JavaVersion."):]
        if text.startswith("VERSION_"):
            text = text[len("VERSION_"):].replace("_", ".")
        if not re.match(r"^[0-9]+(\.[0-9]+)?$", text):
            raise ValueError(f"'{value}' is not a Java version")
        return text

    @property
    def effective_jvm_target(self) -> str:
        return self.jvm_target or self.target_compatibility


class BuildType(BaseModel):
    """A named build type such as ``debug`` or ``release``."""

    name: str = Field(min_length=1)
    minify_enabled: bool = Field(default=False)
    shrink_resources: bool = Field(default=False)
    proguard_files: tuple[str, ...] = Field(default=())
    signing_config: str | None = Field(default=None, description="Name of the signing config to use")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_shrinking(self) -> BuildType:
        if self.shrink_resources and not self.minify_enabled:
            raise ValueError(f"build type '{self.name}': shrinkResources requires minifyEnabled")
        return self


class ResolvedManifest(BaseModel):
    """Normalized build configuration handed to the packaging step."""

    build_config: BuildConfig
    signing: SigningCredential | None = Field(default=None, description="Absent means debug/unsigned")
    dependencies: tuple[DependencyRef, ...] = Field(default=())
    compile_options: CompileOptions = Field(default_factory=CompileOptions)
    build_types: tuple[BuildType, ...] = Field(default=())

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_dependencies(self) -> ResolvedManifest:
        seen: set[str] = set()
        for dep in self.dependencies:
            if dep.coordinate in seen:
                raise DuplicateDependencyError(
                    message="each coordinate may be declared once",
                    coordinate=dep.coordinate,
                )
            seen.add(dep.coordinate)

        if self.compile_options.core_library_desugaring and not any(
            d.configuration == DESUGARING_CONFIGURATION for d in self.dependencies
        ):
            raise MissingFieldError(
                message="core library desugaring is enabled but no desugaring library is declared",
                field_name=f"dependencies ({DESUGARING_CONFIGURATION})",
            )
        return self

    @property
    def is_signed(self) -> bool:
        return self.signing is not None

    def dependency(self, coordinate: str) -> DependencyRef | None:
        """Look up a dependency by its group:artifact coordinate."""
        for dep in self.dependencies:
            if dep.coordinate == coordinate:
                return dep
        return None

    def build_type(self, name: str) -> BuildType | None:
        for build_type in self.build_types:
            if build_type.name == name:
                return build_type
        return None

    def signing_for(self, build_type_name: str) -> SigningCredential | None:
        """Credential to sign the given build type with, or None for debug/unsigned."""
        build_type = self.build_type(build_type_name)
        if build_type is None or build_type.signing_config is None:
            return None
        return self.signing

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize for the packaging tool. Secrets are rendered masked."""
        return self.model_dump_json(indent=indent)
