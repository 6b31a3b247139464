"""
Manifest Loader.

Reads a declarative build manifest and an optional signing-credentials file,
validates them and returns a read-only ResolvedManifest for the packaging step.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from ..core import properties
from ..core.config import Config, get_config
from ..core.exceptions import (
    CredentialFileNotFoundError,
    InlineSecretError,
    ManifestParseError,
    MissingFieldError,
    VersionRegressionError,
)
from ..core.logging import get_logger
from ..models.build import (
    BuildConfig,
    BuildType,
    CompileOptions,
    DependencyRef,
    ResolvedManifest,
    SigningCredential,
)

logger = get_logger(__name__)

# Manifest key -> BuildConfig field
REQUIRED_FIELDS = {
    "applicationId": "application_id",
    "minSdk": "min_sdk",
    "targetSdk": "target_sdk",
    "compileSdk": "compile_sdk",
    "versionCode": "version_code",
    "versionName": "version_name",
}
OPTIONAL_FIELDS = {
    "namespace": "namespace",
    "ndkVersion": "ndk_version",
}
INTEGER_FIELDS = frozenset({"minSdk", "targetSdk", "compileSdk", "versionCode"})
INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")

COMPILE_OPTION_KEYS = {
    "compileOptions.sourceCompatibility": "source_compatibility",
    "compileOptions.targetCompatibility": "target_compatibility",
    "compileOptions.coreLibraryDesugaring": "core_library_desugaring",
    "compileOptions.isCoreLibraryDesugaringEnabled": "core_library_desugaring",
    "kotlinOptions.jvmTarget": "jvm_target",
}
BUILD_TYPE_FLAGS = {
    "minifyEnabled": "minify_enabled",
    "isMinifyEnabled": "minify_enabled",
    "shrinkResources": "shrink_resources",
    "isShrinkResources": "shrink_resources",
}
DEPENDENCY_ATTRIBUTES = {
    "coordinate": "coordinate",
    "version": "version_constraint",
    "versionConstraint": "version_constraint",
    "configuration": "configuration",
    "platform": "platform",
}

CREDENTIAL_FIELDS = ("storeFile", "storePassword", "keyAlias", "keyPassword")
SECTION_PREFIXES = ("android.", "defaultConfig.")
SUPPORTED_SUFFIXES = (".properties", ".json")


def flatten(data: Any, prefix: str = "") -> dict[str, str]:
    """Flatten nested JSON data into dotted keys; list items are keyed by index."""
    if isinstance(data, dict):
        items = data.items()
    elif isinstance(data, list):
        items = enumerate(data)
    else:
        if data is None:
            return {}
        if isinstance(data, bool):
            return {prefix: "true" if data else "false"}
        return {prefix: str(data)}

    flat: dict[str, str] = {}
    for key, value in items:
        flat.update(flatten(value, f"{prefix}.{key}" if prefix else str(key)))
    return flat


def read_manifest(path: Path) -> dict[str, str]:
    """Read a manifest file into a flat key/value mapping.

    Gradle section prefixes (``android.``, ``defaultConfig.``) are dropped so
    ``android.defaultConfig.minSdk`` and ``minSdk`` name the same field.

    Raises:
        ManifestParseError: If the format is unsupported or the file is malformed.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ManifestParseError(
            message=f"Unsupported manifest format '{suffix}', expected one of {', '.join(SUPPORTED_SUFFIXES)}",
            source_path=str(path),
        )

    if suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestParseError(message=f"Cannot read manifest: {e}", source_path=str(path), cause=e)
        except json.JSONDecodeError as e:
            raise ManifestParseError(
                message=e.msg, source_path=str(path), line_number=e.lineno, cause=e
            )
        if not isinstance(data, dict):
            raise ManifestParseError(
                message=f"Manifest must be a JSON object, got {type(data).__name__}",
                source_path=str(path),
            )
        raw = flatten(data)
    else:
        raw = properties.load(path)

    values: dict[str, str] = {}
    for key, value in raw.items():
        for prefix in SECTION_PREFIXES:
            if key.startswith(prefix):
                key = key[len(prefix):]
        values[key] = value
    return values


def _parse_int(value: str, key: str, source: str) -> int:
    # int() would also take '2_4', '+24' and non-ASCII digits.
    text = value.strip()
    if not INTEGER_PATTERN.match(text):
        raise ManifestParseError(
            message=f"'{key}' must be an integer, got '{value}'", source_path=source
        )
    return int(text)


def _parse_bool(value: str, key: str, source: str) -> bool:
    text = value.strip().lower()
    if text not in ("true", "false"):
        raise ManifestParseError(
            message=f"'{key}' must be true or false, got '{value}'", source_path=source
        )
    return text == "true"


def _construct(model_type: type[BaseModel], source: str, **kwargs: Any) -> Any:
    """Build a model, turning pydantic validation failures into ManifestParseError."""
    try:
        return model_type(**kwargs)
    except ValidationError as e:
        # Only locations and messages are rendered; input values may be secrets.
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model_type.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ManifestParseError(message=details, source_path=source, cause=e)


def build_config_from_values(values: dict[str, str], source: str = "") -> BuildConfig:
    """Build a BuildConfig from flat manifest values.

    Raises:
        MissingFieldError: If a required field is absent or empty.
        InvalidRangeError: If the SDK levels are out of order.
        ManifestParseError: If a value is malformed.
    """
    kwargs: dict[str, Any] = {}
    for key, field_name in REQUIRED_FIELDS.items():
        value = values.get(key, "").strip()
        if not value:
            raise MissingFieldError(
                message="required by every build", field_name=key, source_path=source
            )
        kwargs[field_name] = _parse_int(value, key, source) if key in INTEGER_FIELDS else value

    for key, field_name in OPTIONAL_FIELDS.items():
        value = values.get(key, "").strip()
        if value:
            kwargs[field_name] = value

    return _construct(BuildConfig, source, **kwargs)


def parse_build_config(text: str) -> BuildConfig:
    """Parse the properties rendering produced by ``BuildConfig.to_properties``."""
    return build_config_from_values(properties.loads(text))


def check_version_progression(previous_version_code: int, config: BuildConfig) -> None:
    """Ensure a release strictly increases versionCode.

    Raises:
        VersionRegressionError: If versionCode does not exceed the previous release.
    """
    if config.version_code <= previous_version_code:
        raise VersionRegressionError(
            message="every release needs a higher versionCode",
            previous_version_code=previous_version_code,
            version_code=config.version_code,
        )


class ManifestLoader:
    """Loads and validates a build manifest and its signing credentials.

    The loader only reads files; it never writes or mutates external state.
    """

    def __init__(self, config: Config | None = None) -> None:
        """Initialize the loader.

        Args:
            config: Runtime settings. Defaults to the cached environment config.
        """
        self.config = config or get_config()

    def load(self, manifest_path: Path | str, credentials_path: Path | str | None = None) -> ResolvedManifest:
        """Load and validate a manifest.

        Args:
            manifest_path: Path to the ``.properties`` or ``.json`` manifest.
            credentials_path: Optional credentials file. When omitted, the
                configured credentials file next to the manifest is used if
                present; its absence yields an unsigned manifest.

        Returns:
            The normalized, read-only manifest.

        Raises:
            BuildManifestError: Any subclass, on the first problem found.
        """
        manifest_path = Path(manifest_path)
        source = str(manifest_path)
        if not manifest_path.is_file():
            raise ManifestParseError(message="Manifest file not found", source_path=source)

        values = read_manifest(manifest_path)
        self._reject_inline_secrets(values, source)

        build_config = build_config_from_values(values, source)
        compile_options = self._parse_compile_options(values, source)
        build_types = self._parse_build_types(values, source)
        dependencies = self._parse_dependencies(values, source)
        self._warn_unknown_keys(values)

        signing = None
        located = self._locate_credentials(manifest_path, credentials_path)
        if located is not None:
            signing = self.load_credentials(located)
            if self.config.require_keystore:
                signing.verify_keystore()

        resolved = ResolvedManifest(
            build_config=build_config,
            signing=signing,
            dependencies=dependencies,
            compile_options=compile_options,
            build_types=build_types,
        )

        for build_type in build_types:
            if build_type.signing_config and signing is None:
                logger.warning(
                    "signing_fallback_debug",
                    build_type=build_type.name,
                    signing_config=build_type.signing_config,
                )

        logger.info(
            "manifest_loaded",
            manifest=source,
            application_id=build_config.application_id,
            version_code=build_config.version_code,
            dependencies=len(dependencies),
            signed=resolved.is_signed,
        )
        return resolved

    def load_credentials(self, path: Path) -> SigningCredential:
        """Read a ``key.properties`` style credentials file.

        A relative ``storeFile`` resolves against the credentials file's directory.

        Raises:
            CredentialFileNotFoundError: If the file does not exist.
            MissingFieldError: If one of the four credential fields is absent.
        """
        if not path.is_file():
            raise CredentialFileNotFoundError(
                message="Credentials file not found", expected_path=str(path)
            )

        values = properties.load(path)
        for key in CREDENTIAL_FIELDS:
            if not values.get(key, "").strip():
                raise MissingFieldError(
                    message="required in the credentials file",
                    field_name=key,
                    source_path=str(path),
                )

        keystore_path = Path(values["storeFile"].strip()).expanduser()
        if not keystore_path.is_absolute():
            keystore_path = path.parent / keystore_path

        credential = _construct(
            SigningCredential,
            str(path),
            keystore_path=keystore_path,
            store_password=values["storePassword"],
            key_alias=values["keyAlias"].strip(),
            key_password=values["keyPassword"],
        )
        logger.debug("credentials_loaded", credentials=str(path), key_alias=credential.key_alias)
        return credential

    def _locate_credentials(
        self, manifest_path: Path, credentials_path: Path | str | None
    ) -> Path | None:
        """Pick the credentials file to read, or None when signing is not configured."""
        if credentials_path is not None:
            path = Path(credentials_path)
            if not path.is_file():
                raise CredentialFileNotFoundError(
                    message="Credentials file not found", expected_path=str(path)
                )
            return path

        default = manifest_path.parent / self.config.credentials_filename
        if default.is_file():
            return default
        logger.info("credentials_absent", expected=str(default))
        return None

    def _reject_inline_secrets(self, values: dict[str, str], source: str) -> None:
        for key in values:
            if "password" in key.lower():
                raise InlineSecretError(
                    message="move signing secrets to the credentials file",
                    field_name=key,
                    source_path=source,
                )

    def _parse_compile_options(self, values: dict[str, str], source: str) -> CompileOptions:
        kwargs: dict[str, Any] = {}
        for key, field_name in COMPILE_OPTION_KEYS.items():
            if key not in values:
                continue
            if field_name == "core_library_desugaring":
                kwargs[field_name] = _parse_bool(values[key], key, source)
            else:
                kwargs[field_name] = values[key]
        return _construct(CompileOptions, source, **kwargs)

    def _parse_build_types(self, values: dict[str, str], source: str) -> tuple[BuildType, ...]:
        """Group ``buildTypes.<name>.<attribute>`` keys into BuildType records."""
        grouped: dict[str, dict[str, Any]] = {}
        for key, value in values.items():
            if not key.startswith("buildTypes."):
                continue
            name, _, attribute = key[len("buildTypes."):].partition(".")
            entry = grouped.setdefault(name, {"name": name})

            if attribute in BUILD_TYPE_FLAGS:
                entry[BUILD_TYPE_FLAGS[attribute]] = _parse_bool(value, key, source)
            elif attribute == "signingConfig":
                entry["signing_config"] = value.strip() or None
            elif attribute == "proguardFiles":
                entry["proguard_files"] = tuple(f.strip() for f in value.split(",") if f.strip())
            elif attribute.startswith("proguardFiles."):
                entry["proguard_files"] = entry.get("proguard_files", ()) + (value.strip(),)
            else:
                raise ManifestParseError(
                    message=f"Unknown build type attribute '{attribute}' in '{key}'",
                    source_path=source,
                )

        return tuple(_construct(BuildType, source, **entry) for entry in grouped.values())

    def _parse_dependencies(self, values: dict[str, str], source: str) -> tuple[DependencyRef, ...]:
        """Collect ``dependencies.<label>`` entries in declaration order.

        An entry is either a notation string (``implementation group:artifact:1.0``)
        or a group of ``dependencies.<label>.<attribute>`` keys.
        """
        notations: dict[str, str] = {}
        structured: dict[str, dict[str, Any]] = {}
        order: list[str] = []

        for key, value in values.items():
            if not key.startswith("dependencies."):
                continue
            label, _, attribute = key[len("dependencies."):].partition(".")
            if label not in order:
                order.append(label)

            if not attribute:
                notations[label] = value
            elif attribute in DEPENDENCY_ATTRIBUTES:
                field_name = DEPENDENCY_ATTRIBUTES[attribute]
                entry = structured.setdefault(label, {})
                entry[field_name] = (
                    _parse_bool(value, key, source) if field_name == "platform" else value.strip()
                )
            else:
                raise ManifestParseError(
                    message=f"Unknown dependency attribute '{attribute}' in '{key}'",
                    source_path=source,
                )

        dependencies: list[DependencyRef] = []
        for label in order:
            if label in notations and label in structured:
                raise ManifestParseError(
                    message=f"Dependency '{label}' is given both as a notation and as attributes",
                    source_path=source,
                )
            if label in notations:
                dependencies.append(DependencyRef.from_notation(notations[label], source))
                continue
            entry = structured[label]
            if "coordinate" not in entry:
                raise MissingFieldError(
                    message="every structured dependency needs a coordinate",
                    field_name=f"dependencies.{label}.coordinate",
                    source_path=source,
                )
            dependencies.append(_construct(DependencyRef, source, **entry))
        return tuple(dependencies)

    def _warn_unknown_keys(self, values: dict[str, str]) -> None:
        known = set(REQUIRED_FIELDS) | set(OPTIONAL_FIELDS) | set(COMPILE_OPTION_KEYS)
        for key in values:
            if key in known or key.startswith(("buildTypes.", "dependencies.")):
                continue
            logger.warning("unknown_manifest_key", key=key)


def load(manifest_path: Path | str, credentials_path: Path | str | None = None) -> ResolvedManifest:
    """Load a manifest with the default configuration."""
    return ManifestLoader().load(manifest_path, credentials_path)
