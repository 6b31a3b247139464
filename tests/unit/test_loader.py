"""Unit tests for the manifest loader."""

import json

import pytest
from structlog.testing import capture_logs

from buildmanifest.core.config import Config
from buildmanifest.core.exceptions import (
    CredentialFileNotFoundError,
    DuplicateDependencyError,
    InlineSecretError,
    InvalidRangeError,
    ManifestParseError,
    MissingFieldError,
    VersionRegressionError,
)
from buildmanifest.loader import ManifestLoader, check_version_progression, read_manifest
from buildmanifest.loader.service import build_config_from_values, flatten

MINIMAL = """
applicationId=com.example.app
minSdk=21
targetSdk=34
compileSdk=34
versionCode=3
versionName=1.0.2
"""


class TestLoad:
    """Tests for ManifestLoader.load with the reference manifest."""

    def test_build_config(self, manifest_path, config):
        resolved = ManifestLoader(config).load(manifest_path)
        build = resolved.build_config
        assert build.application_id == "com.example.biomedical"
        assert build.namespace == "com.example.biomedical"
        assert (build.min_sdk, build.target_sdk, build.compile_sdk) == (24, 36, 36)
        assert build.version_code == 17
        assert build.version_name == "1.4.1"
        assert build.ndk_version == "27.0.12077973"

    def test_dependencies(self, manifest_path, config):
        resolved = ManifestLoader(config).load(manifest_path)
        assert [d.coordinate for d in resolved.dependencies] == [
            "androidx.core:core-ktx",
            "com.android.tools:desugar_jdk_libs",
            "com.google.firebase:firebase-bom",
            "com.google.firebase:firebase-analytics",
        ]
        assert resolved.dependency("com.google.firebase:firebase-bom").platform
        assert resolved.dependency("com.google.firebase:firebase-analytics").version_constraint == ""

    def test_compile_options_and_build_types(self, manifest_path, config):
        resolved = ManifestLoader(config).load(manifest_path)
        options = resolved.compile_options
        assert options.core_library_desugaring
        assert options.source_compatibility == "11"
        assert options.effective_jvm_target == "11"

        release = resolved.build_type("release")
        assert release is not None
        assert release.signing_config == "release"
        assert not release.minify_enabled
        assert release.proguard_files == ("proguard-android-optimize.txt", "proguard-rules.pro")

    def test_no_credentials_is_unsigned(self, manifest_path, config):
        """Absent credentials fall back to debug signing without raising."""
        with capture_logs() as logs:
            resolved = ManifestLoader(config).load(manifest_path)
        assert resolved.signing is None
        assert not resolved.is_signed
        assert resolved.signing_for("release") is None
        assert any(entry["event"] == "signing_fallback_debug" for entry in logs)

    def test_credentials_found_next_to_manifest(self, manifest_path, credentials_path, config):
        resolved = ManifestLoader(config).load(manifest_path)
        signing = resolved.signing
        assert signing is not None
        assert signing.key_alias == "my-key-alias"
        assert signing.store_password.get_secret_value() == "s3cret-store"
        assert signing.key_password.get_secret_value() == "s3cret-key"
        assert signing.keystore_path == credentials_path.parent / "my-release-key.jks"
        assert resolved.signing_for("release") == signing

    def test_explicit_credentials_path(self, write_manifest, temp_dir, config):
        manifest = write_manifest(MINIMAL)
        secrets_dir = temp_dir / "secrets"
        secrets_dir.mkdir()
        credentials = secrets_dir / "upload.properties"
        credentials.write_text(
            "storeFile=/abs/upload.jks\nstorePassword=x\nkeyPassword=y\nkeyAlias=upload\n",
            encoding="utf-8",
        )
        resolved = ManifestLoader(config).load(manifest, credentials)
        assert str(resolved.signing.keystore_path) == "/abs/upload.jks"

    def test_configured_credentials_filename(self, write_manifest, temp_dir):
        manifest = write_manifest(MINIMAL)
        (temp_dir / "signing.properties").write_text(
            "storeFile=k.jks\nstorePassword=x\nkeyPassword=y\nkeyAlias=upload\n", encoding="utf-8"
        )
        resolved = ManifestLoader(Config(credentials_filename="signing.properties")).load(manifest)
        assert resolved.signing.key_alias == "upload"

    def test_secrets_not_logged(self, manifest_path, credentials_path, config):
        with capture_logs() as logs:
            ManifestLoader(config).load(manifest_path)
        rendered = repr(logs)
        assert "s3cret-store" not in rendered
        assert "s3cret-key" not in rendered

    def test_json_manifest(self, write_manifest, config):
        data = {
            "android": {
                "namespace": "com.example.biomedical",
                "compileSdk": 36,
                "defaultConfig": {
                    "applicationId": "com.example.biomedical",
                    "minSdk": 24,
                    "targetSdk": 35,
                    "versionCode": 17,
                    "versionName": "1.4.1",
                },
                "compileOptions": {"isCoreLibraryDesugaringEnabled": False},
                "buildTypes": {
                    "release": {
                        "isMinifyEnabled": True,
                        "isShrinkResources": True,
                        "proguardFiles": ["proguard-android-optimize.txt", "proguard-rules.pro"],
                    }
                },
            },
            "dependencies": [
                "implementation androidx.core:core-ktx:1.16.0",
                {"coordinate": "com.google.firebase:firebase-bom", "version": "34.0.0", "platform": True},
            ],
        }
        manifest = write_manifest(json.dumps(data), name="build.json")
        resolved = ManifestLoader(config).load(manifest)

        assert resolved.build_config.target_sdk == 35
        release = resolved.build_type("release")
        assert release.minify_enabled and release.shrink_resources
        assert release.proguard_files == ("proguard-android-optimize.txt", "proguard-rules.pro")
        bom = resolved.dependencies[1]
        assert bom.platform
        assert bom.configuration == "implementation"
        assert bom.version_constraint == "34.0.0"


class TestLoadErrors:
    """Tests for the loader's error taxonomy."""

    def test_missing_application_id(self, write_manifest, config):
        manifest = write_manifest(MINIMAL.replace("applicationId=com.example.app\n", ""))
        with pytest.raises(MissingFieldError) as exc_info:
            ManifestLoader(config).load(manifest)
        assert exc_info.value.field_name == "applicationId"
        assert "applicationId" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["minSdk", "targetSdk", "compileSdk", "versionCode", "versionName"])
    def test_missing_required_field(self, write_manifest, config, field):
        text = "\n".join(line for line in MINIMAL.splitlines() if not line.startswith(field + "="))
        with pytest.raises(MissingFieldError) as exc_info:
            ManifestLoader(config).load(write_manifest(text))
        assert exc_info.value.field_name == field

    def test_empty_value_counts_as_missing(self, write_manifest, config):
        manifest = write_manifest(MINIMAL.replace("applicationId=com.example.app", "applicationId="))
        with pytest.raises(MissingFieldError):
            ManifestLoader(config).load(manifest)

    def test_min_sdk_above_target(self, write_manifest, config):
        manifest = write_manifest(
            MINIMAL.replace("minSdk=21", "minSdk=30").replace("targetSdk=34", "targetSdk=24")
        )
        with pytest.raises(InvalidRangeError):
            ManifestLoader(config).load(manifest)

    def test_target_above_compile(self, write_manifest, config):
        manifest = write_manifest(MINIMAL.replace("compileSdk=34", "compileSdk=33"))
        with pytest.raises(InvalidRangeError):
            ManifestLoader(config).load(manifest)

    def test_non_integer_sdk(self, write_manifest, config):
        manifest = write_manifest(MINIMAL.replace("minSdk=21", "minSdk=twenty-one"))
        with pytest.raises(ManifestParseError) as exc_info:
            ManifestLoader(config).load(manifest)
        assert "minSdk" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["2_1", "+21", "٢١", "21.0", "0x15"])
    def test_loose_integer_spellings_rejected(self, write_manifest, config, value):
        """Only plain ASCII digits are accepted for integer fields."""
        manifest = write_manifest(MINIMAL.replace("minSdk=21", f"minSdk={value}"))
        with pytest.raises(ManifestParseError) as exc_info:
            ManifestLoader(config).load(manifest)
        assert "minSdk" in str(exc_info.value)

    def test_build_config_from_values_rejects_underscores(self):
        values = {
            "applicationId": "com.example.app",
            "minSdk": "2_4",
            "targetSdk": "3_0",
            "compileSdk": "34",
            "versionCode": "1",
            "versionName": "1.0",
        }
        with pytest.raises(ManifestParseError):
            build_config_from_values(values)

    def test_gradle_jvm_target_spelling(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "kotlinOptions.jvmTarget=JavaVersion.VERSION_11.toString()\n")
        resolved = ManifestLoader(config).load(manifest)
        assert resolved.compile_options.effective_jvm_target == "11"

    def test_inline_secret_rejected(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "signingConfigs.release.storePassword=Rajeshrd14#1\n")
        with pytest.raises(InlineSecretError) as exc_info:
            ManifestLoader(config).load(manifest)
        assert exc_info.value.field_name == "signingConfigs.release.storePassword"
        assert "Rajeshrd14" not in str(exc_info.value)

    def test_duplicate_dependency(self, write_manifest, config):
        manifest = write_manifest(
            MINIMAL
            + "dependencies.a=implementation androidx.core:core-ktx:1.16.0\n"
            + "dependencies.b=api androidx.core:core-ktx:1.15.0\n"
        )
        with pytest.raises(DuplicateDependencyError):
            ManifestLoader(config).load(manifest)

    def test_structured_dependency_needs_coordinate(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "dependencies.a.version=1.0\n")
        with pytest.raises(MissingFieldError) as exc_info:
            ManifestLoader(config).load(manifest)
        assert exc_info.value.field_name == "dependencies.a.coordinate"

    def test_unknown_build_type_attribute(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "buildTypes.release.debuggable=true\n")
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(manifest)

    def test_invalid_boolean(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "buildTypes.release.minifyEnabled=yes\n")
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(manifest)

    def test_desugaring_without_library(self, write_manifest, config):
        manifest = write_manifest(MINIMAL + "compileOptions.coreLibraryDesugaring=true\n")
        with pytest.raises(MissingFieldError):
            ManifestLoader(config).load(manifest)

    def test_missing_manifest(self, temp_dir, config):
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(temp_dir / "build.properties")

    def test_unsupported_format(self, write_manifest, config):
        manifest = write_manifest("applicationId: com.example.app\n", name="build.yaml")
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(manifest)

    def test_malformed_json(self, write_manifest, config):
        manifest = write_manifest('{"applicationId": ', name="build.json")
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(manifest)

    def test_json_must_be_object(self, write_manifest, config):
        manifest = write_manifest("[1, 2]", name="build.json")
        with pytest.raises(ManifestParseError):
            ManifestLoader(config).load(manifest)

    def test_explicit_credentials_missing(self, manifest_path, temp_dir, config):
        with pytest.raises(CredentialFileNotFoundError) as exc_info:
            ManifestLoader(config).load(manifest_path, temp_dir / "absent.properties")
        assert "absent.properties" in str(exc_info.value)

    def test_incomplete_credentials(self, manifest_path, temp_dir, config):
        (temp_dir / "key.properties").write_text("storeFile=k.jks\nkeyAlias=upload\n", encoding="utf-8")
        with pytest.raises(MissingFieldError) as exc_info:
            ManifestLoader(config).load(manifest_path)
        assert exc_info.value.field_name == "storePassword"

    def test_require_keystore(self, manifest_path, credentials_path):
        loader = ManifestLoader(Config(require_keystore=True))
        assert loader.load(manifest_path).signing is not None

        (credentials_path.parent / "my-release-key.jks").unlink()
        with pytest.raises(CredentialFileNotFoundError):
            loader.load(manifest_path)


class TestHelpers:
    """Tests for module-level helpers."""

    def test_flatten(self):
        data = {"a": {"b": 1, "c": [True, None, "x"]}, "d": None}
        assert flatten(data) == {"a.b": "1", "a.c.0": "true", "a.c.2": "x"}

    def test_read_manifest_strips_sections(self, write_manifest):
        manifest = write_manifest("android.defaultConfig.minSdk=24\nandroid.compileSdk=36\n")
        assert read_manifest(manifest) == {"minSdk": "24", "compileSdk": "36"}

    def test_version_progression(self, manifest_path, config):
        build = ManifestLoader(config).load(manifest_path).build_config
        check_version_progression(16, build)
        with pytest.raises(VersionRegressionError):
            check_version_progression(17, build)
        with pytest.raises(VersionRegressionError):
            check_version_progression(20, build)
