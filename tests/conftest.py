"""Test configuration for buildmanifest."""

import textwrap
import tempfile
from pathlib import Path

import pytest
import structlog

from buildmanifest.core.config import Config

MANIFEST_TEXT = textwrap.dedent(
    """
    # Android build manifest for the biomedical app
    namespace=com.example.biomedical
    compileSdk=36
    ndkVersion=27.0.12077973

    applicationId=com.example.biomedical
    minSdk=24
    targetSdk=36
    versionCode=17
    versionName=1.4.1

    compileOptions.coreLibraryDesugaring=true
    compileOptions.sourceCompatibility=VERSION_11
    compileOptions.targetCompatibility=VERSION_11
    kotlinOptions.jvmTarget=11

    buildTypes.release.signingConfig=release
    buildTypes.release.minifyEnabled=false
    buildTypes.release.shrinkResources=false
    buildTypes.release.proguardFiles=proguard-android-optimize.txt, proguard-rules.pro

    dependencies.0=implementation androidx.core:core-ktx:1.16.0
    dependencies.1=coreLibraryDesugaring com.android.tools:desugar_jdk_libs:2.1.5
    dependencies.2=implementation platform(com.google.firebase:firebase-bom:34.0.0)
    dependencies.3=implementation com.google.firebase:firebase-analytics
    """
)

CREDENTIALS_TEXT = textwrap.dedent(
    """
    storePassword=s3cret-store
    keyPassword=s3cret-key
    keyAlias=my-key-alias
    storeFile=my-release-key.jks
    """
)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults so loggers never point at a closed stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config():
    """Loader configuration independent of the environment."""
    return Config()


@pytest.fixture
def write_manifest(temp_dir):
    """Factory writing manifest text into the temporary directory.

    Returns:
        Callable[[str, str], Path]: Takes the text and an optional file name
            and returns the written path.
    """
    def _write(text: str = MANIFEST_TEXT, name: str = "build.properties") -> Path:
        path = temp_dir / name
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def manifest_path(write_manifest):
    """The reference manifest, without any credentials next to it."""
    return write_manifest()


@pytest.fixture
def credentials_path(temp_dir):
    """A key.properties file next to the manifest plus the keystore it names."""
    path = temp_dir / "key.properties"
    path.write_text(CREDENTIALS_TEXT, encoding="utf-8")
    (temp_dir / "my-release-key.jks").write_bytes(b"\xfe\xed\xfe\xed")
    return path
