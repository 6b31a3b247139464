"""
buildmanifest: validate and normalize Android build manifests.

Reads the declarative build parameters of an Android app (SDK levels,
application identity, dependencies, build types) together with an optional
signing-credentials file, and hands a checked, read-only record to the
packaging step.
"""

__version__ = "1.0.0"
__author__ = "buildmanifest Team"
