"""
Configuration management for buildmanifest.

Provides the tool's own runtime settings with environment variable overrides
and sensible defaults. Build parameters themselves come from the manifest,
never from here.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


class Config(BaseModel):
    """Root configuration for buildmanifest."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    credentials_filename: str = Field(
        default="key.properties",
        description="Credentials file looked up next to the manifest when none is given",
    )
    require_keystore: bool = Field(
        default=False, description="Fail when the signing keystore file does not exist"
    )
    json_indent: int = Field(default=2, ge=0, description="Indentation for JSON exports")

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("BMF_LOG_LEVEL", "INFO").upper(),  # type: ignore
            credentials_filename=os.environ.get("BMF_CREDENTIALS_FILE", "key.properties"),
            require_keystore=os.environ.get("BMF_REQUIRE_KEYSTORE", "false").lower() == "true",
            json_indent=int(os.environ.get("BMF_JSON_INDENT", "2")),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
