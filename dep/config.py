"""
Configuration management for dep.

This module provides centralized configuration for all components:
- Repository layout and hashing
- Remote synchronization host
- Logging settings
"""

import os
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class RepositoryConfig(BaseModel):
    """Configuration for the on-disk repository layout."""

    control_dir: str = Field(
        default=".dep", description="Name of the control directory in a working tree"
    )
    default_branch: str = Field(
        default="main", description="Branch created and activated by init"
    )
    hash_algorithm: str = Field(
        default="sha1", description="hashlib algorithm used for commit identity"
    )
    stash_prefix: str = Field(
        default="stash_", description="File name prefix for stash entries"
    )


class RemoteConfig(BaseModel):
    """Configuration for the remote history store."""

    host: str = Field(
        default="http://localhost:1337",
        description="Base URL of the remote history server",
    )
    timeout: int = Field(default=30, gt=0, description="Request timeout in seconds")


class LogConfig(BaseModel):
    """Configuration for logging system."""

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level"
    )
    format: str = Field(
        default="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[component]}</cyan> - "
        "<level>{message}</level>",
        description="Log message format",
    )
    rotation: str = Field(default="10 MB", description="Log file rotation size")
    retention: str = Field(default="1 month", description="Log file retention period")
    log_dir: str = Field(default="logs", description="Directory for log files")
    enable_file_logging: bool = Field(
        default=False, description="Whether to enable file logging"
    )
    enable_console_logging: bool = Field(
        default=True, description="Whether to enable console logging"
    )


class Config(BaseModel):
    """Main configuration object for dep."""

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls(
            repository=RepositoryConfig(
                control_dir=os.getenv("DEP_CONTROL_DIR", ".dep"),
                hash_algorithm=os.getenv("DEP_HASH_ALGORITHM", "sha1"),
            ),
            remote=RemoteConfig(
                host=os.getenv("DEP_HOST", "http://localhost:1337"),
                timeout=int(os.getenv("DEP_REMOTE_TIMEOUT", "30")),
            ),
            logging=LogConfig(
                level=cast(
                    Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                    os.getenv("DEP_LOG_LEVEL", "WARNING"),
                ),
                log_dir=os.getenv("DEP_LOG_DIR", "logs"),
            ),
        )


# Global configuration instance
# This can be imported throughout the codebase
config = Config.from_env()
