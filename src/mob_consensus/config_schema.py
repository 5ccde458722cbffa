"""Configuration schema for mob-consensus.

Defines all configuration options with types, defaults, and validation.
Uses Pydantic for schema enforcement and clear error messages.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


class MergeConfig(BaseModel):
    """Tools and behavior for the merge flow."""

    conflict_tool: str = Field(
        default="vimdiff",
        description="Tool passed to `git mergetool -t` when a merge conflicts",
    )
    review_tool: str = Field(
        default="vimdiff",
        description="Tool passed to `git difftool -t` before committing (empty = skip review)",
    )
    edit_message: bool = Field(
        default=True,
        description="Open the commit message in the editor before committing",
    )

    @field_validator("conflict_tool")
    @classmethod
    def validate_conflict_tool(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("conflict_tool cannot be empty")
        return v

    @field_validator("review_tool")
    @classmethod
    def strip_review_tool(cls, v: str) -> str:
        return v.strip()


class OnboardingConfig(BaseModel):
    """Defaults for init/start/join."""

    default_twig: str = Field(
        default="feature-x",
        description="Twig offered at the interactive twig prompt",
    )
    default_branches: List[str] = Field(
        default_factory=lambda: ["main", "master"],
        description="Branch names never inferred as a twig",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    dir: str = Field(
        default="",
        description="Log directory (empty = ~/.mob-consensus/logs)",
    )
    max_bytes: int = Field(
        default=5242880,  # 5MB
        ge=0,
        description="Maximum log file size in bytes",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        description="Number of backup log files to keep",
    )
    disable_file: bool = Field(
        default=False,
        description="Disable file logging",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("dir")
    @classmethod
    def validate_log_dir(cls, v: str) -> str:
        """Warn if log directory path is a file (directories are created on use)."""
        if v:
            path = Path(v).expanduser()
            if path.exists() and not path.is_dir():
                warnings.warn(
                    f"Log path is not a directory: {v}",
                    UserWarning,
                )
        return v


class MobConsensusConfig(BaseModel):
    """Root configuration model."""

    version: int = Field(
        default=1,
        ge=1,
        description="Config schema version",
    )

    merge: MergeConfig = Field(default_factory=MergeConfig)
    onboarding: OnboardingConfig = Field(default_factory=OnboardingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "MobConsensusConfig":
        """Create config with all defaults."""
        return cls()
