"""Configuration loading and merging for mob-consensus.

Handles TOML loading, config discovery, deep merging, and environment overlay.
"""

from __future__ import annotations

import os
import sys
import threading
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

# TOML loading: tomllib (3.11+) with tomli on 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import ValidationError

from .config_schema import MobConsensusConfig


# Config file names
CONFIG_FILENAME = "config.toml"

# Directory names
USER_CONFIG_DIR = ".mob-consensus"
PROJECT_CONFIG_DIR = ".mob-consensus"

# Environment variable -> (section path, key)
ENV_MAPPING: Dict[str, tuple[list[str], str]] = {
    # Merge
    "MOB_CONSENSUS_CONFLICT_TOOL": (["merge"], "conflict_tool"),
    "MOB_CONSENSUS_REVIEW_TOOL": (["merge"], "review_tool"),
    "MOB_CONSENSUS_EDIT_MESSAGE": (["merge"], "edit_message"),
    # Onboarding
    "MOB_CONSENSUS_DEFAULT_TWIG": (["onboarding"], "default_twig"),
    # Logging
    "MOB_CONSENSUS_LOG_LEVEL": (["logging"], "level"),
    "MOB_CONSENSUS_LOG_DIR": (["logging"], "dir"),
    "MOB_CONSENSUS_LOG_MAX_BYTES": (["logging"], "max_bytes"),
    "MOB_CONSENSUS_LOG_BACKUP_COUNT": (["logging"], "backup_count"),
    "MOB_CONSENSUS_LOG_DISABLE_FILE": (["logging"], "disable_file"),
}


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


def _get_user_config_dir() -> Path:
    """Get user-level config directory (~/.mob-consensus/)."""
    return Path.home() / USER_CONFIG_DIR


def _get_project_config_dir(project_path: Optional[Path] = None) -> Optional[Path]:
    """Get project-level config directory (.mob-consensus/).

    Searches upward from project_path to find .mob-consensus/ directory.
    The user-level directory is skipped so it is never read twice.
    """
    if project_path is None:
        project_path = Path.cwd()

    if not project_path.is_absolute():
        project_path = project_path.resolve()

    user_dir = _get_user_config_dir()
    current = project_path
    while current != current.parent:
        config_dir = current / PROJECT_CONFIG_DIR
        if config_dir.is_dir() and config_dir != user_dir:
            return config_dir
        current = current.parent

    return None


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file.

    Raises:
        ConfigError: If file cannot be loaded or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    Lists are replaced, not merged.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overlay(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config dict."""
    result = _deep_merge({}, config_dict)

    for env_var, (section_path, key_name) in ENV_MAPPING.items():
        value = os.getenv(env_var)
        if value is None:
            continue

        current = result
        for section in section_path:
            current = current.setdefault(section, {})

        # Type conversion happens during Pydantic validation
        current[key_name] = value

    return result


def load_config(
    project_path: Optional[Path] = None,
    skip_env: bool = False,
) -> MobConsensusConfig:
    """Load and merge mob-consensus configuration.

    Discovery order (later sources override earlier):
    1. Built-in defaults
    2. User config (~/.mob-consensus/config.toml)
    3. Project config (.mob-consensus/config.toml)
    4. Environment variables (unless skip_env=True)

    Raises:
        ConfigError: If the project config or the merged result is invalid
    """
    config_dict: Dict[str, Any] = {}

    # 1. User config
    user_config_path = _get_user_config_dir() / CONFIG_FILENAME
    if user_config_path.exists():
        try:
            config_dict = _deep_merge(config_dict, _load_toml(user_config_path))
        except ConfigError as e:
            # User config is optional, warn but continue
            warnings.warn(
                f"Skipping invalid user config at {user_config_path}: {e}",
                UserWarning,
            )

    # 2. Project config
    project_config_dir = _get_project_config_dir(project_path)
    if project_config_dir:
        project_config_path = project_config_dir / CONFIG_FILENAME
        if project_config_path.exists():
            try:
                config_dict = _deep_merge(config_dict, _load_toml(project_config_path))
            except ConfigError as e:
                raise ConfigError(f"Invalid project config: {e}")

    # 3. Environment overlay
    if not skip_env:
        config_dict = _apply_env_overlay(config_dict)

    # 4. Validate and create config object
    try:
        return MobConsensusConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed:\n{e}")


# Global cached config (thread-safe)
_cached_config: Optional[MobConsensusConfig] = None
_cached_project_path: Optional[Path] = None
_config_lock = threading.Lock()


def get_config(project_path: Optional[Path] = None, force_reload: bool = False) -> MobConsensusConfig:
    """Get cached config, loading if necessary."""
    global _cached_config, _cached_project_path

    normalized_path = project_path.resolve() if project_path and str(project_path) else None

    with _config_lock:
        if (
            force_reload
            or _cached_config is None
            or _cached_project_path != normalized_path
        ):
            _cached_config = load_config(project_path)
            _cached_project_path = normalized_path

        return _cached_config


def clear_config_cache() -> None:
    """Clear cached config (thread-safe)."""
    global _cached_config, _cached_project_path
    with _config_lock:
        _cached_config = None
        _cached_project_path = None
