"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import TrunklineConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: TrunklineConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/trunkline/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "trunkline" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .trunkline.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".trunkline.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}})
        {'a': 1, 'b': {'x': 10, 'y': 30}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _is_truthy(value: str) -> bool:
    return value.lower() not in ("false", "0", "no", "")


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        TRUNKLINE_TRUNK - overrides sync.trunk_branch
        TRUNKLINE_FALLBACK_TRUNK - overrides sync.fallback_trunk
        TRUNKLINE_REMOTE - overrides sync.remote
        TRUNKLINE_NO_PUSH - disables sync.push when truthy
        TRUNKLINE_UNDO_MAX_SIZE - overrides undo.max_size
        TRUNKLINE_CLEAN_WORKERS - overrides clean.max_workers

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()
    sync = dict(result.get("sync") or {})
    undo = dict(result.get("undo") or {})
    clean = dict(result.get("clean") or {})

    if trunk := os.environ.get("TRUNKLINE_TRUNK"):
        sync["trunk_branch"] = trunk

    if fallback := os.environ.get("TRUNKLINE_FALLBACK_TRUNK"):
        sync["fallback_trunk"] = fallback

    if remote := os.environ.get("TRUNKLINE_REMOTE"):
        sync["remote"] = remote

    if no_push := os.environ.get("TRUNKLINE_NO_PUSH"):
        sync["push"] = not _is_truthy(no_push)

    if max_size_str := os.environ.get("TRUNKLINE_UNDO_MAX_SIZE"):
        try:
            max_size = int(max_size_str)
            if max_size < 1:
                logger.warning(
                    "TRUNKLINE_UNDO_MAX_SIZE must be >= 1, got %d, ignoring", max_size
                )
            else:
                undo["max_size"] = max_size
        except ValueError:
            logger.warning("Invalid TRUNKLINE_UNDO_MAX_SIZE value '%s', ignoring", max_size_str)

    if workers_str := os.environ.get("TRUNKLINE_CLEAN_WORKERS"):
        try:
            workers = int(workers_str)
            if workers >= 1:
                clean["max_workers"] = workers
            else:
                logger.warning(
                    "TRUNKLINE_CLEAN_WORKERS must be >= 1, got %d, ignoring", workers
                )
        except ValueError:
            logger.warning("Invalid TRUNKLINE_CLEAN_WORKERS value '%s', ignoring", workers_str)

    result["sync"] = sync
    result["undo"] = undo
    result["clean"] = clean
    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "sync": {
            "fallback_trunk": "main",
            "remote": "origin",
            "push": True,
        },
        "undo": {"max_size": 100},
        "clean": {"max_workers": 8, "use_forge": True},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> TrunklineConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TRUNKLINE_*)
        2. Project config (.trunkline.json)
        3. User config (~/.config/trunkline/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .trunkline.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated TrunklineConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = TrunklineConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
