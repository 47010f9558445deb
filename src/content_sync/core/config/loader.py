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

from .models import ContentSyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: ContentSyncConfig | None = None


def get_xdg_config_home() -> Path:
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/content-sync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "content-sync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".content-sync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`; nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"export": {"mode": "tar"}}, {"export": {"files": "base64"}})
        {'export': {'mode': 'tar', 'files': 'base64'}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """Load a JSON object, returning None if the file is missing or invalid."""
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config loading stays resilient; a bad file is ignored.
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _is_true(value: str) -> bool:
    return value.lower() not in ("false", "0", "")


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        CONTENT_SYNC_DIRECTORY - overrides export.directory and import.directory
        CONTENT_SYNC_STATE_DIR - overrides state_dir
        CONTENT_SYNC_REPOSITORY - overrides repository.backend
        CONTENT_SYNC_REPOSITORY_PATH - overrides repository.path
        CONTENT_SYNC_RENAME_POLICY - overrides comparer.rename_policy
        CONTENT_SYNC_EXPORT_MODE - overrides export.mode
        CONTENT_SYNC_FILES - overrides export.files
        CONTENT_SYNC_SITE_UUID_OVERRIDE - overrides import.site_uuid_override
    """
    result = config_dict.copy()

    def section(name: str) -> dict[str, Any]:
        current = result.get(name)
        current = dict(current) if isinstance(current, dict) else {}
        result[name] = current
        return current

    if directory := os.environ.get("CONTENT_SYNC_DIRECTORY"):
        section("export")["directory"] = directory
        section("import")["directory"] = directory

    if state_dir := os.environ.get("CONTENT_SYNC_STATE_DIR"):
        result["state_dir"] = state_dir

    if backend := os.environ.get("CONTENT_SYNC_REPOSITORY"):
        section("repository")["backend"] = backend

    if repository_path := os.environ.get("CONTENT_SYNC_REPOSITORY_PATH"):
        section("repository")["path"] = repository_path

    if policy := os.environ.get("CONTENT_SYNC_RENAME_POLICY"):
        section("comparer")["rename_policy"] = policy

    if mode := os.environ.get("CONTENT_SYNC_EXPORT_MODE"):
        section("export")["mode"] = mode

    if files := os.environ.get("CONTENT_SYNC_FILES"):
        section("export")["files"] = files

    if override := os.environ.get("CONTENT_SYNC_SITE_UUID_OVERRIDE"):
        section("import")["site_uuid_override"] = _is_true(override)

    return result


def get_default_config() -> dict[str, Any]:
    return {
        "export": {"mode": "folder", "files": "none", "include_dependencies": False},
        "import": {"update_entities": True, "site_uuid_override": False},
        "queue": {"backend": "sqlite"},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> ContentSyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (CONTENT_SYNC_*)
        2. Project config (.content-sync.json)
        3. User config (~/.config/content-sync/config.json)
        4. Hardcoded defaults

    Relative paths in the result are left relative; callers resolve them
    against the project directory.

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

    config = ContentSyncConfig(**merged)

    _config_cache = config

    return config


def clear_cache() -> None:
    """Clear the cached configuration."""
    global _config_cache
    _config_cache = None
