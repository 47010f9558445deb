"""Environment file loading.

``CONTENT_SYNC_*`` overrides may live in .env files as well as in the shell:
- OS environment (highest precedence)
- Project environment files (.env, .env.local)
- User environment file (~/.config/content-sync/.env)

Variables already present in the process environment are never replaced,
and only keys starting with ``CONTENT_SYNC_`` are loaded.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

ENV_PREFIX = "CONTENT_SYNC_"


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    out: dict[str, str] = {}
    for key, value in dotenv_values(path).items():
        if key is None or value is None or not key.startswith(ENV_PREFIX):
            continue
        out[key] = value
    return out


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> list[str]:
    """
    Load ``CONTENT_SYNC_*`` variables from user and project .env files.

    Project files override values that came from the user file, but never
    values that were set before this call.

    Returns:
        Keys that were set by this call
    """
    if project_dir is None:
        project_dir = Path.cwd()

    if user_env_paths is None:
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        user_env_paths = [xdg_home / "content-sync" / ".env"]

    if project_env_paths is None:
        project_env_paths = [project_dir / ".env", project_dir / ".env.local"]

    loaded: dict[str, None] = {}
    for path in user_env_paths:
        for key, value in _read_env(Path(path)).items():
            if key not in os.environ:
                os.environ[key] = value
                loaded[key] = None

    for path in project_env_paths:
        for key, value in _read_env(Path(path)).items():
            if key not in os.environ or key in loaded:
                os.environ[key] = value
                loaded[key] = None

    return list(loaded)
