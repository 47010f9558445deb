"""
Configuration models and loading.

Pydantic models for content-sync configuration with multi-layer merging:
defaults < user < project < env vars.
"""

from .env import load_layered_env
from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    load_config,
)
from .models import (
    ComparerConfig,
    ContentSyncConfig,
    ExportConfig,
    ImportConfig,
    QueueConfig,
    RepositoryConfig,
)

__all__ = [
    # Models
    "ComparerConfig",
    "ContentSyncConfig",
    "ExportConfig",
    "ImportConfig",
    "QueueConfig",
    "RepositoryConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "load_config",
    "load_layered_env",
]
