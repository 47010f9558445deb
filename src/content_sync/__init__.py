"""
Content Sync - export, import and reconcile site content as YAML.

Diffs a source and a target content store, orders cross-entity
dependencies and applies the result through a resumable batch pipeline.
"""

__version__ = "0.4.0-dev"

# Re-export core models for convenience
from content_sync.core.config.models import ContentSyncConfig
from content_sync.core.names import EntityName
from content_sync.core.site.models import ContentEntity

__all__ = ["ContentSyncConfig", "ContentEntity", "EntityName", "__version__"]
