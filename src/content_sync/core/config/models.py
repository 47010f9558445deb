"""
Configuration data models for content-sync.

These models define the structure of .content-sync.json and
~/.config/content-sync/config.json files, with validation via Pydantic.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from content_sync.core.comparer import RenamePolicy
from content_sync.core.db import DEFAULT_DB_NAME
from content_sync.core.pipeline.models import ExportMode
from content_sync.core.serialization.context import FilesMode
from content_sync.core.site.repository import DEFAULT_CONTENT_ENTITY_TYPES

DEFAULT_DIRECTORY = Path("content/sync")


class RepositoryConfig(BaseModel):
    """Where the live site's entities come from."""

    backend: str = Field(default="jsonl", description="Registered repository name")
    path: Path = Field(
        default=Path(".content-sync/entities.jsonl"),
        description="Entity file for the jsonl backend",
    )
    content_entity_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTENT_ENTITY_TYPES),
        description="Entity types that hold syncable content",
    )


class ComparerConfig(BaseModel):
    """
    Diff behavior.

    Rename detection pairs a create and a delete with identical content, so
    two unrelated entities that serialize the same can be mistaken for one
    renamed entity.
    """

    rename_policy: RenamePolicy = Field(
        default=RenamePolicy.FIRST_MATCH,
        description="How content-identical create/delete pairs become renames",
    )
    include_default_collection: bool = Field(
        default=False,
        description="Plan the top-level collection holding the site.uuid stamp",
    )


class ExportConfig(BaseModel):
    directory: Path = Field(default=DEFAULT_DIRECTORY, description="Sync directory")
    mode: ExportMode = Field(default=ExportMode.FOLDER, description="snapshot, folder or tar")
    files: FilesMode = Field(default=FilesMode.NONE, description="none, base64 or folder")
    include_dependencies: bool = Field(
        default=False, description="Export referenced entities too"
    )
    archive_path: Path | None = Field(
        default=None, description="Archive location in tar mode"
    )


class ImportConfig(BaseModel):
    directory: Path = Field(default=DEFAULT_DIRECTORY, description="Sync directory")
    update_entities: bool = Field(
        default=True, description="Overwrite entities that already exist"
    )
    site_uuid_override: bool = Field(
        default=False,
        description="Import content exported from a different site",
    )


class QueueConfig(BaseModel):
    backend: str = Field(default="sqlite", description="'sqlite' (resumable) or 'memory'")
    lease_seconds: float = Field(default=30.0, gt=0, description="Claim lease length")


class ContentSyncConfig(BaseModel):
    """
    Top-level content-sync configuration.

    Example:
        >>> config = ContentSyncConfig(export=ExportConfig(mode=ExportMode.TAR))
        >>> config.db_path
        PosixPath('.content-sync/content_sync.db')
    """

    model_config = ConfigDict(populate_by_name=True)

    state_dir: Path = Field(
        default=Path(".content-sync"),
        description="Directory holding the snapshot database and queues",
    )
    db_name: str = Field(default=DEFAULT_DB_NAME, description="SQLite file name")
    file_schemes: dict[str, Path] = Field(
        default_factory=lambda: {"public": Path("files/public")},
        description="Stream scheme to local directory",
    )

    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    comparer: ComparerConfig = Field(default_factory=ComparerConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    import_: ImportConfig = Field(default_factory=ImportConfig, alias="import")
    queue: QueueConfig = Field(default_factory=QueueConfig)

    @property
    def db_path(self) -> Path:
        return self.state_dir / self.db_name
