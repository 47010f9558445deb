"""
Serializer context shared by the exporter, importer and pipelines.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class FilesMode(str, Enum):
    """How binary assets of file entities travel with an export."""

    NONE = "none"
    BASE64 = "base64"
    FOLDER = "folder"

    @classmethod
    def from_option(cls, value: str | None) -> FilesMode:
        """
        Parse a ``--files`` option value.

        An empty value means ``folder``; anything unrecognized means ``none``.
        """
        if not value:
            return cls.FOLDER
        try:
            return cls(value.lower())
        except ValueError:
            return cls.NONE


class SerializerContext(BaseModel):
    """
    Paths and options threaded through a run.

    Example:
        >>> ctx = SerializerContext.for_directory(Path("content/sync"))
        >>> ctx.entities_directory
        PosixPath('content/sync/entities')
    """

    content_directory: Path = Field(..., description="Base sync directory")
    entities_directory: Path = Field(..., description="Directory holding entity YAML")
    files_directory: Path | None = Field(
        default=None,
        description="Directory for binary assets when files travel as a folder",
    )
    files_mode: FilesMode = Field(default=FilesMode.NONE)
    file_schemes: dict[str, Path] = Field(
        default_factory=dict,
        description="Stream scheme to local directory, e.g. {'public': 'web/files'}",
    )
    entity_type: str | None = Field(
        default=None,
        description="Force the entity type on import instead of reading the metadata",
    )

    @classmethod
    def for_directory(
        cls,
        directory: Path,
        files_mode: FilesMode = FilesMode.NONE,
        file_schemes: dict[str, Path] | None = None,
    ) -> SerializerContext:
        return cls(
            content_directory=directory,
            entities_directory=directory / "entities",
            files_directory=directory / "files" if files_mode == FilesMode.FOLDER else None,
            files_mode=files_mode,
            file_schemes=file_schemes or {},
        )

    def resolve_file_uri(self, uri: str) -> tuple[str, Path] | None:
        """
        Map ``scheme://path`` to ``(scheme, local path)``.

        Returns None for URIs without a scheme or with an unmapped scheme.
        """
        scheme, sep, target = uri.partition("://")
        if not sep or scheme not in self.file_schemes:
            return None
        return scheme, Path(self.file_schemes[scheme]) / target
