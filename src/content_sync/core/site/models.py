"""
Live content entity model.

A :class:`ContentEntity` is what an :class:`EntityRepository` loads and
saves. Reference fields are lists of items carrying ``target_type`` and
``target_uuid`` (plus the site-local ``target_id`` once resolved).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from content_sync.core.names import EntityName


class ContentEntity(BaseModel):
    """
    A content entity as stored by the site.

    Example:
        >>> term = ContentEntity(
        ...     entity_type="taxonomy_term",
        ...     bundle="tags",
        ...     uuid="2f1e...",
        ...     label="News",
        ... )
        >>> term.name
        'taxonomy_term.tags.2f1e...'
    """

    model_config = ConfigDict(validate_assignment=True)

    entity_type: str = Field(..., min_length=1, description="Entity type id, e.g. 'node'")
    bundle: str = Field(..., min_length=1, description="Bundle, e.g. 'article'")
    uuid: str = Field(..., min_length=1, description="Site-independent identifier")
    id: int | None = Field(
        default=None,
        description="Site-local id assigned on first save",
    )
    label: str = Field(default="", description="Human-readable label")
    langcode: str = Field(default="en", description="Language of the default translation")
    fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Field values; reference fields are lists of target items",
    )
    translations: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Translated field values keyed by langcode",
    )
    file_uri: str | None = Field(
        default=None,
        description="Stream URI for file entities, e.g. 'public://images/a.png'",
    )
    path_alias: str | None = Field(
        default=None,
        description="URL alias of the entity's canonical page, e.g. '/about-us'",
    )

    @property
    def name(self) -> str:
        return EntityName(self.entity_type, self.bundle, self.uuid).name

    @property
    def collection(self) -> str:
        return f"{self.entity_type}.{self.bundle}"

    def is_new(self) -> bool:
        return self.id is None
