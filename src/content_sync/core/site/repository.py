"""
Entity repository protocol and registry.

The repository is the site's entity storage: the engine loads live entities
from it on export and writes imported ones back. Implementations register
themselves by name so the configured backend can be selected at runtime.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from content_sync.core.exceptions import ContentSyncError
from content_sync.core.site.models import ContentEntity

DEFAULT_CONTENT_ENTITY_TYPES = (
    "block_content",
    "comment",
    "file",
    "media",
    "menu_link_content",
    "node",
    "paragraph",
    "taxonomy_term",
    "user",
)


class EntityStorageError(ContentSyncError):
    """Raised when an entity cannot be saved or deleted."""


@runtime_checkable
class EntityRepository(Protocol):
    """
    Protocol for site entity storage.

    Repositories are responsible for:
    - Knowing which entity types carry content
    - Loading entities by id or uuid
    - Assigning ids on first save
    - Providing the site's identity (``site.uuid``)
    """

    def content_entity_types(self) -> list[str]:
        """Entity types that hold syncable content."""
        ...

    def is_content_entity_type(self, entity_type: str) -> bool:
        ...

    def load(self, entity_type: str, entity_id: int) -> ContentEntity | None:
        ...

    def load_by_uuid(self, entity_type: str, uuid: str) -> ContentEntity | None:
        ...

    def load_multiple(self, entity_type: str) -> list[ContentEntity]:
        """All entities of *entity_type*, ordered by id."""
        ...

    def save(self, entity: ContentEntity) -> ContentEntity:
        """
        Insert or update *entity*, assigning an id if it has none.

        Raises:
            EntityStorageError: If the entity cannot be stored
        """
        ...

    def delete(self, entity: ContentEntity) -> None:
        """
        Delete *entity*.

        Raises:
            EntityStorageError: If the entity cannot be deleted
        """
        ...

    def get_site_uuid(self) -> str:
        ...


# Repository registry
_repositories: dict[str, Callable[..., EntityRepository]] = {}


def register_repository(
    name: str,
) -> Callable[[Callable[..., EntityRepository]], Callable[..., EntityRepository]]:
    """
    Decorator to register an entity repository implementation.

    Usage:
        @register_repository("memory")
        class MemoryEntityRepository:
            ...
    """

    def decorator(
        repository_class: Callable[..., EntityRepository],
    ) -> Callable[..., EntityRepository]:
        _repositories[name] = repository_class
        return repository_class

    return decorator


def get_repository(name: str, **kwargs: Any) -> EntityRepository:
    """
    Instantiate a registered repository by name.

    Raises:
        ValueError: If no repository is registered under *name*
    """
    repository_class = _repositories.get(name)
    if repository_class is None:
        raise ValueError(
            f"Repository '{name}' not registered. "
            f"Available repositories: {', '.join(sorted(_repositories))}"
        )
    return repository_class(**kwargs)


def list_repositories() -> list[str]:
    return sorted(_repositories)
