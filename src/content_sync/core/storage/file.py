"""
YAML file storage.

One document per name at ``<directory>/<collection path>/<name>.yml`` where
the collection ``node.article`` maps to the directory ``node/article``. The
default collection is the top-level directory itself (it holds the
``site.uuid`` stamp).

Example:
    >>> storage = FileStorage(Path("content/sync/entities"))
    >>> articles = storage.create_collection("node.article")
    >>> articles.list_all()
    ['node.article.0c1d...', 'node.article.5b6c...']
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from content_sync.core.names import DEFAULT_COLLECTION, DELIMITER
from content_sync.core.serialization import codec
from content_sync.core.storage.base import StorageError

logger = logging.getLogger(__name__)


class FileStorage:
    """Content storage backed by a directory tree of YAML files."""

    extension = ".yml"

    def __init__(self, directory: Path | str, collection: str = DEFAULT_COLLECTION) -> None:
        self.directory = Path(directory)
        self.collection = collection

    def get_collection_path(self) -> Path:
        if not self.collection:
            return self.directory
        return self.directory.joinpath(*self.collection.split(DELIMITER))

    def get_file_path(self, name: str) -> Path:
        return self.get_collection_path() / f"{name}{self.extension}"

    def exists(self, name: str) -> bool:
        return self.get_file_path(name).is_file()

    def read(self, name: str) -> dict[str, Any] | None:
        """
        Read and decode *name*.

        Raises:
            StorageError: If the file exists but cannot be read or decoded
        """
        path = self.get_file_path(name)
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e
        try:
            return codec.decode(text)
        except codec.CodecError as e:
            raise StorageError(f"Failed to decode {path}: {e}") from e

    def read_multiple(self, names: list[str]) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = {}
        for name in names:
            data = self.read(name)
            if data is not None:
                result[name] = data
        return result

    def write(self, name: str, data: dict[str, Any]) -> bool:
        """
        Write *name* atomically (temporary file plus rename).

        Raises:
            StorageError: If the directory or file cannot be written
        """
        return self.write_text(name, codec.encode(data))

    def write_text(self, name: str, text: str) -> bool:
        """Write an already-encoded document for *name*."""
        target = self.get_file_path(name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, text)
        except OSError as e:
            raise StorageError(f"Failed to write {target}: {e}") from e
        return True

    def delete(self, name: str) -> bool:
        path = self.get_file_path(name)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
        return True

    def list_all(self, prefix: str = "") -> list[str]:
        directory = self.get_collection_path()
        if not directory.is_dir():
            return []
        try:
            names = [
                path.name[: -len(self.extension)]
                for path in directory.iterdir()
                if path.is_file() and path.name.endswith(self.extension)
            ]
        except OSError as e:
            logger.warning("Failed to list %s: %s", directory, e)
            return []
        return sorted(name for name in names if name.startswith(prefix))

    def create_collection(self, collection: str) -> FileStorage:
        return FileStorage(self.directory, collection)

    def get_all_collection_names(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        collections: set[str] = set()
        try:
            for path in self.directory.rglob(f"*{self.extension}"):
                relative = path.parent.relative_to(self.directory)
                if relative.parts:
                    collections.add(DELIMITER.join(relative.parts))
        except OSError as e:
            logger.warning("Failed to scan %s for collections: %s", self.directory, e)
            return []
        return sorted(collections)


def atomic_write(target: Path, text: str) -> None:
    """Write *text* to *target* via a temporary file in the same directory."""
    fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=".cs_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
