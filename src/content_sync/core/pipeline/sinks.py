"""
Export destinations.

The folder sink writes the sync directory layout directly; the archive sink
packs the same layout into a gzip tar::

    entities/site.uuid.yml
    entities/node/article/node.article.5b6c....yml
    files/public/images/a.png
"""

from __future__ import annotations

import io
import logging
import tarfile
import time
from pathlib import Path

from content_sync.core.exceptions import ContentSyncError
from content_sync.core.storage.file import atomic_write

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "content.tar.gz"


class DestinationError(ContentSyncError):
    """The export destination cannot be created or written."""


class DirectorySink:
    """Writes export output below a base directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def open(self) -> None:
        try:
            (self.directory / "entities").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationError(f"Cannot create {self.directory}: {e}") from e

    def add_string(self, relative_path: str, text: str) -> None:
        target = self.directory / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(target, text)

    def add_file(self, source: Path, relative_path: str) -> None:
        target = self.directory / relative_path
        if target.resolve() == Path(source).resolve():
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(Path(source).read_bytes())

    def close(self) -> Path:
        return self.directory


class ArchiveSink:
    """Accumulates export output in a gzip tar at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._tar: tarfile.TarFile | None = None

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._tar = tarfile.open(self.path, "w:gz")
        except (OSError, tarfile.TarError) as e:
            raise DestinationError(f"Cannot create archive {self.path}: {e}") from e

    @property
    def tar(self) -> tarfile.TarFile:
        if self._tar is None:
            self.open()
        if self._tar is None:
            raise DestinationError(f"Archive {self.path} is not open")
        return self._tar

    def add_string(self, relative_path: str, text: str) -> None:
        payload = text.encode("utf-8")
        info = tarfile.TarInfo(relative_path)
        info.size = len(payload)
        info.mtime = int(time.time())
        info.mode = 0o644
        self.tar.addfile(info, io.BytesIO(payload))

    def add_file(self, source: Path, relative_path: str) -> None:
        self.tar.add(str(source), arcname=relative_path)

    def close(self) -> Path:
        if self._tar is not None:
            self._tar.close()
            self._tar = None
            logger.debug("Closed archive %s", self.path)
        return self.path
