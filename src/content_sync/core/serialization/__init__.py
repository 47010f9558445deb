"""
Entity (de)serialization: YAML codec, exporter, importer and decorators.

Example:
    >>> from content_sync.core.serialization import ContentExporter, SerializerContext
    >>> exporter = ContentExporter(repository, default_decorators(repository))
    >>> yaml_text = exporter.export_entity(entity, SerializerContext.for_directory(path))
"""

from content_sync.core.serialization.codec import CodecError, content_hash, decode, encode
from content_sync.core.serialization.context import FilesMode, SerializerContext
from content_sync.core.serialization.decorators import (
    Alias,
    IdsCleaner,
    NormalizerDecorator,
    Parents,
    default_decorators,
)
from content_sync.core.serialization.exporter import ContentExporter
from content_sync.core.serialization.importer import ContentImporter

__all__ = [
    "Alias",
    "CodecError",
    "ContentExporter",
    "ContentImporter",
    "FilesMode",
    "IdsCleaner",
    "NormalizerDecorator",
    "Parents",
    "SerializerContext",
    "content_hash",
    "decode",
    "default_decorators",
    "encode",
]
