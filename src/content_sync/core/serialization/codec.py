"""
YAML encoding of decoded entities plus a canonical content hash.

The hash is computed over canonical JSON rather than the YAML text so that
two stores holding the same mapping compare equal regardless of how each
one encodes it (YAML files on disk, JSON in the snapshot table).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

import yaml

from content_sync.core.exceptions import ContentSyncError

FORMAT = "yaml"


class CodecError(ContentSyncError):
    """Raised when a document cannot be encoded or decoded."""


def encode(data: dict[str, Any]) -> str:
    """Encode a decoded entity as a YAML document."""
    try:
        return yaml.dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    except yaml.YAMLError as e:
        raise CodecError(f"Failed to encode YAML: {e}") from e


def decode(text: str) -> dict[str, Any]:
    """
    Decode a YAML document into a mapping.

    An empty document decodes to an empty mapping.

    Raises:
        CodecError: If the text is not valid YAML or not a mapping
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CodecError(f"Invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CodecError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def content_hash(data: Any) -> str:
    """SHA-256 of *data* serialized as canonical JSON."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
