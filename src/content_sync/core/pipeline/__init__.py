"""
Resumable batch pipelines for import and export.

Example:
    >>> pipeline = ImportPipeline(repository, manager, snapshot, delete_q, sync_q, context)
    >>> pipeline.prepare(plan.content_to_sync, plan.content_to_delete)
    >>> result = pipeline.run()
    >>> result.status
    'completed'
"""

from content_sync.core.pipeline.base import BatchRunner, Operation
from content_sync.core.pipeline.exporter import ExportPipeline
from content_sync.core.pipeline.importer import PROTECTED_USER_IDS, ImportPipeline
from content_sync.core.pipeline.models import (
    STATUS_COMPLETED,
    STATUS_COMPLETED_WITH_ERRORS,
    BatchContext,
    BatchResult,
    ExportMode,
)
from content_sync.core.pipeline.sinks import ArchiveSink, DestinationError, DirectorySink

__all__ = [
    "ArchiveSink",
    "BatchContext",
    "BatchResult",
    "BatchRunner",
    "DestinationError",
    "DirectorySink",
    "ExportMode",
    "ExportPipeline",
    "ImportPipeline",
    "Operation",
    "PROTECTED_USER_IDS",
    "STATUS_COMPLETED",
    "STATUS_COMPLETED_WITH_ERRORS",
]
