"""
Cooperative batch driver.

Stages are plain callables taking the run's :class:`BatchContext`. The
runner calls a stage repeatedly, one item per call, until it reports
``finished >= 1``, then moves on to the next stage. Everything is
single-threaded; an interrupted run leaves its queues behind to be resumed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from content_sync.core.pipeline.models import BatchContext

logger = logging.getLogger(__name__)

StageStep = Callable[[BatchContext], None]
ProgressCallback = Callable[[BatchContext], None]


@dataclass(frozen=True)
class Operation:
    """A named stage of a batch run."""

    name: str
    step: StageStep


class BatchRunner:
    """
    Drives operations to completion.

    Example:
        >>> runner = BatchRunner(progress_callback=lambda ctx: print(ctx.message))
        >>> context = runner.run(pipeline.operations())
    """

    def __init__(self, progress_callback: ProgressCallback | None = None) -> None:
        self.progress_callback = progress_callback

    def run(
        self, operations: Sequence[Operation], context: BatchContext | None = None
    ) -> BatchContext:
        context = context or BatchContext()
        for operation in operations:
            context.begin_stage(operation.name)
            logger.debug("Stage %s started", operation.name)
            while True:
                operation.step(context)
                if self.progress_callback is not None:
                    self.progress_callback(context)
                if context.finished >= 1:
                    break
            logger.debug("Stage %s finished after %d items", operation.name, context.progress)
        return context
