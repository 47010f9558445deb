"""
Batch pipeline data models.

A run is a list of stages. Each stage is called once per tick with the same
:class:`BatchContext`, which replaces the free-form sandbox array of a
cooperative batch API with typed fields.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ExportMode(str, Enum):
    """Where exported documents go."""

    SNAPSHOT = "snapshot"
    """Snapshot table only."""

    FOLDER = "folder"
    """YAML files under ``<directory>/entities``."""

    TAR = "tar"
    """A gzip tar archive."""


STATUS_COMPLETED = "completed"
STATUS_COMPLETED_WITH_ERRORS = "completed with errors"


class BatchContext(BaseModel):
    """
    Per-run state threaded through every stage step.

    The stage fields (``progress``, ``max``, ``finished``, ``initialized``)
    reset when a new stage begins. ``results``, ``errors`` and ``messages``
    accumulate across the whole run.
    """

    stage: str = Field(default="", description="Name of the running stage")
    initialized: bool = Field(default=False, description="Stage has captured its max")
    progress: int = Field(default=0, ge=0, description="Items handled in this stage")
    max: int = Field(default=0, ge=0, description="Items expected in this stage")
    finished: float = Field(default=0.0, ge=0.0, le=1.0, description="Stage completion")
    message: str = Field(default="", description="Last progress message")

    exported: dict[str, str] = Field(
        default_factory=dict, description="Names written during this export run"
    )
    dependencies: dict[str, bool] = Field(
        default_factory=dict,
        description="Names queued as dependencies; True once their own were queued",
    )

    results: list[str] = Field(default_factory=list, description="Processed item names")
    errors: list[str] = Field(default_factory=list, description="Per-item error messages")
    messages: list[str] = Field(default_factory=list, description="Informational skips")

    def begin_stage(self, stage: str) -> None:
        self.stage = stage
        self.initialized = False
        self.progress = 0
        self.max = 0
        self.finished = 0.0
        self.message = ""

    def fraction(self) -> float:
        """``progress / max`` while work remains, else 1."""
        if self.max > 0 and self.progress < self.max:
            return self.progress / self.max
        return 1.0

    def update_finished(self) -> None:
        self.finished = self.fraction()


class BatchResult(BaseModel):
    """Summary of a finished run."""

    status: str = Field(..., description="'completed' or 'completed with errors'")
    results: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    artifact: Path | None = Field(default=None, description="Archive produced by a tar export")

    @classmethod
    def from_context(cls, context: BatchContext, artifact: Path | None = None) -> BatchResult:
        # Each name is reported once even if an item was retried.
        results = list(dict.fromkeys(context.results))
        errors = list(dict.fromkeys(context.errors))
        return cls(
            status=STATUS_COMPLETED_WITH_ERRORS if errors else STATUS_COMPLETED,
            results=results,
            errors=errors,
            messages=list(context.messages),
            artifact=artifact,
        )

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def summary(self) -> str:
        text = f"{len(self.results)} processed, {len(self.errors)} errors"
        if self.messages:
            text += f", {len(self.messages)} skipped"
        return text
