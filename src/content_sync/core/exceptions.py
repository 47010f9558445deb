"""
Base exception for the content sync engine.

Each module defines its own error types on top of this one so callers can
catch a single base class at the pipeline step boundary.
"""


class ContentSyncError(Exception):
    """Base exception for content sync errors."""
