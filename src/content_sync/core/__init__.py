"""Core content sync engine: storage, diffing, dependency ordering and batch pipelines."""
