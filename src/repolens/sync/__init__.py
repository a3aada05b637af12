"""Commit history synchronization."""

from repolens.sync.commits import CommitSyncEngine

__all__ = ["CommitSyncEngine"]
