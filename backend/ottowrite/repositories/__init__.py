"""Data access repositories."""

from .base import BaseRepository
from .document_repository import DocumentRepository
from .snapshot_repository import SnapshotRepository
from .branch_repository import BranchRepository, CommitRepository, MergeRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "SnapshotRepository",
    "BranchRepository",
    "CommitRepository",
    "MergeRepository",
]
