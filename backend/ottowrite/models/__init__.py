"""Database models."""

from .document import Document
from .snapshot import DocumentSnapshot
from .branch import Branch, Commit, BranchMerge

__all__ = [
    "Document", "DocumentSnapshot",
    "Branch", "Commit", "BranchMerge",
]
