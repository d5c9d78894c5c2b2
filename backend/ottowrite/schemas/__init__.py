"""Pydantic schemas for API validation."""

from .document import (
    DocumentCreate,
    DocumentResponse,
    DocumentListResponse,
)
from .autosave import (
    AutosaveRequest,
    AutosaveResponse,
    ConflictResolveRequest,
    ConflictResolveResponse,
    ConflictDiffRequest,
    ConflictDiffResponse,
)
from .snapshot import (
    SnapshotSummary,
    SnapshotResponse,
    SnapshotComparison,
    SnapshotRestoreRequest,
)
from .branch import (
    BranchCreate,
    BranchResponse,
    BranchSwitchRequest,
    BranchSwitchResponse,
    CommitCreate,
    CommitResponse,
    MergeRequest,
    MergeResponse,
    MergeRecordResponse,
)

__all__ = [
    "DocumentCreate",
    "DocumentResponse",
    "DocumentListResponse",
    "AutosaveRequest",
    "AutosaveResponse",
    "ConflictResolveRequest",
    "ConflictResolveResponse",
    "ConflictDiffRequest",
    "ConflictDiffResponse",
    "SnapshotSummary",
    "SnapshotResponse",
    "SnapshotComparison",
    "SnapshotRestoreRequest",
    "BranchCreate",
    "BranchResponse",
    "BranchSwitchRequest",
    "BranchSwitchResponse",
    "CommitCreate",
    "CommitResponse",
    "MergeRequest",
    "MergeResponse",
    "MergeRecordResponse",
]
