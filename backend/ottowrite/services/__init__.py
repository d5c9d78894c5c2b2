"""Business logic services."""

from .document_service import DocumentService
from .autosave_service import AutosaveService
from .snapshot_service import SnapshotService
from .branch_service import BranchService

__all__ = ["DocumentService", "AutosaveService", "SnapshotService", "BranchService"]
