"""Autosave snapshot schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class SnapshotSummary(BaseModel):
    id: str
    document_id: str
    autosave_hash: str
    word_count: int = 0
    created_at: datetime


class SnapshotResponse(BaseModel):
    id: str
    document_id: str
    user_id: str
    autosave_hash: str
    payload: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True


class SnapshotComparison(BaseModel):
    from_snapshot_id: str
    to_snapshot_id: str
    is_identical: bool
    has_content_changes: bool
    has_structure_changes: bool
    word_count_delta: int
    scene_count_delta: int
    time_delta_seconds: float
    stats: Dict[str, Any]


class SnapshotRestoreRequest(BaseModel):
    base_hash: str
    metadata: Optional[Dict[str, Any]] = None
