"""Autosave protocol schemas."""

from enum import Enum
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, List, Optional


class ConflictStrategy(str, Enum):
    """Choices offered when an autosave hits a newer server version."""
    KEEP_LOCAL = "keep_local"
    KEEP_SERVER = "keep_server"
    KEEP_BOTH = "keep_both"


class AutosaveRequest(BaseModel):
    """One autosave attempt.

    ``base_hash`` is the hash of the server content this edit started from.
    Missing ``html`` / ``structure`` keep the stored values.
    """
    html: Optional[str] = None
    structure: Optional[List[Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    anchor_ids: Optional[List[Any]] = None
    word_count: Optional[int] = Field(None, ge=0)
    base_hash: Optional[str] = None
    snapshot_only: bool = False

    @field_validator('base_hash')
    @classmethod
    def empty_hash_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class AutosaveResponse(BaseModel):
    status: str  # "saved" | "snapshot"
    hash: str
    snapshot_id: str
    word_count: int
    updated_at: Optional[datetime] = None


class ConflictResolveRequest(BaseModel):
    """The user's choice after a 409, plus their unsaved local state."""
    strategy: ConflictStrategy
    server_hash: str
    html: Optional[str] = None
    structure: Optional[List[Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    anchor_ids: Optional[List[Any]] = None


class ConflictResolveResponse(BaseModel):
    status: str
    strategy: ConflictStrategy
    hash: str
    snapshot_id: str
    html: str
    structure: List[Any]
    word_count: int


class ConflictDiffRequest(BaseModel):
    html: str = ""


class ConflictDiffResponse(BaseModel):
    """Word diff from the server version to the local version."""
    server_hash: str
    diff: List[Dict[str, Any]]
    stats: Dict[str, Any]
