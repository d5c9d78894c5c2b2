"""Branch, commit and merge schemas."""

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional

BRANCH_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,100}$")


class MergeStrategy(str, Enum):
    """Per-field choices when merging a source branch into a target branch."""
    SOURCE = "source"
    TARGET = "target"
    BOTH = "both"


class BranchCreate(BaseModel):
    document_id: str
    branch_name: str
    from_branch_id: Optional[str] = None

    @field_validator('branch_name')
    @classmethod
    def validate_branch_name(cls, v: str) -> str:
        if not BRANCH_NAME_PATTERN.match(v):
            raise ValueError(
                "Branch name must be alphanumeric with dashes/underscores, 1-100 characters"
            )
        return v


class BranchResponse(BaseModel):
    id: str
    document_id: str
    branch_name: str
    parent_branch_id: Optional[str] = None
    base_commit_id: Optional[str] = None
    content: Dict[str, Any]
    word_count: int
    is_main: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BranchSwitchRequest(BaseModel):
    document_id: str
    branch_id: str


class BranchSwitchResponse(BaseModel):
    branch: BranchResponse
    hash: str


class CommitCreate(BaseModel):
    branch_id: str
    message: str = Field(..., min_length=1, max_length=500)
    content: Dict[str, Any]
    word_count: Optional[int] = Field(None, ge=0)

    @field_validator('message')
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Commit message cannot be blank")
        return v


class CommitResponse(BaseModel):
    id: str
    branch_id: str
    parent_commit_id: Optional[str] = None
    message: str
    content: Dict[str, Any]
    word_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class MergeRequest(BaseModel):
    """Merge *source* into *target*.

    Conflicts are settled either with a complete ``resolved_content`` or
    with per-field ``resolutions`` (``{"html": "both"}``).
    """
    source_branch_id: str
    target_branch_id: str
    resolved_content: Optional[Dict[str, Any]] = None
    resolutions: Optional[Dict[str, MergeStrategy]] = None

    @model_validator(mode='after')
    def validate_branches(self) -> "MergeRequest":
        if self.resolved_content is not None and self.resolutions:
            raise ValueError("Provide resolved_content or resolutions, not both")
        return self


class MergeResponse(BaseModel):
    success: bool
    has_conflicts: bool
    conflicts: List[Dict[str, Any]] = []
    merge_id: Optional[str] = None
    merge_commit: Optional[CommitResponse] = None
    target_branch: Optional[BranchResponse] = None


class MergeRecordResponse(BaseModel):
    id: str
    source_branch_id: str
    target_branch_id: str
    source_branch_name: Optional[str] = None
    target_branch_name: Optional[str] = None
    source_commit_id: Optional[str] = None
    target_commit_id: Optional[str] = None
    merge_commit_id: Optional[str] = None
    has_conflicts: bool
    conflicts_resolved: bool
    conflict_data: Optional[Dict[str, Any]] = None
    merged_at: datetime
