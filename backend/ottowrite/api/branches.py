"""Branch, commit and merge endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.branch import (
    BranchCreate,
    BranchResponse,
    BranchSwitchRequest,
    BranchSwitchResponse,
    CommitCreate,
    CommitResponse,
    MergeRecordResponse,
    MergeRequest,
    MergeResponse,
)
from ..services.branch_service import BranchService

router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.get("", response_model=List[BranchResponse])
def list_branches(
    document_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return BranchService(db).list_branches(document_id, auth.user_id)


@router.post("", response_model=BranchResponse, status_code=201)
def create_branch(
    payload: BranchCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Fork the document (or ``from_branch_id``) into a new named branch."""
    return BranchService(db).create_branch(payload, auth.user_id)


@router.post("/switch", response_model=BranchSwitchResponse)
def switch_branch(
    payload: BranchSwitchRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Activate a branch and load its content into the document."""
    branch, new_hash = BranchService(db).switch_branch(payload.document_id, payload.branch_id, auth.user_id)
    return BranchSwitchResponse(branch=BranchResponse.model_validate(branch), hash=new_hash)


@router.post("/commit", response_model=CommitResponse, status_code=201)
def create_commit(
    payload: CommitCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return BranchService(db).create_commit(payload, auth.user_id)


@router.get("/commit", response_model=List[CommitResponse])
def list_commits(
    branch_id: str,
    limit: int = Query(50, ge=1),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Commit history of a branch, newest first (capped at the configured maximum)."""
    return BranchService(db).list_commits(branch_id, auth.user_id, limit=limit)


@router.get("/commit/{commit_id}", response_model=CommitResponse)
def get_commit(
    commit_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return BranchService(db).get_commit(commit_id, auth.user_id)


@router.post("/merge", response_model=MergeResponse)
def merge_branches(
    payload: MergeRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Merge source into target; returns conflicts instead of merging when unresolved."""
    return BranchService(db).merge(payload, auth.user_id)


@router.get("/merge", response_model=List[MergeRecordResponse])
def list_merges(
    document_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return BranchService(db).list_merges(document_id, auth.user_id)


@router.delete("/{branch_id}", status_code=204)
def delete_branch(
    branch_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Delete a branch and its commits. The main branch cannot be deleted."""
    BranchService(db).delete_branch(branch_id, auth.user_id)
