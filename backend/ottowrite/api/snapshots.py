"""Autosave snapshot endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.autosave import AutosaveResponse
from ..schemas.snapshot import SnapshotComparison, SnapshotResponse, SnapshotRestoreRequest, SnapshotSummary
from ..services.snapshot_service import SnapshotService

router = APIRouter(prefix="/api/documents/{doc_id}/snapshots", tags=["snapshots"])


@router.get("", response_model=List[SnapshotSummary])
def list_snapshots(
    doc_id: str,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Snapshots of a document, newest first."""
    return SnapshotService(db).list_snapshots(doc_id, auth.user_id, limit=limit)


@router.get("/compare", response_model=SnapshotComparison)
def compare_snapshots(
    doc_id: str,
    from_id: str = Query(..., alias="from"),
    to_id: str = Query(..., alias="to"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return SnapshotService(db).compare_snapshots(doc_id, from_id, to_id, auth.user_id)


@router.get("/{snapshot_id}", response_model=SnapshotResponse)
def get_snapshot(
    doc_id: str,
    snapshot_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return SnapshotService(db).get_snapshot(doc_id, snapshot_id, auth.user_id)


@router.post("/{snapshot_id}/restore", response_model=AutosaveResponse)
def restore_snapshot(
    doc_id: str,
    snapshot_id: str,
    payload: SnapshotRestoreRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Write a snapshot back to the document (conditional on ``base_hash``)."""
    return SnapshotService(db).restore_snapshot(doc_id, snapshot_id, payload, auth.user_id)
