"""Autosave endpoints: save, resolve a conflict, diff against the server."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.autosave import (
    AutosaveRequest,
    AutosaveResponse,
    ConflictDiffRequest,
    ConflictDiffResponse,
    ConflictResolveRequest,
    ConflictResolveResponse,
)
from ..services.autosave_service import AutosaveService

router = APIRouter(prefix="/api/documents/{doc_id}/autosave", tags=["autosave"])


@router.post(
    "",
    response_model=AutosaveResponse,
    responses={409: {"description": "Base hash is stale; body carries the server content"}},
)
def autosave(
    doc_id: str,
    payload: AutosaveRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Save editor state if ``base_hash`` still matches the stored content."""
    return AutosaveService(db).autosave(doc_id, payload, auth.user_id)


@router.post("/resolve", response_model=ConflictResolveResponse)
def resolve_conflict(
    doc_id: str,
    payload: ConflictResolveRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Keep local, keep server, or keep both, then save against the server hash."""
    return AutosaveService(db).resolve_conflict(doc_id, payload, auth.user_id)


@router.post("/diff", response_model=ConflictDiffResponse)
def diff_against_server(
    doc_id: str,
    payload: ConflictDiffRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Word diff from the stored version to the client's version."""
    return AutosaveService(db).diff_against_server(doc_id, payload.html, auth.user_id)
