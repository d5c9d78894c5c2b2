"""Document API endpoints.

Endpoints are thin; DocumentService owns creation (with the main branch)
and ownership checks.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.document import DocumentCreate, DocumentResponse, DocumentListResponse
from ..services import DocumentService

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def create_document(
    document: DocumentCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Create a document and its ``main`` branch."""
    service = DocumentService(db)
    doc = service.create_document(document, auth.user_id)
    return service.to_response(doc)


@router.get("", response_model=List[DocumentListResponse])
def list_documents(
    project_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """List the caller's documents, most recently updated first."""
    return DocumentService(db).list_documents(auth.user_id, project_id=project_id, skip=skip, limit=limit)


@router.get("/{doc_id}", response_model=DocumentResponse)
def get_document(
    doc_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Get a document with its current content hash."""
    service = DocumentService(db)
    return service.to_response(service.get_owned_document(doc_id, auth.user_id))
