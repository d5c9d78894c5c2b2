"""Document service: creation, listing and ownership checks.

Creating a document also creates its ``main`` branch, so every document
has exactly one main branch from its first moment.
"""

import copy
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import Document
from ..schemas.document import DocumentCreate, DocumentListResponse, DocumentResponse
from ..repositories import BranchRepository, DocumentRepository
from ..exceptions import ForbiddenError
from .content_hash import compute_word_count, generate_content_preview, hash_document_content

logger = logging.getLogger(__name__)

MAIN_BRANCH_NAME = "main"


class DocumentService:
    """Document operations scoped to the calling user."""

    def __init__(self, db: Session):
        self.db = db
        self.doc_repo = DocumentRepository(db)
        self.branch_repo = BranchRepository(db)

    def get_owned_document(self, doc_id: str, user_id: str) -> Document:
        """Load a document, raising 404 if missing and 403 if owned by someone else."""
        document = self.doc_repo.get_by_id(doc_id)
        if document.user_id != user_id:
            logger.warning(
                "Denied access to document owned by another user",
                extra={"document_id": doc_id, "user_id": user_id},
            )
            raise ForbiddenError("You do not have access to this document")
        return document

    def create_document(self, data: DocumentCreate, user_id: str, commit: bool = True) -> Document:
        content = copy.deepcopy(data.content)
        word_count = data.word_count if data.word_count is not None else compute_word_count(content)

        document = self.doc_repo.create(
            user_id=user_id,
            title=data.title,
            doc_type=data.doc_type,
            content=content,
            word_count=word_count,
            project_id=data.project_id,
        )
        self.branch_repo.create(
            document_id=document.id,
            user_id=user_id,
            branch_name=MAIN_BRANCH_NAME,
            content=copy.deepcopy(content),
            word_count=word_count,
            is_main=True,
            is_active=True,
        )

        if commit:
            self.db.commit()
            self.db.refresh(document)

        logger.info(
            "Created document",
            extra={"document_id": document.id, "user_id": user_id, "doc_type": data.doc_type},
        )
        return document

    def list_documents(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[DocumentListResponse]:
        documents = self.doc_repo.list_for_user(user_id, project_id=project_id, skip=skip, limit=limit)
        return [
            DocumentListResponse(
                id=doc.id,
                project_id=doc.project_id,
                title=doc.title,
                doc_type=doc.doc_type,
                word_count=doc.word_count,
                content_preview=generate_content_preview(doc.content),
                updated_at=doc.updated_at,
            )
            for doc in documents
        ]

    def to_response(self, document: Document) -> DocumentResponse:
        return DocumentResponse(
            id=document.id,
            user_id=document.user_id,
            project_id=document.project_id,
            title=document.title,
            doc_type=document.doc_type,
            content=document.content or {},
            word_count=document.word_count,
            version=document.version,
            hash=hash_document_content(document.content),
            created_at=document.created_at,
            updated_at=document.updated_at,
        )
