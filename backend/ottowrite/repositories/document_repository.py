"""Document repository for database operations."""

from typing import List, Optional

from ..models import Document
from ..models._common import utcnow
from ..exceptions import DocumentNotFoundError
from .base import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Repository for document CRUD and the compare-and-swap content write."""

    model_class = Document
    not_found_error = DocumentNotFoundError

    def create(
        self,
        user_id: str,
        title: str,
        doc_type: str,
        content: dict,
        word_count: int,
        project_id: Optional[str] = None,
    ) -> Document:
        db_document = Document(
            user_id=user_id,
            project_id=project_id,
            title=title,
            doc_type=doc_type,
            content=content,
            word_count=word_count,
            version=1,
        )
        self.db.add(db_document)
        self.db.flush()
        self.db.refresh(db_document)
        return db_document

    def list_for_user(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        """Documents owned by *user_id*, most recently updated first."""
        query = self._base_query().filter(Document.user_id == user_id)
        if project_id:
            query = query.filter(Document.project_id == project_id)
        return (
            query.order_by(Document.updated_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def update_content_if_version(
        self,
        doc_id: str,
        expected_version: int,
        content: dict,
        word_count: int,
    ) -> bool:
        """Write *content* only if the row still has *expected_version*.

        The version check and the write are one ``UPDATE ... WHERE id = :id
        AND version = :expected`` statement. Returns False when zero rows
        matched: another writer committed first (or the row is gone) and
        nothing was written.
        """
        # Pending ORM changes must reach the database before the bulk UPDATE
        # and the expire below.
        self.db.flush()

        rowcount = (
            self.db.query(Document)
            .filter(Document.id == doc_id, Document.version == expected_version)
            .update(
                {
                    Document.content: content,
                    Document.word_count: word_count,
                    Document.version: Document.version + 1,
                    Document.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.expire_all()
        return rowcount == 1
