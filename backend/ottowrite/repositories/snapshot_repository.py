"""Autosave snapshot repository."""

from typing import List

from ..models import DocumentSnapshot
from ..exceptions import SnapshotNotFoundError
from .base import BaseRepository


class SnapshotRepository(BaseRepository[DocumentSnapshot]):

    model_class = DocumentSnapshot
    not_found_error = SnapshotNotFoundError

    def create(self, document_id: str, user_id: str, autosave_hash: str, payload: dict) -> DocumentSnapshot:
        snapshot = DocumentSnapshot(
            document_id=document_id,
            user_id=user_id,
            autosave_hash=autosave_hash,
            payload=payload,
        )
        self.db.add(snapshot)
        self.db.flush()
        return snapshot

    def get_for_document(self, document_id: str, snapshot_id: str) -> DocumentSnapshot:
        snapshot = (
            self._base_query()
            .filter(DocumentSnapshot.id == snapshot_id, DocumentSnapshot.document_id == document_id)
            .first()
        )
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    def list_for_document(self, document_id: str, limit: int = 50) -> List[DocumentSnapshot]:
        """Newest first."""
        return (
            self._base_query()
            .filter(DocumentSnapshot.document_id == document_id)
            .order_by(DocumentSnapshot.created_at.desc(), DocumentSnapshot.id.desc())
            .limit(limit)
            .all()
        )

    def prune(self, document_id: str, user_id: str, keep: int) -> int:
        """Delete all but the *keep* newest snapshots of a document/user pair."""
        stale_ids = [
            row.id
            for row in self.db.query(DocumentSnapshot.id)
            .filter(
                DocumentSnapshot.document_id == document_id,
                DocumentSnapshot.user_id == user_id,
            )
            .order_by(DocumentSnapshot.created_at.desc(), DocumentSnapshot.id.desc())
            .offset(keep)
            .all()
        ]
        if not stale_ids:
            return 0
        self.db.query(DocumentSnapshot).filter(
            DocumentSnapshot.id.in_(stale_ids)
        ).delete(synchronize_session=False)
        return len(stale_ids)
