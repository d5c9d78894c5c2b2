"""Snapshot service: browsing, comparing and restoring autosave snapshots."""

import json
import logging
from typing import List

from sqlalchemy.orm import Session

from ..models import DocumentSnapshot
from ..repositories import SnapshotRepository
from ..schemas.autosave import AutosaveRequest, AutosaveResponse
from ..schemas.snapshot import SnapshotComparison, SnapshotRestoreRequest, SnapshotSummary
from .autosave_service import AutosaveService
from .content_hash import count_scenes
from .document_service import DocumentService
from .text_diff import compare_html_documents

logger = logging.getLogger(__name__)

MAX_SNAPSHOT_PAGE = 100


class SnapshotService:

    def __init__(self, db: Session):
        self.db = db
        self.doc_service = DocumentService(db)
        self.snapshot_repo = SnapshotRepository(db)

    def list_snapshots(self, doc_id: str, user_id: str, limit: int = 50) -> List[SnapshotSummary]:
        self.doc_service.get_owned_document(doc_id, user_id)
        snapshots = self.snapshot_repo.list_for_document(doc_id, limit=min(limit, MAX_SNAPSHOT_PAGE))
        return [
            SnapshotSummary(
                id=s.id,
                document_id=s.document_id,
                autosave_hash=s.autosave_hash,
                word_count=(s.payload or {}).get("word_count") or 0,
                created_at=s.created_at,
            )
            for s in snapshots
        ]

    def get_snapshot(self, doc_id: str, snapshot_id: str, user_id: str) -> DocumentSnapshot:
        self.doc_service.get_owned_document(doc_id, user_id)
        return self.snapshot_repo.get_for_document(doc_id, snapshot_id)

    def compare_snapshots(
        self, doc_id: str, from_id: str, to_id: str, user_id: str
    ) -> SnapshotComparison:
        """Describe what changed from snapshot *from_id* to snapshot *to_id*."""
        self.doc_service.get_owned_document(doc_id, user_id)
        older = self.snapshot_repo.get_for_document(doc_id, from_id)
        newer = self.snapshot_repo.get_for_document(doc_id, to_id)
        old_payload = older.payload or {}
        new_payload = newer.payload or {}

        _, stats = compare_html_documents(old_payload.get("html") or "", new_payload.get("html") or "")

        old_structure = old_payload.get("structure") or []
        new_structure = new_payload.get("structure") or []

        return SnapshotComparison(
            from_snapshot_id=older.id,
            to_snapshot_id=newer.id,
            is_identical=older.autosave_hash == newer.autosave_hash,
            has_content_changes=stats.total_changes > 0,
            has_structure_changes=_canonical(old_structure) != _canonical(new_structure),
            word_count_delta=(new_payload.get("word_count") or 0) - (old_payload.get("word_count") or 0),
            scene_count_delta=count_scenes(new_structure) - count_scenes(old_structure),
            time_delta_seconds=(newer.created_at - older.created_at).total_seconds(),
            stats=stats.to_dict(),
        )

    def restore_snapshot(
        self, doc_id: str, snapshot_id: str, request: SnapshotRestoreRequest, user_id: str
    ) -> AutosaveResponse:
        """Write a snapshot's content back through the conditional autosave path."""
        snapshot = self.get_snapshot(doc_id, snapshot_id, user_id)
        payload = snapshot.payload or {}
        result = AutosaveService(self.db).autosave(
            doc_id,
            AutosaveRequest(
                html=payload.get("html") or "",
                structure=payload.get("structure") or [],
                metadata=request.metadata if request.metadata is not None else payload.get("metadata"),
                anchor_ids=payload.get("anchors"),
                word_count=payload.get("word_count"),
                base_hash=request.base_hash,
            ),
            user_id,
        )
        logger.info(
            "Restored snapshot",
            extra={"document_id": doc_id, "snapshot_id": snapshot_id, "new_snapshot_id": result.snapshot_id},
        )
        return result


def _canonical(value) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))
