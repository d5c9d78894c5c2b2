"""Autosave service: the optimistic-concurrency write path for documents.

Protocol:
    1. The client remembers ``base_hash``, the hash of the server content
       its edits started from, and sends it with every save.
    2. The server hashes what is currently stored. A different hash means
       another session wrote in the meantime: the save is refused with a
       409 that carries the server's content, and nothing is written.
    3. Otherwise a snapshot of the payload is stored and the document row
       is written with a conditional UPDATE on the version that was read in
       step 2. A concurrent writer that slipped in between steps 2 and 3
       makes that UPDATE match zero rows, which is reported as the same 409.
    4. The response carries the new hash, which becomes the client's next
       ``base_hash``.

Snapshot-only saves skip the hash check and never touch the document row.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.error_reporter import report_autosave_error
from ..models import Document
from ..repositories import DocumentRepository, SnapshotRepository
from ..schemas.autosave import (
    AutosaveRequest,
    AutosaveResponse,
    ConflictDiffResponse,
    ConflictResolveRequest,
    ConflictResolveResponse,
)
from ..exceptions import AutosaveConflictError, DatabaseError, DocumentNotFoundError
from .content_hash import (
    compute_content_hash,
    content_html,
    count_words,
    extract_anchor_ids,
    hash_document_content,
    normalize_anchor_ids,
    normalize_structure,
)
from .conflict_resolution import ContentState, resolve_autosave_conflict
from .document_service import DocumentService
from .sanitize import detect_xss_patterns, sanitize_html
from .text_diff import compare_html_documents

logger = logging.getLogger(__name__)


class AutosaveService:
    """Autosave, conflict resolution and conflict diff for one request."""

    def __init__(self, db: Session):
        self.db = db
        self.doc_service = DocumentService(db)
        self.doc_repo = DocumentRepository(db)
        self.snapshot_repo = SnapshotRepository(db)

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    def autosave(self, doc_id: str, request: AutosaveRequest, user_id: str) -> AutosaveResponse:
        document = self.doc_service.get_owned_document(doc_id, user_id)

        html = request.html
        if html is not None:
            html = self._sanitize(html, doc_id, user_id)

        existing: Dict[str, Any] = dict(document.content or {})
        existing_html = content_html(existing)
        existing_structure = normalize_structure(existing.get("structure"))
        existing_metadata = existing.get("metadata") or {}
        server_hash = hash_document_content(existing)
        read_version = document.version

        if request.base_hash and request.base_hash != server_hash and not request.snapshot_only:
            logger.info(
                "Autosave conflict: base hash is stale",
                extra={"document_id": doc_id, "user_id": user_id},
            )
            raise self._conflict(document, server_hash)

        if request.base_hash is None and not request.snapshot_only:
            logger.info(
                "Autosave without base hash, writing unconditionally",
                extra={"document_id": doc_id, "user_id": user_id},
            )

        updated_html = html if html is not None else existing_html
        updated_structure = (
            request.structure if request.structure is not None else existing_structure
        )
        updated_metadata = request.metadata if request.metadata is not None else existing_metadata
        anchor_ids = normalize_anchor_ids(request.anchor_ids) or extract_anchor_ids(updated_html)
        word_count = (
            request.word_count if request.word_count is not None else count_words(updated_html)
        )

        # The returned hash must equal what the next save will compute from
        # the stored row, so anchors are read from the html being stored.
        payload_hash = compute_content_hash(
            updated_html, updated_structure, extract_anchor_ids(updated_html)
        )

        try:
            snapshot = self.snapshot_repo.create(
                document_id=doc_id,
                user_id=user_id,
                autosave_hash=payload_hash,
                payload={
                    "html": updated_html,
                    "structure": updated_structure,
                    "metadata": updated_metadata,
                    "anchors": anchor_ids,
                    "word_count": word_count,
                },
            )
            pruned = self.snapshot_repo.prune(doc_id, user_id, settings.snapshot_retention_limit)

            content_changed = (
                payload_hash != server_hash
                or updated_html != existing_html
                or updated_metadata != existing_metadata
            )
            if not request.snapshot_only and content_changed:
                new_content = {
                    **existing,
                    "html": updated_html,
                    "structure": updated_structure,
                    "metadata": updated_metadata,
                }
                written = self.doc_repo.update_content_if_version(
                    doc_id, read_version, new_content, word_count
                )
                if not written:
                    self.db.rollback()
                    fresh = self.doc_repo.get_by_id_optional(doc_id)
                    if fresh is None:
                        raise DocumentNotFoundError(doc_id)
                    logger.info(
                        "Autosave conflict: document changed during save",
                        extra={"document_id": doc_id, "user_id": user_id},
                    )
                    raise self._conflict(fresh, hash_document_content(fresh.content))

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            report_autosave_error(
                e,
                document_id=doc_id,
                failure_type="database",
                client_hash=request.base_hash,
                server_hash=server_hash,
            )
            raise DatabaseError("Failed to save document", original_error=e)

        document = self.doc_repo.get_by_id(doc_id)
        logger.info(
            "Autosave stored",
            extra={
                "document_id": doc_id,
                "snapshot_id": snapshot.id,
                "snapshot_only": request.snapshot_only,
                "snapshots_pruned": pruned,
                "version": document.version,
            },
        )
        return AutosaveResponse(
            status="snapshot" if request.snapshot_only else "saved",
            hash=payload_hash,
            snapshot_id=snapshot.id,
            word_count=word_count,
            updated_at=document.updated_at,
        )

    # ------------------------------------------------------------------
    # Conflict handling
    # ------------------------------------------------------------------

    def resolve_conflict(
        self, doc_id: str, request: ConflictResolveRequest, user_id: str
    ) -> ConflictResolveResponse:
        """Apply the user's choice and save it against ``request.server_hash``.

        The save is still conditional: if the server moved on again since
        the conflict was shown, another 409 is raised.
        """
        document = self.doc_service.get_owned_document(doc_id, user_id)
        server = self._server_state(document)

        local_html = (
            self._sanitize(request.html, doc_id, user_id) if request.html is not None else server.html
        )
        local = ContentState(
            html=local_html,
            structure=request.structure if request.structure is not None else server.structure,
            anchor_ids=normalize_anchor_ids(request.anchor_ids) or extract_anchor_ids(local_html),
        )
        resolved = resolve_autosave_conflict(local, server, request.strategy)

        result = self.autosave(
            doc_id,
            AutosaveRequest(
                html=resolved.html,
                structure=resolved.structure,
                metadata=request.metadata,
                anchor_ids=resolved.anchor_ids,
                base_hash=request.server_hash,
            ),
            user_id,
        )
        logger.info(
            "Autosave conflict resolved",
            extra={"document_id": doc_id, "strategy": request.strategy.value},
        )
        return ConflictResolveResponse(
            status=result.status,
            strategy=request.strategy,
            hash=result.hash,
            snapshot_id=result.snapshot_id,
            html=resolved.html,
            structure=resolved.structure,
            word_count=result.word_count,
        )

    def diff_against_server(self, doc_id: str, local_html: str, user_id: str) -> ConflictDiffResponse:
        """Word diff from the stored html to the client's html ("view diff")."""
        document = self.doc_service.get_owned_document(doc_id, user_id)
        diff, stats = compare_html_documents(content_html(document.content), local_html)
        return ConflictDiffResponse(
            server_hash=hash_document_content(document.content),
            diff=[part.to_dict() for part in diff],
            stats=stats.to_dict(),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _sanitize(html: str, doc_id: str, user_id: str) -> str:
        if detect_xss_patterns(html):
            logger.warning(
                "XSS patterns detected in document content",
                extra={"document_id": doc_id, "user_id": user_id, "content_length": len(html)},
            )
        return sanitize_html(html)

    @staticmethod
    def _server_state(document: Document) -> ContentState:
        html = content_html(document.content)
        return ContentState(
            html=html,
            structure=normalize_structure((document.content or {}).get("structure")),
            anchor_ids=extract_anchor_ids(html),
        )

    @staticmethod
    def _conflict(document: Document, server_hash: str) -> AutosaveConflictError:
        content = document.content or {}
        updated_at: Optional[str] = document.updated_at.isoformat() if document.updated_at else None
        return AutosaveConflictError(
            document.id,
            server_hash,
            {
                "html": content_html(content),
                "structure": normalize_structure(content.get("structure")),
                "word_count": document.word_count,
                "updated_at": updated_at,
            },
        )
