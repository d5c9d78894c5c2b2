"""Branch service: Git-like branches, commits and merges over document content.

Content is an opaque JSON blob here. A branch holds a full copy of the
document content; a commit freezes a copy of it; a merge compares the
source copy with the target field by field (the live document when the
target is active) and never merges text on its own. Conflicting
fields must be settled by the caller (whole ``resolved_content`` or a
per-field choice of source, target or both).

The document row is the working copy of the *active* branch. Switching
branches stashes the working copy into the active branch and loads the
target branch's content into the document, using the same conditional
version write as autosave so an in-flight save is never overwritten.
"""

import copy
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import Branch, Commit, Document
from ..repositories import BranchRepository, CommitRepository, DocumentRepository, MergeRepository
from ..schemas.branch import (
    BranchCreate,
    BranchResponse,
    CommitCreate,
    CommitResponse,
    MergeRecordResponse,
    MergeRequest,
    MergeResponse,
)
from ..exceptions import (
    BranchAlreadyExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    ConflictError,
    ValidationError,
)
from .conflict_resolution import apply_merge_resolutions, detect_merge_conflicts
from .content_hash import compute_word_count, hash_document_content
from .document_service import DocumentService

logger = logging.getLogger(__name__)


class BranchService:
    """Branch, commit and merge operations for one user."""

    def __init__(self, db: Session):
        self.db = db
        self.doc_service = DocumentService(db)
        self.doc_repo = DocumentRepository(db)
        self.branch_repo = BranchRepository(db)
        self.commit_repo = CommitRepository(db)
        self.merge_repo = MergeRepository(db)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def list_branches(self, document_id: str, user_id: str) -> List[Branch]:
        self.doc_service.get_owned_document(document_id, user_id)
        return self.branch_repo.list_for_document(document_id)

    def create_branch(self, data: BranchCreate, user_id: str) -> Branch:
        """Fork the document content, or another branch's content when ``from_branch_id`` is set."""
        document = self.doc_service.get_owned_document(data.document_id, user_id)

        content = document.content or {}
        word_count = document.word_count
        parent_branch_id: Optional[str] = None

        if data.from_branch_id:
            source = self._branch_of_document(data.from_branch_id, data.document_id, user_id)
            content = source.content or {}
            word_count = source.word_count
            parent_branch_id = source.id

        try:
            branch = self.branch_repo.create(
                document_id=data.document_id,
                user_id=user_id,
                branch_name=data.branch_name,
                content=copy.deepcopy(content),
                word_count=word_count,
                parent_branch_id=parent_branch_id,
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise BranchAlreadyExistsError(data.document_id, data.branch_name)

        logger.info(
            "Created branch",
            extra={
                "document_id": data.document_id,
                "branch_id": branch.id,
                "branch_name": data.branch_name,
                "parent_branch_id": parent_branch_id,
            },
        )
        return branch

    def delete_branch(self, branch_id: str, user_id: str) -> None:
        """Delete a non-main branch with its commits.

        Deleting the active branch discards its working copy: main becomes
        active and its content is loaded back into the document.
        """
        branch = self.branch_repo.get_for_user(branch_id, user_id)
        if branch.is_main:
            raise ValidationError("Cannot delete the main branch", field="branch_id")

        document_id = branch.document_id
        was_active = branch.is_active
        read_version = self.doc_repo.get_by_id(document_id).version if was_active else None
        self.branch_repo.delete(branch)

        if was_active:
            main = (
                self.db.query(Branch)
                .filter(Branch.document_id == document_id, Branch.is_main.is_(True))
                .first()
            )
            if main is not None:
                main.is_active = True
                self._load_into_document(
                    document_id, read_version, main.content or {}, main.word_count, action="branch delete"
                )

        self.db.commit()
        logger.info("Deleted branch", extra={"branch_id": branch_id, "document_id": document_id})

    def switch_branch(self, document_id: str, branch_id: str, user_id: str) -> tuple[Branch, str]:
        """Make *branch_id* the active branch and load it into the document.

        Returns the branch and the document's new content hash, which the
        editor adopts as its base hash.
        """
        document = self.doc_service.get_owned_document(document_id, user_id)
        target = self._branch_of_document(branch_id, document_id, user_id)

        if target.is_active:
            return target, hash_document_content(document.content)

        read_version = document.version
        current = self.branch_repo.get_active(document_id)
        if current is not None:
            current.content = copy.deepcopy(document.content or {})
            current.word_count = document.word_count
            current.is_active = False

        target.is_active = True
        loaded = copy.deepcopy(target.content or {})

        if not self.doc_repo.update_content_if_version(
            document_id, read_version, loaded, target.word_count
        ):
            self.db.rollback()
            raise ConflictError(document_id, "Document changed while switching branches; retry")

        self.db.commit()
        logger.info(
            "Switched branch",
            extra={
                "document_id": document_id,
                "from_branch_id": current.id if current is not None else None,
                "to_branch_id": branch_id,
            },
        )
        target = self.branch_repo.get_by_id(branch_id)
        return target, hash_document_content(loaded)

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def create_commit(self, data: CommitCreate, user_id: str) -> Commit:
        """Freeze *content* on a branch; the new commit becomes the branch head."""
        branch = self.branch_repo.get_for_user(data.branch_id, user_id)
        word_count = data.word_count if data.word_count is not None else compute_word_count(data.content)

        commit = self.commit_repo.create(
            branch_id=branch.id,
            user_id=user_id,
            message=data.message,
            content=data.content,
            word_count=word_count,
            parent_commit_id=branch.base_commit_id,
        )
        branch.content = copy.deepcopy(data.content)
        branch.word_count = word_count
        branch.base_commit_id = commit.id
        self.db.commit()

        logger.info(
            "Created commit",
            extra={"branch_id": branch.id, "commit_id": commit.id, "word_count": word_count},
        )
        return commit

    def list_commits(self, branch_id: str, user_id: str, limit: int = 50) -> List[Commit]:
        self.branch_repo.get_for_user(branch_id, user_id)
        limit = max(1, min(limit, settings.commit_history_max))
        return self.commit_repo.list_for_branch(branch_id, limit)

    def get_commit(self, commit_id: str, user_id: str) -> Commit:
        commit = self.commit_repo.get_by_id(commit_id)
        try:
            self.branch_repo.get_for_user(commit.branch_id, user_id)
        except BranchNotFoundError:
            raise CommitNotFoundError(commit_id)
        return commit

    # ------------------------------------------------------------------
    # Merges
    # ------------------------------------------------------------------

    def merge(self, data: MergeRequest, user_id: str) -> MergeResponse:
        """Merge the source branch into the target branch.

        Without conflicts the target takes the source content. With
        conflicts and no resolution, an unresolved merge is recorded and the
        conflicts are returned; nothing else changes.
        """
        if data.source_branch_id == data.target_branch_id:
            raise ValidationError("Cannot merge a branch into itself", field="target_branch_id")

        source = self.branch_repo.get_for_user(data.source_branch_id, user_id)
        target = self.branch_repo.get_for_user(data.target_branch_id, user_id)
        if source.document_id != target.document_id:
            raise ValidationError("Branches must belong to the same document", field="target_branch_id")

        source_content = source.content or {}
        # The document row is the live working copy of the active branch;
        # its stored branch copy lags behind autosaves.
        target_version: Optional[int] = None
        if target.is_active:
            document: Document = self.doc_repo.get_by_id(target.document_id)
            target_version = document.version
            target_content = copy.deepcopy(document.content or {})
        else:
            target_content = target.content or {}
        conflicts = detect_merge_conflicts(source_content, target_content)
        source_head = source.base_commit_id
        target_head = target.base_commit_id

        final_content: Optional[dict] = None
        if data.resolved_content is not None:
            final_content = copy.deepcopy(data.resolved_content)
        elif data.resolutions:
            unresolved = [c["field"] for c in conflicts if c["field"] not in data.resolutions]
            if not unresolved:
                final_content = apply_merge_resolutions(source_content, target_content, data.resolutions)
        elif not conflicts:
            final_content = copy.deepcopy(source_content)

        if final_content is None:
            record = self.merge_repo.create(
                source_branch_id=source.id,
                target_branch_id=target.id,
                source_commit_id=source_head,
                target_commit_id=target_head,
                user_id=user_id,
                has_conflicts=True,
                conflicts_resolved=False,
                conflict_data={"conflicts": conflicts},
            )
            self.db.commit()
            logger.info(
                "Merge stopped on conflicts",
                extra={
                    "merge_id": record.id,
                    "conflict_fields": [c["field"] for c in conflicts],
                },
            )
            return MergeResponse(
                success=False,
                has_conflicts=True,
                conflicts=conflicts,
                merge_id=record.id,
                target_branch=BranchResponse.model_validate(target),
            )

        resolved = data.resolved_content is not None or bool(data.resolutions)
        word_count = compute_word_count(final_content) if resolved else source.word_count

        merge_commit = self.commit_repo.create(
            branch_id=target.id,
            user_id=user_id,
            message=f"Merge {source.branch_name} into {target.branch_name}",
            content=final_content,
            word_count=word_count,
            parent_commit_id=target_head,
        )
        target.content = copy.deepcopy(final_content)
        target.word_count = word_count
        target.base_commit_id = merge_commit.id

        if target_version is not None:
            self._load_into_document(target.document_id, target_version, final_content, word_count)

        record = self.merge_repo.create(
            source_branch_id=source.id,
            target_branch_id=target.id,
            source_commit_id=source_head,
            target_commit_id=target_head,
            merge_commit_id=merge_commit.id,
            user_id=user_id,
            has_conflicts=bool(conflicts),
            conflicts_resolved=bool(conflicts),
            conflict_data={"conflicts": conflicts} if conflicts else None,
        )
        self.db.commit()

        logger.info(
            "Merged branch",
            extra={
                "merge_id": record.id,
                "source_branch_id": source.id,
                "target_branch_id": target.id,
                "merge_commit_id": merge_commit.id,
                "had_conflicts": bool(conflicts),
            },
        )
        return MergeResponse(
            success=True,
            has_conflicts=bool(conflicts),
            conflicts=conflicts,
            merge_id=record.id,
            merge_commit=CommitResponse.model_validate(merge_commit),
            target_branch=BranchResponse.model_validate(self.branch_repo.get_by_id(target.id)),
        )

    def list_merges(self, document_id: str, user_id: str) -> List[MergeRecordResponse]:
        self.doc_service.get_owned_document(document_id, user_id)
        return [
            MergeRecordResponse(
                id=m.id,
                source_branch_id=m.source_branch_id,
                target_branch_id=m.target_branch_id,
                source_branch_name=m.source_branch.branch_name if m.source_branch else None,
                target_branch_name=m.target_branch.branch_name if m.target_branch else None,
                source_commit_id=m.source_commit_id,
                target_commit_id=m.target_commit_id,
                merge_commit_id=m.merge_commit_id,
                has_conflicts=m.has_conflicts,
                conflicts_resolved=m.conflicts_resolved,
                conflict_data=m.conflict_data,
                merged_at=m.merged_at,
            )
            for m in self.merge_repo.list_for_document(document_id, user_id)
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _branch_of_document(self, branch_id: str, document_id: str, user_id: str) -> Branch:
        branch = self.branch_repo.get_for_user(branch_id, user_id)
        if branch.document_id != document_id:
            raise BranchNotFoundError(branch_id)
        return branch

    def _load_into_document(
        self, document_id: str, read_version: int, content: dict, word_count: int, action: str = "merge"
    ) -> None:
        if not self.doc_repo.update_content_if_version(
            document_id, read_version, copy.deepcopy(content), word_count
        ):
            self.db.rollback()
            raise ConflictError(document_id, f"Document changed during {action}; retry")
