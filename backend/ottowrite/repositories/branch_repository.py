"""Repositories for branches, commits and merge records."""

from typing import List, Optional

from sqlalchemy.orm import aliased

from ..models import Branch, BranchMerge, Commit
from ..exceptions import BranchNotFoundError, CommitNotFoundError
from .base import BaseRepository


class BranchRepository(BaseRepository[Branch]):

    model_class = Branch
    not_found_error = BranchNotFoundError

    def create(
        self,
        document_id: str,
        user_id: str,
        branch_name: str,
        content: dict,
        word_count: int,
        parent_branch_id: Optional[str] = None,
        is_main: bool = False,
        is_active: bool = False,
    ) -> Branch:
        """Insert a branch. Raises ``IntegrityError`` on a duplicate name."""
        branch = Branch(
            document_id=document_id,
            user_id=user_id,
            branch_name=branch_name,
            parent_branch_id=parent_branch_id,
            content=content,
            word_count=word_count,
            is_main=is_main,
            is_active=is_active,
        )
        self.db.add(branch)
        self.db.flush()
        return branch

    def get_for_user(self, branch_id: str, user_id: str) -> Branch:
        """Branch owned by *user_id*. Other users' branches read as missing."""
        branch = (
            self._base_query()
            .filter(Branch.id == branch_id, Branch.user_id == user_id)
            .first()
        )
        if branch is None:
            raise BranchNotFoundError(branch_id)
        return branch

    def list_for_document(self, document_id: str) -> List[Branch]:
        """Oldest first, so ``main`` leads."""
        return (
            self._base_query()
            .filter(Branch.document_id == document_id)
            .order_by(Branch.created_at.asc())
            .all()
        )

    def get_active(self, document_id: str) -> Optional[Branch]:
        return (
            self._base_query()
            .filter(Branch.document_id == document_id, Branch.is_active.is_(True))
            .first()
        )

    def delete(self, branch: Branch) -> None:
        self.db.delete(branch)
        self.db.flush()


class CommitRepository(BaseRepository[Commit]):
    """Commits are insert-only."""

    model_class = Commit
    not_found_error = CommitNotFoundError

    def create(
        self,
        branch_id: str,
        user_id: str,
        message: str,
        content: dict,
        word_count: int,
        parent_commit_id: Optional[str] = None,
    ) -> Commit:
        commit = Commit(
            branch_id=branch_id,
            parent_commit_id=parent_commit_id,
            user_id=user_id,
            message=message,
            content=content,
            word_count=word_count,
        )
        self.db.add(commit)
        self.db.flush()
        return commit

    def list_for_branch(self, branch_id: str, limit: int) -> List[Commit]:
        """Newest first."""
        return (
            self._base_query()
            .filter(Commit.branch_id == branch_id)
            .order_by(Commit.created_at.desc())
            .limit(limit)
            .all()
        )


class MergeRepository(BaseRepository[BranchMerge]):

    model_class = BranchMerge
    not_found_error = BranchNotFoundError

    def create(self, **fields) -> BranchMerge:
        merge = BranchMerge(**fields)
        self.db.add(merge)
        self.db.flush()
        return merge

    def list_for_document(self, document_id: str, user_id: str) -> List[BranchMerge]:
        """Merges between branches of *document_id*, newest first."""
        target = aliased(Branch)
        return (
            self._base_query()
            .join(target, BranchMerge.target_branch_id == target.id)
            .filter(target.document_id == document_id, BranchMerge.user_id == user_id)
            .order_by(BranchMerge.merged_at.desc())
            .all()
        )
