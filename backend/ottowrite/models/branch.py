"""Branch, commit and merge models."""

import copy

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text,
    UniqueConstraint, event, inspect, text,
)
from sqlalchemy.orm import relationship
from ..database import Base
from ..exceptions import ImmutableCommitError
from ._common import new_id, utcnow


class Branch(Base):
    """A named fork of a document's content.

    ``base_commit_id`` is the branch head: the most recent commit made on
    it, and the parent of the next one.
    """

    __tablename__ = "document_branches"
    __table_args__ = (
        UniqueConstraint("document_id", "branch_name", name="uq_branch_name_per_document"),
        # At most one main branch per document.
        Index(
            "uq_main_branch_per_document",
            "document_id",
            unique=True,
            sqlite_where=text("is_main = 1"),
            postgresql_where=text("is_main"),
        ),
        Index("ix_document_branches_document_id", "document_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)

    branch_name = Column(String(100), nullable=False)
    parent_branch_id = Column(
        String(36), ForeignKey("document_branches.id", ondelete="SET NULL"), nullable=True
    )
    base_commit_id = Column(String(36), nullable=True)

    content = Column(JSON, nullable=False, default=dict)
    word_count = Column(Integer, nullable=False, default=0)

    is_main = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    document = relationship("Document", back_populates="branches")
    commits = relationship(
        "Commit",
        back_populates="branch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Commit(Base):
    """Immutable snapshot of a branch's content."""

    __tablename__ = "branch_commits"
    __table_args__ = (
        Index("ix_branch_commits_branch_created", "branch_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    branch_id = Column(String(36), ForeignKey("document_branches.id", ondelete="CASCADE"), nullable=False)
    parent_commit_id = Column(
        String(36), ForeignKey("branch_commits.id", ondelete="SET NULL"), nullable=True
    )
    user_id = Column(String(64), nullable=False)

    message = Column(Text, nullable=False)
    content = Column(JSON, nullable=False)
    word_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    branch = relationship("Branch", back_populates="commits")

    def __init__(self, **kwargs):
        # Detach from the caller's dict so later edits to it never reach the commit.
        if "content" in kwargs:
            kwargs["content"] = copy.deepcopy(kwargs["content"])
        super().__init__(**kwargs)


@event.listens_for(Commit, "before_update")
def _reject_commit_update(mapper, connection, target: Commit) -> None:
    state = inspect(target)
    for attr in mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            raise ImmutableCommitError(target.id)


class BranchMerge(Base):
    """Record of a merge attempt, successful or stopped on conflicts."""

    __tablename__ = "branch_merges"
    __table_args__ = (
        Index("ix_branch_merges_target", "target_branch_id"),
        Index("ix_branch_merges_merged_at", "merged_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    source_branch_id = Column(
        String(36), ForeignKey("document_branches.id", ondelete="CASCADE"), nullable=False
    )
    target_branch_id = Column(
        String(36), ForeignKey("document_branches.id", ondelete="CASCADE"), nullable=False
    )
    source_commit_id = Column(String(36), ForeignKey("branch_commits.id", ondelete="SET NULL"))
    target_commit_id = Column(String(36), ForeignKey("branch_commits.id", ondelete="SET NULL"))
    merge_commit_id = Column(String(36), ForeignKey("branch_commits.id", ondelete="SET NULL"))
    user_id = Column(String(64), nullable=False)

    has_conflicts = Column(Boolean, nullable=False, default=False)
    conflicts_resolved = Column(Boolean, nullable=False, default=False)
    conflict_data = Column(JSON, nullable=True)

    merged_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    source_branch = relationship("Branch", foreign_keys=[source_branch_id])
    target_branch = relationship("Branch", foreign_keys=[target_branch_id])
