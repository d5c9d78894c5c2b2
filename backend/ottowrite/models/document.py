"""Document model."""

from sqlalchemy import Column, Index, String, Integer, DateTime, JSON
from sqlalchemy.orm import relationship
from ..database import Base
from ._common import new_id, utcnow


class Document(Base):
    """Main documents table.

    ``content`` holds either prose (``{"html", "structure", "metadata"}``)
    or a script (``{"screenplay": [...]}``). ``structure`` is the chapter
    outline: ``[{id, title, summary, metadata, scenes: [...]}]``.
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_user_id", "user_id"),
        Index("ix_documents_project_id", "project_id"),
        Index("ix_documents_updated_at", "updated_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)

    user_id = Column(String(64), nullable=False)
    project_id = Column(String(64), nullable=True)

    title = Column(String(255), nullable=False)
    doc_type = Column(String(50), nullable=False, default="novel")

    content = Column(JSON, nullable=False, default=dict)
    word_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Optimistic locking: incremented on every content write. Every write
    # is a conditional UPDATE on the version the writer read.
    version = Column(Integer, default=1, nullable=False)

    snapshots = relationship(
        "DocumentSnapshot", back_populates="document", cascade="all, delete-orphan"
    )
    branches = relationship(
        "Branch", back_populates="document", cascade="all, delete-orphan"
    )
