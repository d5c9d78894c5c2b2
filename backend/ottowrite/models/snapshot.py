"""Autosave snapshot model."""

from sqlalchemy import Column, Index, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from ..database import Base
from ._common import new_id, utcnow


class DocumentSnapshot(Base):
    """One row per accepted autosave request (snapshot-only saves included).

    ``payload`` is ``{html, structure, metadata, anchors, word_count}``;
    ``autosave_hash`` is the content hash of that payload.
    """

    __tablename__ = "document_snapshots"
    __table_args__ = (
        Index("ix_document_snapshots_document_created", "document_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False)

    autosave_hash = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    document = relationship("Document", back_populates="snapshots")
