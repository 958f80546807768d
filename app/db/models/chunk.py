from sqlalchemy import Column, String, Integer, Text, DateTime, func, ForeignKey, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from pgvector.sqlalchemy import Vector
from app.db.base import Base
from app.core.config import settings

class DocumentChunk(Base):
    __tablename__ = "document_chunks"
    id = Column(UUID(as_uuid=True), primary_key=True)
    chatbot_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    document_id = Column(UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), index=True)
    website_page_id = Column(UUID(as_uuid=True), ForeignKey("website_pages.id", ondelete="CASCADE"), index=True)
    source_type = Column(String, nullable=False, default="document")   # 'document' | 'website'

    content = Column(Text, nullable=False)
    embedding = Column(Vector(settings.embedding_dim))
    chunk_index = Column(Integer, nullable=False, default=0)
    token_count = Column(Integer, default=0)

    # denormalized for citation display
    page_url = Column(String)
    page_title = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "(document_id IS NULL) <> (website_page_id IS NULL)",
            name="ck_document_chunks_single_parent",
        ),
    )
