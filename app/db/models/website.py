from sqlalchemy import Column, String, Integer, DateTime, func, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.db.base import Base

class WebsiteSource(Base):
    __tablename__ = "website_sources"
    id = Column(UUID(as_uuid=True), primary_key=True)
    chatbot_id = Column(UUID(as_uuid=True), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)

    url = Column(String, default="")
    input_type = Column(String, default="url")          # 'url' | 'sitemap'
    crawl_status = Column(String, default="pending")    # 'pending' | 'crawling' | 'completed' | 'error'
    crawl_config = Column(JSONB, default=dict)
    page_count = Column(Integer, default=0)
    last_crawl_at = Column(DateTime(timezone=True))
    error_message = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class WebsitePage(Base):
    __tablename__ = "website_pages"
    id = Column(UUID(as_uuid=True), primary_key=True)
    website_source_id = Column(UUID(as_uuid=True), ForeignKey("website_sources.id", ondelete="CASCADE"), nullable=False)
    chatbot_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    url = Column(String, nullable=False)
    title = Column(String)
    meta_description = Column(String)
    content_hash = Column(String)
    status = Column(String, default="pending")          # 'pending' | 'crawled' | 'error'
    last_crawled_at = Column(DateTime(timezone=True))
    error_message = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    # re-crawling upserts on this key, it never duplicates a page
    __table_args__ = (UniqueConstraint("website_source_id", "url", name="uq_website_pages_source_url"),)
