from datetime import datetime
from typing import Any, List, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field

class WebsiteIndexIn(BaseModel):
    chatbot_id: UUID
    url: Optional[str] = Field(default=None, max_length=2048)
    sitemap_content: Optional[str] = Field(default=None, max_length=5_000_000)
    input_type: Literal["url", "sitemap"] = "url"

class WebsiteRefreshIn(BaseModel):
    website_source_id: UUID

class WebsiteSourceOut(BaseModel):
    id: UUID
    chatbot_id: UUID
    url: str = ""
    input_type: str = "url"
    crawl_status: str
    crawl_config: Any = None
    page_count: int = 0
    last_crawl_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None

class WebsitePageOut(BaseModel):
    id: UUID
    url: str
    title: Optional[str] = None
    status: str
    last_crawled_at: Optional[datetime] = None
    error_message: Optional[str] = None

class WebsiteUsage(BaseModel):
    page_count: int
    max_pages: int

class WebsiteStatusOut(BaseModel):
    source: Optional[WebsiteSourceOut] = None
    pages: List[WebsitePageOut] = Field(default_factory=list)
    usage: WebsiteUsage

class WebsiteStartOut(BaseModel):
    source: WebsiteSourceOut
    message: str
