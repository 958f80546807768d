from typing import Optional
from pydantic import BaseModel

class SearchResult(BaseModel):
    content: str
    similarity: float
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    source_type: Optional[str] = None
