# app/routers/search.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.config import settings
from app.core.errors import EmbeddingServiceError
from app.routers.deps import get_pipeline
from app.schemas.search import SearchResult
from app.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/search", tags=["search"])

TOP_K_MIN, TOP_K_MAX = 1, 20

def _clamp_k(k: Optional[int]) -> int:
    if k is None:
        k = settings.search_top_k
    return max(TOP_K_MIN, min(TOP_K_MAX, int(k)))

@router.get("", response_model=List[SearchResult])
async def search(
    chatbot_id: UUID,
    q: str = Query(..., min_length=1, max_length=2000),
    top_k: Optional[int] = None,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    try:
        hits = await pipeline.search(str(chatbot_id), q, _clamp_k(top_k))
    except EmbeddingServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)[:400])
    return [
        SearchResult(
            content=h.content,
            similarity=h.similarity,
            page_url=h.page_url,
            page_title=h.page_title,
            source_type=h.source_type,
        )
        for h in hits
    ]
