# app/routers/website.py
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from app.core.errors import PersistError
from app.routers.deps import get_document_repo, get_fragment_store, get_pipeline, get_website_repo
from app.schemas.website import WebsiteIndexIn, WebsiteRefreshIn, WebsiteStartOut, WebsiteStatusOut
from app.services.fragments import FragmentStore
from app.services.pipeline import IngestionPipeline
from app.services.plan_limits import get_plan_limits
from app.services.sources import DocumentRepository, WebsiteRepository

log = logging.getLogger(__name__)

router = APIRouter(prefix="/website", tags=["website"])

@router.post("", response_model=WebsiteStartOut)
async def start_indexing(
    body: WebsiteIndexIn,
    background: BackgroundTasks,
    repo: WebsiteRepository = Depends(get_website_repo),
    docs: DocumentRepository = Depends(get_document_repo),
    store: FragmentStore = Depends(get_fragment_store),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    chatbot_id = str(body.chatbot_id)
    url = (body.url or "").strip()
    if not url and not (body.sitemap_content or "").strip():
        raise HTTPException(status_code=400, detail="Either url or sitemap_content is required")
    if url and not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="url must start with http:// or https://")
    try:
        plan = await docs.get_chatbot_plan(chatbot_id)
        if plan is None:
            raise HTTPException(status_code=404, detail="Chatbot not found")
        max_pages = get_plan_limits(plan).max_website_pages

        # one website source per chatbot: start from a clean slate
        await repo.delete_sources(chatbot_id=chatbot_id)
        await store.delete_by_source_type(chatbot_id, "website")

        source = await repo.create_source(
            chatbot_id=chatbot_id,
            url=url,
            input_type=body.input_type,
            max_pages=max_pages,
        )
        await docs.set_knowledge_base_type(chatbot_id, "website")

        background.add_task(
            pipeline.run_website_task,
            str(source["id"]),
            chatbot_id,
            url=url or None,
            input_mode=body.input_type,
            sitemap_content=body.sitemap_content,
            max_pages=max_pages,
        )
        log.info(f"[CRAWL] source={source['id']} queued for chatbot={chatbot_id} (max {max_pages} pages)")
        return {"source": source, "message": f"Started indexing (up to {max_pages} pages)"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("", response_model=WebsiteStatusOut)
async def website_status(
    chatbot_id: UUID,
    repo: WebsiteRepository = Depends(get_website_repo),
    docs: DocumentRepository = Depends(get_document_repo),
):
    source = await repo.get_source_for_chatbot(str(chatbot_id))
    if not source:
        return {"source": None, "pages": [], "usage": {"page_count": 0, "max_pages": 0}}

    pages = await repo.list_pages(str(source["id"]))
    plan = await docs.get_chatbot_plan(str(chatbot_id))
    return {
        "source": source,
        "pages": pages,
        "usage": {"page_count": len(pages), "max_pages": get_plan_limits(plan).max_website_pages},
    }

@router.delete("")
async def delete_website(
    id: Optional[UUID] = None,
    chatbot_id: Optional[UUID] = None,
    repo: WebsiteRepository = Depends(get_website_repo),
    docs: DocumentRepository = Depends(get_document_repo),
    store: FragmentStore = Depends(get_fragment_store),
):
    if id is None and chatbot_id is None:
        raise HTTPException(status_code=400, detail="Either id or chatbot_id is required")
    try:
        if id is not None:
            await repo.delete_sources(source_id=str(id))
        else:
            await repo.delete_sources(chatbot_id=str(chatbot_id))
        if chatbot_id is not None:
            await store.delete_by_source_type(str(chatbot_id), "website")
            await docs.set_knowledge_base_type(str(chatbot_id), "documents")
    except PersistError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "message": "Website source deleted successfully"}

@router.post("/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh_website(
    body: WebsiteRefreshIn,
    background: BackgroundTasks,
    repo: WebsiteRepository = Depends(get_website_repo),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    source = await repo.get_source(str(body.website_source_id))
    if not source:
        raise HTTPException(status_code=404, detail="Website source not found")
    if source["crawl_status"] == "crawling":
        raise HTTPException(status_code=409, detail="A crawl is already in progress")

    background.add_task(pipeline.run_refresh_task, str(body.website_source_id))
    return {"ok": True, "message": "Refresh started"}
