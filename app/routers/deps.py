# app/routers/deps.py
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.services.fragments import FragmentStore
from app.services.pipeline import IngestionPipeline
from app.services.sources import DocumentRepository, WebsiteRepository

def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline

def get_document_repo(session: AsyncSession = Depends(get_session)) -> DocumentRepository:
    return DocumentRepository(session)

def get_website_repo(session: AsyncSession = Depends(get_session)) -> WebsiteRepository:
    return WebsiteRepository(session)

def get_fragment_store(session: AsyncSession = Depends(get_session)) -> FragmentStore:
    return FragmentStore(session)
