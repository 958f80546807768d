# app/routers/documents.py
import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile, status

from app.core.errors import PersistError
from app.routers.deps import get_document_repo, get_pipeline
from app.schemas.document import DocumentList, DocumentUploadOut
from app.services.extractor import resolve_media_type
from app.services.pipeline import IngestionPipeline
from app.services.plan_limits import check_document_upload, get_plan_limits, is_valid_file_type
from app.services.sources import DocumentRepository
from app.services.storage import build_storage_path, safe_filename

log = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

@router.post("", response_model=DocumentUploadOut)
async def upload_document(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    chatbot_id: UUID = Form(...),
    repo: DocumentRepository = Depends(get_document_repo),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    try:
        media_type = resolve_media_type(file.content_type, file.filename)
        if not is_valid_file_type(media_type):
            raise HTTPException(status_code=400, detail="Unsupported file type. Allowed: PDF, DOCX, TXT, MD")

        plan = await repo.get_chatbot_plan(str(chatbot_id))
        if plan is None:
            raise HTTPException(status_code=404, detail="Chatbot not found")

        data = await file.read()
        usage = await repo.usage(str(chatbot_id))
        check = check_document_upload(
            get_plan_limits(plan), len(data), usage["document_count"], usage["total_size"],
        )
        if not check.allowed:
            raise HTTPException(status_code=400, detail=check.reason)

        original = file.filename or "upload"
        storage_path = build_storage_path(str(chatbot_id), original)
        pipeline.storage.put(storage_path, data, media_type)

        doc = await repo.create_document(
            chatbot_id=str(chatbot_id),
            filename=safe_filename(original),
            original_filename=original,
            file_type=media_type,
            file_size=len(data),
            storage_path=storage_path,
        )
        log.info(f"[INGEST] document={doc['id']} queued for chatbot={chatbot_id}")
        background.add_task(pipeline.run_document_task, str(doc["id"]), str(chatbot_id), data, media_type)
        return {"document": doc, "message": "Document uploaded. Processing in background..."}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("", response_model=DocumentList)
async def list_documents(
    chatbot_id: UUID,
    repo: DocumentRepository = Depends(get_document_repo),
):
    plan = await repo.get_chatbot_plan(str(chatbot_id))
    if plan is None:
        raise HTTPException(status_code=404, detail="Chatbot not found")
    limits = get_plan_limits(plan)
    usage = await repo.usage(str(chatbot_id))
    return {
        "documents": await repo.list_documents(str(chatbot_id)),
        "usage": {
            **usage,
            "max_documents": limits.max_documents,
            "max_total_size": limits.max_total_size,
            "max_file_size": limits.max_file_size,
        },
    }

@router.delete("/{document_id}")
async def delete_document(
    document_id: UUID,
    repo: DocumentRepository = Depends(get_document_repo),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    doc = await repo.get_document(str(document_id))
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    pipeline.storage.remove(doc.get("storage_path"))
    try:
        await repo.delete_document(str(document_id))
    except PersistError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "message": "Document deleted successfully"}
