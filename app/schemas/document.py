from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict

class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chatbot_id: UUID
    filename: str
    original_filename: str
    file_type: str
    file_size: int = 0
    storage_path: Optional[str] = None
    status: str
    chunk_count: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class DocumentUsage(BaseModel):
    document_count: int
    total_size: int
    max_documents: int
    max_total_size: int
    max_file_size: int

class DocumentList(BaseModel):
    documents: List[DocumentOut]
    usage: DocumentUsage

class DocumentUploadOut(BaseModel):
    document: DocumentOut
    message: str = "Document uploaded. Processing in background..."
