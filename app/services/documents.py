# app/services/documents.py
import logging
from dataclasses import dataclass
from typing import Optional

from app.core.errors import NoExtractableText, PersistError
from app.services.chunker import chunk_text, estimate_tokens
from app.services.embeddings import EmbeddingClient
from app.services.extractor import extract_text
from app.services.fragments import Fragment, FragmentStore
from app.services.intents import IntentHook, run_intent_hook
from app.services.sources import DocumentRepository

log = logging.getLogger(__name__)

@dataclass
class DocumentResult:
    document_id: str
    chunk_count: int
    characters: int


class DocumentProcessor:
    def __init__(
        self,
        repo: DocumentRepository,
        store: FragmentStore,
        embedder: EmbeddingClient,
        intent_hook: Optional[IntentHook] = None,
        chunk_size: int = 500,
        overlap: int = 50,
    ):
        self.repo = repo
        self.store = store
        self.embedder = embedder
        self.intent_hook = intent_hook
        self.chunk_size = chunk_size
        self.overlap = overlap

    async def process(self, document_id: str, chatbot_id: str, data: bytes, media_type: str) -> DocumentResult:
        """
        extract -> chunk -> embed -> store -> ready.
        Any failure marks the document 'error' with the message and is re-raised.
        """
        log.info(f"[INGEST] document={document_id} start ({media_type}, {len(data)} bytes)")
        try:
            text = extract_text(data, media_type)
            if not text or not text.strip():
                raise NoExtractableText()
            log.info(f"[INGEST] document={document_id} extracted {len(text)} characters")

            chunks = chunk_text(text, self.chunk_size, self.overlap)
            if not chunks:
                raise NoExtractableText("No chunks could be created from document")

            fragments = []
            for idx, chunk in enumerate(chunks):
                log.debug(f"[INGEST] embedding chunk {idx + 1}/{len(chunks)}")
                fragments.append(Fragment(
                    chatbot_id=chatbot_id,
                    content=chunk,
                    embedding=await self.embedder.embed(chunk),
                    chunk_index=idx,
                    token_count=estimate_tokens(chunk),
                    source_type="document",
                    document_id=document_id,
                ))

            await self.store.delete_fragments(document_id=document_id)
            await self.store.upsert_fragments(fragments)
            await self.repo.mark_ready(document_id, len(fragments))
        except Exception as e:
            log.error(f"[INGEST] document={document_id} failed: {e}")
            try:
                await self.repo.mark_error(document_id, str(e) or e.__class__.__name__)
            except PersistError as pe:
                log.error(f"[INGEST] document={document_id} could not be marked error: {pe}")
            raise

        log.info(f"[INGEST] document={document_id} ready with {len(fragments)} chunks")
        await run_intent_hook(self.intent_hook, chatbot_id)
        return DocumentResult(document_id=document_id, chunk_count=len(fragments), characters=len(text))
