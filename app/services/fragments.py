# app/services/fragments.py
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import text as sqltext, bindparam
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import String

from app.core.errors import PersistError
from app.services.embeddings import vec_literal

log = logging.getLogger(__name__)

@dataclass
class Fragment:
    chatbot_id: str
    content: str
    embedding: List[float]
    chunk_index: int
    token_count: int
    source_type: str = "document"          # 'document' | 'website'
    document_id: Optional[str] = None
    page_id: Optional[str] = None
    page_url: Optional[str] = None
    page_title: Optional[str] = None

    def __post_init__(self):
        if (self.document_id is None) == (self.page_id is None):
            raise ValueError("a fragment belongs to exactly one parent (document xor page)")


@dataclass
class SearchHit:
    content: str
    similarity: float
    page_url: Optional[str] = None
    page_title: Optional[str] = None
    source_type: Optional[str] = None


# ====== SQL ======
INSERT_FRAGMENT = sqltext("""
    insert into public.document_chunks
      (id, chatbot_id, document_id, website_page_id, source_type, content,
       embedding, chunk_index, token_count, page_url, page_title)
    values
      (:id, :chat, :doc, :page, :stype, :content,
       CAST(:emb AS text)::vector, :idx, :tokens, :purl, :ptitle)
""").bindparams(bindparam("emb", type_=String))

# tier (a): similarity + citation metadata from the page row
SEARCH_WITH_SOURCE = sqltext("""
    select c.content,
           coalesce(p.url, c.page_url)     as page_url,
           coalesce(p.title, c.page_title) as page_title,
           c.source_type,
           1 - (c.embedding <=> CAST(:qemb AS text)::vector) as similarity
      from public.document_chunks c
      left join public.website_pages p on p.id = c.website_page_id
     where c.chatbot_id = :chat
       and c.embedding is not null
     order by c.embedding <=> CAST(:qemb AS text)::vector asc
     limit :lim
""").bindparams(bindparam("qemb", type_=String))

# tier (b): similarity only
SEARCH_PLAIN = sqltext("""
    select content,
           1 - (embedding <=> CAST(:qemb AS text)::vector) as similarity
      from public.document_chunks
     where chatbot_id = :chat
       and embedding is not null
     order by embedding <=> CAST(:qemb AS text)::vector asc
     limit :lim
""").bindparams(bindparam("qemb", type_=String))

# tier (c): no index at all, most recent fragments
SEARCH_RECENT = sqltext("""
    select content, page_url, page_title, source_type
      from public.document_chunks
     where chatbot_id = :chat
     order by created_at desc
     limit :lim
""")


class FragmentStore:
    """Fragments + vectors in Postgres/pgvector. Writes commit on their own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, action: str, e: Exception) -> None:
        await self.session.rollback()
        raise PersistError(f"{action} failed: {e}") from e

    async def upsert_fragments(self, fragments: Sequence[Fragment]) -> int:
        if not fragments:
            return 0
        rows = [{
            "id": str(uuid4()),
            "chat": str(f.chatbot_id),
            "doc": str(f.document_id) if f.document_id else None,
            "page": str(f.page_id) if f.page_id else None,
            "stype": f.source_type,
            "content": f.content,
            "emb": vec_literal(f.embedding),
            "idx": f.chunk_index,
            "tokens": f.token_count,
            "purl": f.page_url,
            "ptitle": f.page_title,
        } for f in fragments]
        try:
            # one statement, one commit: a parent's fragment set lands whole or not at all
            await self.session.execute(INSERT_FRAGMENT, rows)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._fail("insert fragments", e)
        return len(rows)

    async def delete_fragments(self, *, document_id: Optional[str] = None, page_id: Optional[str] = None) -> None:
        if (document_id is None) == (page_id is None):
            raise ValueError("delete_fragments needs exactly one of document_id / page_id")
        if document_id is not None:
            stmt = sqltext("delete from public.document_chunks where document_id = :pid")
            pid = str(document_id)
        else:
            stmt = sqltext("delete from public.document_chunks where website_page_id = :pid")
            pid = str(page_id)
        try:
            await self.session.execute(stmt, {"pid": pid})
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._fail("delete fragments", e)

    async def delete_by_source_type(self, chatbot_id: str, source_type: str) -> None:
        try:
            await self.session.execute(sqltext("""
                delete from public.document_chunks
                 where chatbot_id = :chat and source_type = :stype
            """), {"chat": str(chatbot_id), "stype": source_type})
            await self.session.commit()
        except SQLAlchemyError as e:
            await self._fail("delete fragments by source type", e)

    async def search(self, chatbot_id: str, query_vector: List[float], top_k: int = 5) -> List[SearchHit]:
        """
        Nearest-neighbour search that degrades instead of failing:
          (a) similarity + page citation, (b) similarity only, (c) recent fragments, similarity 0.
        """
        params = {"chat": str(chatbot_id), "qemb": vec_literal(query_vector), "lim": int(top_k)}

        try:
            rows = (await self.session.execute(SEARCH_WITH_SOURCE, params)).mappings().all()
            return [SearchHit(
                content=r["content"],
                similarity=float(r["similarity"] or 0.0),
                page_url=r.get("page_url"),
                page_title=r.get("page_title"),
                source_type=r.get("source_type"),
            ) for r in rows]
        except SQLAlchemyError as e:
            log.error(f"[SEARCH] vector search with source failed: {e}")
            await self.session.rollback()

        try:
            rows = (await self.session.execute(SEARCH_PLAIN, params)).mappings().all()
            return [SearchHit(content=r["content"], similarity=float(r["similarity"] or 0.0)) for r in rows]
        except SQLAlchemyError as e:
            log.error(f"[SEARCH] plain vector search failed: {e}")
            await self.session.rollback()

        try:
            rows = (await self.session.execute(
                SEARCH_RECENT, {"chat": params["chat"], "lim": params["lim"]}
            )).mappings().all()
        except SQLAlchemyError as e:
            log.error(f"[SEARCH] recent fragments fallback failed: {e}")
            await self.session.rollback()
            return []
        return [SearchHit(
            content=r["content"],
            similarity=0.0,
            page_url=r.get("page_url"),
            page_title=r.get("page_title"),
            source_type=r.get("source_type"),
        ) for r in rows]
