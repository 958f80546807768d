# app/services/sources.py
import json, logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import text as sqltext, bindparam
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import String

from app.core.errors import PersistError

log = logging.getLogger(__name__)


class _Repository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _write(self, action: str, stmt, params) -> None:
        try:
            await self.session.execute(stmt, params)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistError(f"{action} failed: {e}") from e

    async def _rows(self, stmt, params) -> List[Dict[str, Any]]:
        return [dict(r) for r in (await self.session.execute(stmt, params)).mappings().all()]

    async def _row(self, stmt, params) -> Optional[Dict[str, Any]]:
        r = (await self.session.execute(stmt, params)).mappings().first()
        return dict(r) if r else None


# ====== CHATBOTS + DOCUMENTS ======
class DocumentRepository(_Repository):

    async def get_chatbot_plan(self, chatbot_id: str) -> Optional[str]:
        """None when the chatbot does not exist."""
        row = await self._row(
            sqltext("select plan from public.chatbots where id = :id"),
            {"id": str(chatbot_id)},
        )
        if row is None:
            return None
        return row["plan"] or "basic"

    async def set_knowledge_base_type(self, chatbot_id: str, kb_type: str) -> None:
        await self._write("set knowledge base type", sqltext("""
            update public.chatbots set knowledge_base_type = :t where id = :id
        """), {"id": str(chatbot_id), "t": kb_type})

    async def create_document(
        self, *, chatbot_id: str, filename: str, original_filename: str,
        file_type: str, file_size: int, storage_path: Optional[str],
    ) -> Dict[str, Any]:
        doc_id = str(uuid4())
        await self._write("create document", sqltext("""
            insert into public.documents
              (id, chatbot_id, filename, original_filename, file_type, file_size,
               storage_path, status, chunk_count)
            values
              (:id, :chat, :fname, :oname, :ftype, :fsize, :path, 'processing', 0)
        """), {
            "id": doc_id, "chat": str(chatbot_id), "fname": filename, "oname": original_filename,
            "ftype": file_type, "fsize": file_size, "path": storage_path,
        })
        return await self.get_document(doc_id)

    async def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        return await self._row(
            sqltext("select * from public.documents where id = :id"),
            {"id": str(document_id)},
        )

    async def list_documents(self, chatbot_id: str) -> List[Dict[str, Any]]:
        return await self._rows(sqltext("""
            select * from public.documents
             where chatbot_id = :chat
             order by created_at desc
        """), {"chat": str(chatbot_id)})

    async def delete_document(self, document_id: str) -> None:
        # fragments go with the row (on delete cascade)
        await self._write("delete document", sqltext(
            "delete from public.documents where id = :id"
        ), {"id": str(document_id)})

    async def mark_ready(self, document_id: str, chunk_count: int) -> None:
        await self._write("mark document ready", sqltext("""
            update public.documents
               set status = 'ready', chunk_count = :n, error_message = null, updated_at = now()
             where id = :id
        """), {"id": str(document_id), "n": chunk_count})

    async def mark_error(self, document_id: str, message: str) -> None:
        await self._write("mark document error", sqltext("""
            update public.documents
               set status = 'error', error_message = :msg, updated_at = now()
             where id = :id
        """), {"id": str(document_id), "msg": (message or "")[:1000]})

    async def usage(self, chatbot_id: str) -> Dict[str, int]:
        row = await self._row(sqltext("""
            select count(*) as document_count, coalesce(sum(file_size), 0) as total_size
              from public.documents
             where chatbot_id = :chat
        """), {"chat": str(chatbot_id)})
        row = row or {}
        return {
            "document_count": int(row.get("document_count") or 0),
            "total_size": int(row.get("total_size") or 0),
        }


# ====== WEBSITES + PAGES ======
UPSERT_PAGE = sqltext("""
    insert into public.website_pages
      (id, website_source_id, chatbot_id, url, title, meta_description,
       content_hash, status, last_crawled_at, error_message)
    values
      (:id, :src, :chat, :url, :title, :descr, :hash, :status, now(), :err)
    on conflict (website_source_id, url) do update
       set title = coalesce(excluded.title, website_pages.title),
           meta_description = coalesce(excluded.meta_description, website_pages.meta_description),
           -- an error row drops its hash so the next refresh re-indexes it
           content_hash = case when excluded.status = 'error' then null
                               else coalesce(excluded.content_hash, website_pages.content_hash) end,
           status = excluded.status,
           last_crawled_at = now(),
           error_message = excluded.error_message,
           updated_at = now()
    returning id
""")


class WebsiteRepository(_Repository):

    async def create_source(
        self, *, chatbot_id: str, url: str, input_type: str, max_pages: int,
    ) -> Dict[str, Any]:
        source_id = str(uuid4())
        stmt = sqltext("""
            insert into public.website_sources
              (id, chatbot_id, url, input_type, crawl_status, crawl_config, page_count)
            values
              (:id, :chat, :url, :itype, 'pending', CAST(:cfg AS jsonb), 0)
        """).bindparams(bindparam("cfg", type_=String))
        await self._write("create website source", stmt, {
            "id": source_id, "chat": str(chatbot_id), "url": url or "",
            "itype": input_type, "cfg": json.dumps({"maxPages": max_pages}),
        })
        return await self.get_source(source_id)

    async def get_source(self, source_id: str) -> Optional[Dict[str, Any]]:
        return await self._row(
            sqltext("select * from public.website_sources where id = :id"),
            {"id": str(source_id)},
        )

    async def get_source_for_chatbot(self, chatbot_id: str) -> Optional[Dict[str, Any]]:
        return await self._row(sqltext("""
            select * from public.website_sources
             where chatbot_id = :chat
             order by created_at desc
             limit 1
        """), {"chat": str(chatbot_id)})

    async def delete_sources(self, *, source_id: Optional[str] = None, chatbot_id: Optional[str] = None) -> None:
        if (source_id is None) == (chatbot_id is None):
            raise ValueError("delete_sources needs exactly one of source_id / chatbot_id")
        if source_id is not None:
            stmt, params = sqltext("delete from public.website_sources where id = :id"), {"id": str(source_id)}
        else:
            stmt, params = sqltext("delete from public.website_sources where chatbot_id = :chat"), {"chat": str(chatbot_id)}
        await self._write("delete website source", stmt, params)

    async def set_crawl_status(self, source_id: str, status: str, error_message: Optional[str] = None) -> None:
        await self._write("set crawl status", sqltext("""
            update public.website_sources
               set crawl_status = :st, error_message = :err, updated_at = now()
             where id = :id
        """), {"id": str(source_id), "st": status, "err": error_message})

    async def finish_crawl(
        self, source_id: str, status: str, *,
        page_count: Optional[int] = None, error_message: Optional[str] = None,
    ) -> None:
        """Final status + last_crawl_at; page_count is kept when not given."""
        await self._write("finish crawl", sqltext("""
            update public.website_sources
               set crawl_status = :st,
                   page_count = coalesce(:n, page_count),
                   error_message = :err,
                   last_crawl_at = now(),
                   updated_at = now()
             where id = :id
        """), {"id": str(source_id), "st": status, "n": page_count, "err": error_message})

    async def list_pages(self, source_id: str) -> List[Dict[str, Any]]:
        return await self._rows(sqltext("""
            select * from public.website_pages
             where website_source_id = :src
             order by created_at asc, url asc
        """), {"src": str(source_id)})

    async def _upsert_page(self, params: Dict[str, Any]) -> str:
        try:
            page_id = (await self.session.execute(UPSERT_PAGE, params)).scalar_one()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistError(f"upsert page failed: {e}") from e
        return str(page_id)

    async def upsert_crawled_page(
        self, *, source_id: str, chatbot_id: str, url: str,
        title: str, description: str, content_hash: str,
    ) -> str:
        return await self._upsert_page({
            "id": str(uuid4()), "src": str(source_id), "chat": str(chatbot_id), "url": url,
            "title": title, "descr": description, "hash": content_hash,
            "status": "crawled", "err": None,
        })

    async def upsert_error_page(self, *, source_id: str, chatbot_id: str, url: str, message: str) -> str:
        return await self._upsert_page({
            "id": str(uuid4()), "src": str(source_id), "chat": str(chatbot_id), "url": url,
            "title": None, "descr": None, "hash": None,
            "status": "error", "err": (message or "")[:1000],
        })

    async def touch_page(self, page_id: str) -> None:
        await self._write("touch page", sqltext("""
            update public.website_pages
               set last_crawled_at = now(), updated_at = now()
             where id = :id
        """), {"id": str(page_id)})

    async def update_page_content(self, page_id: str, *, title: str, description: str, content_hash: str) -> None:
        await self._write("update page", sqltext("""
            update public.website_pages
               set title = :title, meta_description = :descr, content_hash = :hash,
                   status = 'crawled', error_message = null,
                   last_crawled_at = now(), updated_at = now()
             where id = :id
        """), {"id": str(page_id), "title": title, "descr": description, "hash": content_hash})

    async def mark_page_error(self, page_id: str, message: str) -> None:
        await self._write("mark page error", sqltext("""
            update public.website_pages
               set status = 'error', error_message = :msg, updated_at = now()
             where id = :id
        """), {"id": str(page_id), "msg": (message or "")[:1000]})
