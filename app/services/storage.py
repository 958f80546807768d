# app/services/storage.py
import logging, re, time
from typing import Optional

from supabase import Client, create_client

log = logging.getLogger(__name__)

def safe_filename(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name or "file")

def build_storage_path(chatbot_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"documents/{chatbot_id}/{ts}_{safe_filename(filename)}"

def build_supabase_client(project_url: str, service_key: str) -> Optional[Client]:
    if not project_url or not service_key:
        log.warning("[STORAGE] SUPABASE_PROJECT_URL / SUPABASE_SERVICE_KEY missing, uploads disabled")
        return None
    return create_client(project_url, service_key)


class BlobStorage:
    """
    Keeps the original uploads. Best-effort on both ends: the extracted text is
    what the knowledge base needs, so a storage failure never fails an upload.
    """

    def __init__(self, client: Optional[Client], bucket: str = "knowledge-base"):
        self.client = client
        self.bucket = bucket

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def put(self, path: str, data: bytes, content_type: str) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.storage.from_(self.bucket).upload(
                path, data, {"content-type": content_type, "upsert": "false"}
            )
        except Exception as e:
            log.error(f"[STORAGE] upload failed for {path}: {e}")
            return False
        log.info(f"[STORAGE] uploaded {path} ({len(data)} bytes)")
        return True

    def remove(self, path: Optional[str]) -> None:
        if not self.enabled or not path:
            return
        try:
            self.client.storage.from_(self.bucket).remove([path])
        except Exception as e:
            log.error(f"[STORAGE] remove failed for {path}: {e}")
