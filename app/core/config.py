# app/core/config.py
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    env: str = "dev"
    log_level: str = "INFO"
    database_url: str
    openai_api_key: str = ""

    # Supabase storage (original uploads, best-effort)
    supabase_project_url: str = ""
    supabase_service_key: str = ""
    docs_bucket: str = "knowledge-base"

    # Embeddings
    embed_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536

    # Chunking
    chunk_size: int = 500
    chunk_overlap: int = 50

    # Crawler
    crawl_delay_ms: int = 1000
    crawl_max_depth: int = 3
    sitemap_max_depth: int = 2
    crawler_user_agent: str = "KBIngest-Bot/1.0 (Website Indexer)"
    fetch_timeout: float = 20.0

    # Retrieval
    search_top_k: int = 5

    # Intent detection after ingestion
    intent_detection_enabled: bool = True
    intent_model: str = "gpt-4o-mini"

    # Looks in the environment first, then .env
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def crawl_delay(self) -> float:
        return self.crawl_delay_ms / 1000.0

settings = Settings()
