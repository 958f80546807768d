# app/core/errors.py
from typing import Optional


class IngestionError(Exception):
    """Base class for every failure raised by the ingestion pipeline."""


class UnsupportedFormat(IngestionError):
    def __init__(self, media_type: str):
        self.media_type = media_type
        super().__init__(f"Unsupported file type: {media_type}")


class NoExtractableText(IngestionError):
    def __init__(self, message: str = "No text could be extracted from document"):
        super().__init__(message)


class EmbeddingServiceError(IngestionError):
    pass


class FetchError(IngestionError):
    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        if status is not None:
            message = f"Failed to fetch {url}: {status}"
        else:
            message = f"Failed to fetch {url}: {reason or 'network error'}"
        super().__init__(message)


class PersistError(IngestionError):
    pass


class SourceNotFound(IngestionError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Website source not found: {source_id}")
