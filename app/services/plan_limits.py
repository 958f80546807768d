# app/services/plan_limits.py
from dataclasses import dataclass
from typing import Optional

from app.services.extractor import SUPPORTED_MEDIA_TYPES

MB = 1024 * 1024

@dataclass(frozen=True)
class PlanLimits:
    label: str
    max_documents: int
    max_total_size: int
    max_file_size: int
    max_website_pages: int


PLAN_LIMITS = {
    "basic":      PlanLimits("Basic",      max_documents=10, max_total_size=20 * MB, max_file_size=5 * MB,  max_website_pages=50),
    "pro":        PlanLimits("Pro",        max_documents=15, max_total_size=30 * MB, max_file_size=10 * MB, max_website_pages=100),
    "enterprise": PlanLimits("Enterprise", max_documents=30, max_total_size=50 * MB, max_file_size=15 * MB, max_website_pages=500),
}

SUPPORTED_FILE_TYPES = SUPPORTED_MEDIA_TYPES

def get_plan_limits(plan: Optional[str]) -> PlanLimits:
    # unknown or missing plans get the smallest tier
    return PLAN_LIMITS.get((plan or "").lower(), PLAN_LIMITS["basic"])

def is_valid_file_type(mime: Optional[str]) -> bool:
    return mime in SUPPORTED_FILE_TYPES


@dataclass
class LimitCheck:
    allowed: bool
    reason: Optional[str] = None


def check_document_upload(limits: PlanLimits, file_size: int, document_count: int, total_size: int) -> LimitCheck:
    if file_size > limits.max_file_size:
        return LimitCheck(False, f"File too large. Max size: {limits.max_file_size // MB}MB")
    if document_count >= limits.max_documents:
        return LimitCheck(False, f"Document limit reached. Max: {limits.max_documents} documents")
    if total_size + file_size > limits.max_total_size:
        return LimitCheck(False, f"Storage limit exceeded. Max: {limits.max_total_size // MB}MB total")
    return LimitCheck(True)
