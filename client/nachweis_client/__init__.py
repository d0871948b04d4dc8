"""Client-side core for Ausbildungsnachweise: activity grid, record and batch services, audit view."""

from .api_client import ApiClient, ApiError, ErrorCode
from .audit import AuditNormalizer, AuditService
from .batch import BatchOperationEngine
from .cache import CacheKey, QueryCache
from .grid import ActivityGrid
from .records import RecordService

__all__ = [
    "ActivityGrid",
    "ApiClient",
    "ApiError",
    "AuditNormalizer",
    "AuditService",
    "BatchOperationEngine",
    "CacheKey",
    "ErrorCode",
    "QueryCache",
    "RecordService",
]
