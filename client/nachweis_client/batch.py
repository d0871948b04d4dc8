from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .api_client import ApiClient
from .cache import QueryCache
from .models import BatchResult, Status
from .records import RECORDS_ENDPOINT, detail_key

logger = logging.getLogger(__name__)


class BatchOperationEngine:
    """Fan an action out over several Nachweise with one request per call.

    Approve, reject and delete report per-ID outcomes and only raise when the
    whole call fails. Export and print are all-or-nothing.
    """

    def __init__(self, api: ApiClient, cache: Optional[QueryCache] = None) -> None:
        self.api = api
        self.cache = cache if cache is not None else QueryCache()

    def _invalidate(self, ids: Iterable[int]) -> None:
        self.cache.invalidate_endpoint(RECORDS_ENDPOINT)
        for record_id in ids:
            self.cache.invalidate(detail_key(record_id))

    async def _batch_status(self, ids: Iterable[int], status: Status, comment: Optional[str]) -> BatchResult:
        requested: List[int] = list(ids)
        if not requested:
            return BatchResult()
        data = await self.api.batch_status(requested, status.value, comment)
        result = BatchResult.from_response(requested, data, "updatedCount")
        self._invalidate(result.succeeded_ids)
        logger.info("Sammelstatus %s: %s", status.value, result.summary())
        return result

    async def batch_approve(self, ids: Iterable[int], comment: Optional[str] = None) -> BatchResult:
        return await self._batch_status(ids, Status.ANGENOMMEN, comment)

    async def batch_reject(self, ids: Iterable[int], comment: Optional[str] = None) -> BatchResult:
        return await self._batch_status(ids, Status.ABGELEHNT, comment)

    async def batch_delete(self, ids: Iterable[int]) -> BatchResult:
        requested: List[int] = list(ids)
        if not requested:
            return BatchResult()
        data = await self.api.batch_delete(requested)
        result = BatchResult.from_response(requested, data, "deletedCount")
        self._invalidate(result.succeeded_ids)
        logger.info("Sammellöschung: %s", result.summary())
        return result

    async def batch_export(self, ids: Iterable[int]) -> bytes:
        return await self.api.batch_export(list(ids))

    async def batch_print(self, ids: Iterable[int]) -> bytes:
        return await self.api.batch_print(list(ids))
