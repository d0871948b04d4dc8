from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

from .api_client import ApiClient, DuplicateNumberError, ValidationError
from .cache import CacheKey, QueryCache
from .models import Activity, Nachweis, RecordPage, Status

logger = logging.getLogger(__name__)

RECORDS_ENDPOINT = "/records"

_PATCH_FIELDS = {
    "number": "number",
    "period_start": "periodStart",
    "period_end": "periodEnd",
    "trainer_id": "trainerId",
    "ausbildungsjahr": "ausbildungsjahr",
    "datum_azubi": "datumAzubi",
    "signatur_azubi": "signaturAzubi",
    "signatur_ausbilder": "signaturAusbilder",
    "status": "status",
    "comment": "comment",
}


def detail_key(record_id: int) -> CacheKey:
    return CacheKey.build(f"{RECORDS_ENDPOINT}/{record_id}")


def _json_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return getattr(value, "value", value)


def _activities_payload(activities: Iterable[Activity]) -> list:
    return [activity.to_payload() for activity in activities]


class RecordService:
    """Single-record operations with an advisory duplicate check and cache upkeep."""

    def __init__(self, api: ApiClient, cache: Optional[QueryCache] = None) -> None:
        self.api = api
        self.cache = cache if cache is not None else QueryCache()

    def _invalidate(self, record_id: Optional[int] = None) -> None:
        self.cache.invalidate_endpoint(RECORDS_ENDPOINT)
        if record_id is not None:
            self.cache.invalidate(detail_key(record_id))

    async def number_exists(self, number: int) -> bool:
        return await self.api.record_exists(number)

    async def next_number(self) -> int:
        return await self.api.next_number()

    async def create_record(
        self,
        *,
        number: Optional[int],
        period_start: Optional[date],
        period_end: Optional[date],
        trainer_id: int,
        activities: Iterable[Activity] = (),
        ausbildungsjahr: Optional[str] = None,
        datum_azubi: Optional[date] = None,
        signatur_azubi: Optional[str] = None,
        signatur_ausbilder: Optional[str] = None,
    ) -> Nachweis:
        if not number or number <= 0:
            raise ValidationError("Nummer muss eine positive Zahl sein")
        if period_start is None or period_end is None:
            raise ValidationError("Start- und Enddatum sind erforderlich")
        if period_end < period_start:
            raise ValidationError("Enddatum liegt vor dem Startdatum")

        # Advisory only; the server's unique constraint decides under races.
        if await self.number_exists(number):
            raise DuplicateNumberError(number)

        payload: Dict[str, Any] = {
            "number": number,
            "periodStart": period_start.isoformat(),
            "periodEnd": period_end.isoformat(),
            "trainerId": trainer_id,
            "activities": _activities_payload(activities),
            "ausbildungsjahr": ausbildungsjahr,
            "datumAzubi": datum_azubi.isoformat() if datum_azubi else None,
            "signaturAzubi": signatur_azubi,
            "signaturAusbilder": signatur_ausbilder,
        }
        record = Nachweis.from_api(await self.api.create_record(payload))
        self._invalidate()
        logger.info("Nachweis %s (Nr. %s) angelegt", record.id, record.number)
        return record

    async def update_record(self, record_id: int, patch: Mapping[str, Any]) -> Nachweis:
        """Send a partial update; ``activities`` replaces the whole set."""

        payload: Dict[str, Any] = {}
        for key, value in patch.items():
            if key == "activities":
                payload["activities"] = _activities_payload(value or [])
            elif key in _PATCH_FIELDS:
                payload[_PATCH_FIELDS[key]] = _json_value(value)
            else:
                raise ValidationError(f"Unbekanntes Feld: {key}")
        record = Nachweis.from_api(await self.api.update_record(record_id, payload))
        self._invalidate(record_id)
        return record

    async def set_status(self, record_id: int, status: Status, comment: Optional[str] = None) -> Nachweis:
        record = Nachweis.from_api(await self.api.set_status(record_id, Status(status).value, comment))
        self._invalidate(record_id)
        return record

    async def delete_record(self, record_id: int) -> None:
        await self.api.delete_record(record_id)
        self._invalidate(record_id)
        logger.info("Nachweis %s gelöscht", record_id)

    async def get_record(self, record_id: int, *, refresh: bool = False) -> Nachweis:
        key = detail_key(record_id)
        cached = None if refresh else self.cache.read(key)
        if cached is not None:
            return cached
        generation = self.cache.generation
        record = Nachweis.from_api(await self.api.get_record(record_id))
        self.cache.write(key, record, generation)
        return record

    async def list_records(
        self,
        *,
        owner_id: Optional[int] = None,
        trainer_id: Optional[int] = None,
        status: Optional[Status] = None,
        page: int = 0,
        size: int = 10,
        sort_by: str = "periodStart",
        sort_dir: str = "asc",
        refresh: bool = False,
    ) -> RecordPage:
        params = {
            "ownerId": owner_id,
            "trainerId": trainer_id,
            "status": _json_value(status) if status is not None else None,
            "page": page,
            "size": size,
            "sortBy": sort_by,
            "sortDir": sort_dir,
        }
        key = CacheKey.build(RECORDS_ENDPOINT, params)
        cached = None if refresh else self.cache.read(key)
        if cached is not None:
            return cached
        generation = self.cache.generation
        result = RecordPage.from_api(await self.api.list_records(params))
        self.cache.write(key, result, generation)
        return result

    async def fetch_document(self, record_id: int) -> bytes:
        return await self.api.fetch_document(record_id)
