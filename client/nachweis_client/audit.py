"""Reconcile the differently shaped audit payloads into :class:`AuditEntry`.

Each canonical field is read from the first candidate key that carries a
value. New upstream shapes keep rendering: whatever cannot be mapped ends up
JSON-encoded in ``action`` instead of being dropped.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence

from .api_client import ApiClient
from .models import AuditEntry

logger = logging.getLogger(__name__)

TIME_KEYS: Sequence[str] = ("aktionsZeit", "performedAt", "zeit", "timestamp", "createdAt", "time", "date")
ACTOR_KEYS: Sequence[str] = ("benutzerName", "performedBy", "userName", "username", "changedBy", "changedByName", "name")
ACTION_KEYS: Sequence[str] = ("aktion", "action", "details", "message", "role", "rolle", "change")
SUBJECT_KEYS: Sequence[str] = ("nachweisId", "targetUsername", "recordId", "roleId", "roleName", "id")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return repr(value)


def _probe(obj: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept ISO strings, epoch seconds or milliseconds and ``[y, m, d, H, M, S]`` lists."""

    parsed: Optional[datetime] = None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, bool):
            return None
        elif isinstance(value, (int, float)):
            seconds = value / 1000 if abs(value) > 1e11 else value
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        elif isinstance(value, (list, tuple)) and len(value) >= 3 and all(isinstance(part, int) for part in value):
            parsed = datetime(*value[:6])
    except (ValueError, OverflowError, OSError, TypeError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AuditNormalizer:
    """Pure mapping from raw audit payloads to canonical entries; never raises."""

    @staticmethod
    def extract_items(raw: Any) -> List[Any]:
        if isinstance(raw, list):
            return list(raw)
        if not isinstance(raw, dict):
            return []
        for key in ("items", "data"):
            if isinstance(raw.get(key), list):
                return list(raw[key])
        audits = raw.get("audits")
        if isinstance(audits, dict) and isinstance(audits.get("items"), list):
            return list(audits["items"])
        return []

    @staticmethod
    def normalize_entry(obj: Any) -> AuditEntry:
        if not isinstance(obj, dict):
            return AuditEntry(
                id=uuid.uuid4().hex,
                subject_id=None,
                action=obj if isinstance(obj, str) and obj else _dump(obj),
                actor="",
                occurred_at=_utcnow(),
            )

        identifier = obj.get("id")
        occurred_at = parse_timestamp(_probe(obj, TIME_KEYS)) or _utcnow()
        actor = _probe(obj, ACTOR_KEYS)
        action = _probe(obj, ACTION_KEYS)
        subject = _probe(obj, SUBJECT_KEYS)
        if action is None:
            action = _dump(obj)
        elif not isinstance(action, str):
            action = _dump(action)
        return AuditEntry(
            id=str(identifier) if identifier is not None else uuid.uuid4().hex,
            subject_id=str(subject) if subject is not None else None,
            action=action,
            actor=str(actor) if actor is not None else "",
            occurred_at=occurred_at,
        )

    @classmethod
    def normalize(cls, raw: Any) -> List[AuditEntry]:
        return [cls.normalize_entry(item) for item in cls.extract_items(raw)]

    @classmethod
    def recent(cls, raw: Any, limit: int) -> List[AuditEntry]:
        """Most recent ``limit`` entries first; ``raw`` may also be normalized entries."""

        if limit <= 0:
            return []
        if isinstance(raw, list) and all(isinstance(item, AuditEntry) for item in raw):
            entries = list(raw)
        else:
            entries = cls.normalize(raw)
        entries.sort(key=lambda entry: entry.occurred_at, reverse=True)
        return entries[:limit]


class AuditService:
    """Fetches the three audit sources and hands them to the normalizer."""

    def __init__(self, api: ApiClient, normalizer: Optional[AuditNormalizer] = None) -> None:
        self.api = api
        self.normalizer = normalizer or AuditNormalizer()

    async def record_audits(self, page: int = 0, size: int = 50) -> List[AuditEntry]:
        return self.normalizer.normalize(await self.api.record_audits(page, size))

    async def role_audits(self, page: int = 0, size: int = 50) -> List[AuditEntry]:
        return self.normalizer.normalize(await self.api.role_audits(page, size))

    async def audits_for_record(self, record_id: int) -> List[AuditEntry]:
        return self.normalizer.normalize(await self.api.record_audit(record_id))

    async def recent(self, limit: int = 3, sources: Iterable[str] = ("records", "roles")) -> List[AuditEntry]:
        entries: List[AuditEntry] = []
        for source in sources:
            if source == "records":
                entries.extend(await self.record_audits(size=max(limit, 1)))
            elif source == "roles":
                entries.extend(await self.role_audits(size=max(limit, 1)))
            else:
                logger.warning("Unbekannte Audit-Quelle %s ignoriert", source)
        return self.normalizer.recent(entries, limit)
