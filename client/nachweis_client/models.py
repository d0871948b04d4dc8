"""Datenmodelle des Nachweis-Clients."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


class Weekday(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class Status(str, Enum):
    IN_BEARBEITUNG = "IN_BEARBEITUNG"
    ANGENOMMEN = "ANGENOMMEN"
    ABGELEHNT = "ABGELEHNT"


def parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


@dataclass(slots=True)
class Activity:
    """Ein belegter Slot eines Wochentags."""

    day: Weekday
    slot: int
    section: str
    description: str
    hours: Decimal

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Activity":
        return cls(
            day=Weekday(data["day"]),
            slot=int(data["slot"]),
            section=data.get("section", ""),
            description=data.get("description", ""),
            hours=to_decimal(data.get("hours", 0)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "day": self.day.value,
            "slot": self.slot,
            "section": self.section,
            "description": self.description,
            "hours": float(self.hours),
        }


@dataclass(slots=True)
class Nachweis:
    """Ein wöchentlicher Ausbildungsnachweis."""

    id: int
    owner_id: int
    trainer_id: int
    number: int
    period_start: Optional[date]
    period_end: Optional[date]
    status: Status = Status.IN_BEARBEITUNG
    comment: Optional[str] = None
    activities: List[Activity] = field(default_factory=list)
    ausbildungsjahr: Optional[str] = None
    datum_azubi: Optional[date] = None
    signatur_azubi: Optional[str] = None
    signatur_ausbilder: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "Nachweis":
        return cls(
            id=int(data["id"]),
            owner_id=int(data.get("ownerId", 0)),
            trainer_id=int(data.get("trainerId", 0)),
            number=int(data.get("number", 0)),
            period_start=parse_date(data.get("periodStart")),
            period_end=parse_date(data.get("periodEnd")),
            status=Status(data.get("status", Status.IN_BEARBEITUNG.value)),
            comment=data.get("comment"),
            activities=[Activity.from_api(item) for item in data.get("activities") or []],
            ausbildungsjahr=data.get("ausbildungsjahr"),
            datum_azubi=parse_date(data.get("datumAzubi")),
            signatur_azubi=data.get("signaturAzubi"),
            signatur_ausbilder=data.get("signaturAusbilder"),
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
        )


@dataclass(slots=True)
class RecordPage:
    content: List[Nachweis]
    total_pages: int
    total_elements: int = 0
    page: int = 0
    size: int = 0

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "RecordPage":
        content = [Nachweis.from_api(item) for item in data.get("content") or []]
        return cls(
            content=content,
            total_pages=int(data.get("totalPages", 0)),
            total_elements=int(data.get("totalElements", len(content))),
            page=int(data.get("page", 0)),
            size=int(data.get("size", len(content))),
        )


@dataclass(slots=True)
class AuditEntry:
    """Einheitliche Darstellung eines Audit-Eintrags."""

    id: str
    subject_id: Optional[str]
    action: str
    actor: str
    occurred_at: datetime


@dataclass(slots=True)
class BatchResult:
    """Ergebnis einer Sammelaktion; jede angefragte ID taucht genau einmal auf."""

    succeeded_ids: List[int] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)
    detail: Dict[int, str] = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.succeeded_ids) + len(self.failed_ids)

    @property
    def partial(self) -> bool:
        return bool(self.succeeded_ids) and bool(self.failed_ids)

    def summary(self) -> str:
        return f"{len(self.succeeded_ids)} succeeded, {len(self.failed_ids)} failed"

    @classmethod
    def from_response(cls, ids: Iterable[int], data: Mapping[str, Any], count_key: str) -> "BatchResult":
        """Attribute the server answer to the requested IDs.

        Older servers only answer with ``{updatedCount, failedCount}``; then the
        first ``count_key`` IDs are taken as succeeded.
        """

        requested = list(ids)
        detail_raw = data.get("detail") or {}
        result = cls(message=data.get("message"))

        if "succeededIds" in data or "failedIds" in data:
            if "succeededIds" in data:
                remaining = Counter(int(item) for item in data.get("succeededIds") or [])
            else:
                failed = {int(item) for item in data.get("failedIds") or []}
                remaining = Counter(item for item in requested if item not in failed)
        else:
            count = int(data.get(count_key, 0))
            remaining = Counter(requested[:count])

        for record_id in requested:
            if remaining[record_id] > 0:
                remaining[record_id] -= 1
                result.succeeded_ids.append(record_id)
            else:
                result.failed_ids.append(record_id)
                result.detail[record_id] = str(detail_raw.get(str(record_id), "Unbekannter Fehler"))
        return result


__all__ = [
    "Activity",
    "AuditEntry",
    "BatchResult",
    "Nachweis",
    "RecordPage",
    "Status",
    "Weekday",
    "parse_date",
    "parse_datetime",
    "to_decimal",
]
