from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from pydantic.alias_generators import to_camel

from .models import MAX_SLOTS, Role, Status, Weekday


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def _serialize_date(value: Optional[dt.date]) -> Optional[str]:
    return value.isoformat() if value else None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ActivityPayload(CamelModel):
    day: Weekday
    slot: int = Field(ge=1, le=5)
    section: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    hours: Decimal = Field(ge=0, max_digits=5, decimal_places=2)

    @model_validator(mode="after")
    def _check_slot_range(self) -> "ActivityPayload":
        if self.slot > MAX_SLOTS[self.day]:
            raise ValueError(f"{self.day.value} erlaubt höchstens {MAX_SLOTS[self.day]} Einträge")
        return self


class RecordCreateRequest(CamelModel):
    number: int = Field(gt=0)
    period_start: dt.date
    period_end: dt.date
    trainer_id: int
    activities: List[ActivityPayload] = Field(default_factory=list)
    ausbildungsjahr: Optional[str] = None
    datum_azubi: Optional[dt.date] = None
    signatur_azubi: Optional[str] = None
    signatur_ausbilder: Optional[str] = None


class RecordUpdateRequest(CamelModel):
    number: Optional[int] = Field(default=None, gt=0)
    period_start: Optional[dt.date] = None
    period_end: Optional[dt.date] = None
    trainer_id: Optional[int] = None
    activities: Optional[List[ActivityPayload]] = None
    ausbildungsjahr: Optional[str] = None
    datum_azubi: Optional[dt.date] = None
    signatur_azubi: Optional[str] = None
    signatur_ausbilder: Optional[str] = None
    status: Optional[Status] = None
    comment: Optional[str] = None


class StatusUpdateRequest(CamelModel):
    status: Status
    comment: Optional[str] = None


class BatchIdsRequest(CamelModel):
    ids: List[int] = Field(min_length=1)


class BatchStatusRequest(BatchIdsRequest):
    status: Status
    comment: Optional[str] = None


class UserCreateRequest(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    role: Role = Role.AZUBI


class RoleUpdateRequest(CamelModel):
    role: Role


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: str
    slot: int
    section: str
    description: str
    hours: Decimal

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "slot": self.slot,
            "section": self.section,
            "description": self.description,
            "hours": float(self.hours),
        }


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    trainer_id: int
    number: int
    period_start: dt.date
    period_end: dt.date
    status: str
    comment: Optional[str]
    ausbildungsjahr: Optional[str] = None
    datum_azubi: Optional[dt.date] = None
    signatur_azubi: Optional[str] = None
    signatur_ausbilder: Optional[str] = None
    activities: List[ActivityResponse] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        day_order = {day.value: index for index, day in enumerate(Weekday)}
        activities = sorted(self.activities, key=lambda item: (day_order.get(item.day, 99), item.slot))
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "trainerId": self.trainer_id,
            "number": self.number,
            "periodStart": _serialize_date(self.period_start),
            "periodEnd": _serialize_date(self.period_end),
            "status": self.status,
            "comment": self.comment,
            "ausbildungsjahr": self.ausbildungsjahr,
            "datumAzubi": _serialize_date(self.datum_azubi),
            "signaturAzubi": self.signatur_azubi,
            "signaturAusbilder": self.signatur_ausbilder,
            "activities": [activity._serialize() for activity in activities],
            "createdAt": _serialize_datetime(self.created_at),
            "updatedAt": _serialize_datetime(self.updated_at),
        }


class RecordPageResponse(BaseModel):
    content: List[RecordResponse]
    total_pages: int
    total_elements: int
    page: int
    size: int

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "content": [record._serialize() for record in self.content],
            "totalPages": self.total_pages,
            "totalElements": self.total_elements,
            "page": self.page,
            "size": self.size,
        }


class ExistsResponse(BaseModel):
    exists: bool


class NextNumberResponse(CamelModel):
    next_number: int


class BatchStatusResponse(CamelModel):
    updated_count: int
    failed_count: int
    succeeded_ids: List[int]
    failed_ids: List[int]
    detail: Dict[str, str]
    message: str


class BatchDeleteResponse(CamelModel):
    deleted_count: int
    failed_count: int
    succeeded_ids: List[int]
    failed_ids: List[int]
    detail: Dict[str, str]
    message: str


class UserResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    username: str
    name: str
    role: str


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: Optional[str]
    type: str
    status: str
    nachweis_id: Optional[int]
    created_at: dt.datetime
    read_at: Optional[dt.datetime]

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "status": self.status,
            "nachweisId": self.nachweis_id,
            "createdAt": _serialize_datetime(self.created_at),
            "readAt": _serialize_datetime(self.read_at) if self.read_at else None,
        }
