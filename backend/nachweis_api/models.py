from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Status(str, Enum):
    IN_BEARBEITUNG = "IN_BEARBEITUNG"
    ANGENOMMEN = "ANGENOMMEN"
    ABGELEHNT = "ABGELEHNT"


class Role(str, Enum):
    AZUBI = "AZUBI"
    AUSBILDER = "AUSBILDER"
    ADMIN = "ADMIN"


class Weekday(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


# Mon-Fri carry five slots, the weekend three.
MAX_SLOTS: Dict[Weekday, int] = {
    Weekday.MONDAY: 5,
    Weekday.TUESDAY: 5,
    Weekday.WEDNESDAY: 5,
    Weekday.THURSDAY: 5,
    Weekday.FRIDAY: 5,
    Weekday.SATURDAY: 3,
    Weekday.SUNDAY: 3,
}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=Role.AZUBI.value, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @property
    def is_trainer(self) -> bool:
        return self.role in {Role.AUSBILDER.value, Role.ADMIN.value}


class Nachweis(Base):
    __tablename__ = "nachweise"
    __table_args__ = (UniqueConstraint("owner_id", "number", name="uq_nachweise_owner_number"),)

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trainer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=Status.IN_BEARBEITUNG.value, index=True)
    comment = Column(Text, nullable=True)
    ausbildungsjahr = Column(String(50), nullable=True)
    datum_azubi = Column(Date, nullable=True)
    signatur_azubi = Column(Text, nullable=True)
    signatur_ausbilder = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", foreign_keys=[owner_id])
    trainer = relationship("User", foreign_keys=[trainer_id])
    activities = relationship(
        "Activity",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="Activity.id",
    )

    def total_for_day(self, day: Weekday) -> Optional[Decimal]:
        hours = [activity.hours for activity in self.activities if activity.day == day.value]
        if not hours:
            return None
        return sum((Decimal(value) for value in hours), Decimal("0"))

    def grand_total(self) -> Decimal:
        total = Decimal("0")
        for day in Weekday:
            day_total = self.total_for_day(day)
            if day_total is not None:
                total += day_total
        return total


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (UniqueConstraint("record_id", "day", "slot", name="uq_activities_record_day_slot"),)

    id = Column(Integer, primary_key=True)
    record_id = Column(Integer, ForeignKey("nachweise.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(String(10), nullable=False)
    slot = Column(Integer, nullable=False)
    section = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    hours = Column(Numeric(5, 2), nullable=False)

    record = relationship("Nachweis", back_populates="activities")


class NachweisAuditLog(Base):
    __tablename__ = "nachweis_audit_logs"

    id = Column(Integer, primary_key=True)
    # Plain column: audit rows outlive the deleted record.
    nachweis_id = Column(Integer, nullable=False, index=True)
    aktion = Column(String(50), nullable=False)
    benutzer_name = Column(String(100), nullable=False)
    aktions_zeit = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class RoleAudit(Base):
    __tablename__ = "role_audits"

    id = Column(Integer, primary_key=True)
    target_username = Column(String(100), nullable=False)
    role_name = Column(String(20), nullable=False)
    action = Column(String(50), nullable=False)
    performed_by = Column(String(100), nullable=False)
    performed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="INFO")
    status = Column(String(20), nullable=False, default="UNREAD", index=True)
    nachweis_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
