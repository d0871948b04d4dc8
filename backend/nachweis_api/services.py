from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import audit, notifications
from .approval import apply_transition
from .config import settings
from .errors import ConflictError, DuplicateNumberError, ForbiddenError, NotFoundError, ValidationFailed
from .models import Activity, Nachweis, Role, Status, User, utcnow

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "number": Nachweis.number,
    "periodStart": Nachweis.period_start,
    "periodEnd": Nachweis.period_end,
    "createdAt": Nachweis.created_at,
    "updatedAt": Nachweis.updated_at,
    "status": Nachweis.status,
}

CONTENT_FIELDS = (
    "number",
    "period_start",
    "period_end",
    "trainer_id",
    "activities",
    "ausbildungsjahr",
    "datum_azubi",
    "signatur_azubi",
    "signatur_ausbilder",
)
ADMIN_FIELDS = ("status", "comment")


@dataclass
class BatchOutcome:
    """Per-ID result of a batch call; every input ID lands in exactly one list."""

    succeeded_ids: List[int] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)
    detail: Dict[str, str] = field(default_factory=dict)

    def succeed(self, record_id: int) -> None:
        self.succeeded_ids.append(record_id)

    def fail(self, record_id: int, reason: str) -> None:
        self.failed_ids.append(record_id)
        self.detail[str(record_id)] = reason

    @property
    def message(self) -> str:
        return f"{len(self.succeeded_ids)} erfolgreich, {len(self.failed_ids)} fehlgeschlagen"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("Benutzer nicht gefunden")
    return user


def resolve_actor(db: Session, user_id: Optional[int]) -> User:
    if user_id is None:
        raise ForbiddenError("Kein Benutzer angegeben")
    user = db.get(User, user_id)
    if not user:
        raise ForbiddenError("Unbekannter Benutzer")
    return user


def list_users(db: Session, role: Optional[Role] = None) -> List[User]:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role.value)
    return query.order_by(User.name.asc()).all()


def create_user(db: Session, actor: User, username: str, name: str, role: Role) -> User:
    if not actor.is_admin:
        raise ForbiddenError("Nur Administratoren können Benutzer anlegen")
    if db.query(User).filter(User.username == username).one_or_none():
        raise ConflictError("Benutzername ist bereits vergeben")
    user = User(username=username, name=name, role=role.value)
    db.add(user)
    audit.record_role_change(db, username, role.value, "ROLLE_ZUGEWIESEN", actor.username)
    db.commit()
    db.refresh(user)
    logger.info("Benutzer %s (%s) angelegt von %s", username, role.value, actor.username)
    return user


def change_user_role(db: Session, actor: User, user_id: int, role: Role) -> User:
    if not actor.is_admin:
        raise ForbiddenError("Nur Administratoren können Rollen ändern")
    user = get_user(db, user_id)
    if user.role == role.value:
        return user
    previous = user.role
    user.role = role.value
    audit.record_role_change(db, user.username, previous, "ROLLE_ENTZOGEN", actor.username)
    audit.record_role_change(db, user.username, role.value, "ROLLE_ZUGEWIESEN", actor.username)
    db.commit()
    db.refresh(user)
    logger.info("Rolle von %s: %s -> %s (durch %s)", user.username, previous, role.value, actor.username)
    return user


def bootstrap_admin(db: Session, username: str) -> Optional[User]:
    """Create the first admin when the user table is still empty."""

    if db.query(User.id).first() is not None:
        return None
    admin = User(username=username, name=username, role=Role.ADMIN.value)
    db.add(admin)
    audit.record_role_change(db, username, Role.ADMIN.value, "ROLLE_ZUGEWIESEN", "system")
    db.flush()
    logger.info("Initialer Administrator %s angelegt", username)
    return admin


# ---------------------------------------------------------------------------
# Access rules
# ---------------------------------------------------------------------------


def _is_owner(actor: User, record: Nachweis) -> bool:
    return record.owner_id == actor.id


def _is_reviewer(actor: User, record: Nachweis) -> bool:
    return actor.is_admin or (actor.is_trainer and record.trainer_id == actor.id)


def _can_view(actor: User, record: Nachweis) -> bool:
    return _is_owner(actor, record) or _is_reviewer(actor, record)


def _get_record(db: Session, record_id: int) -> Nachweis:
    record = db.get(Nachweis, record_id)
    if not record:
        raise NotFoundError("Nachweis nicht gefunden")
    return record


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_period(start, end) -> None:
    if start is None or end is None:
        raise ValidationFailed("Start- und Enddatum sind erforderlich")
    if end < start:
        raise ValidationFailed("Enddatum liegt vor dem Startdatum")


def _build_activities(items: Iterable[Dict[str, Any]]) -> List[Activity]:
    seen: set[Tuple[str, int]] = set()
    activities: List[Activity] = []
    for item in items:
        day = getattr(item["day"], "value", item["day"])
        key = (day, int(item["slot"]))
        if key in seen:
            raise ValidationFailed(f"Doppelter Eintrag für {day} Slot {item['slot']}")
        seen.add(key)
        activities.append(
            Activity(
                day=day,
                slot=int(item["slot"]),
                section=item["section"].strip(),
                description=item["description"].strip(),
                hours=item["hours"],
            )
        )
    return activities


def _resolve_trainer(db: Session, trainer_id: int) -> User:
    trainer = db.get(User, trainer_id)
    if not trainer or not trainer.is_trainer:
        raise ValidationFailed("Ausbilder nicht gefunden")
    return trainer


def record_number_exists(db: Session, owner_id: int, number: int, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Nachweis.id).filter(Nachweis.owner_id == owner_id, Nachweis.number == number)
    if exclude_id is not None:
        query = query.filter(Nachweis.id != exclude_id)
    return query.first() is not None


def next_record_number(db: Session, owner_id: int) -> int:
    highest = db.query(func.max(Nachweis.number)).filter(Nachweis.owner_id == owner_id).scalar()
    return (highest or 0) + 1


def _flush_unique(db: Session, number: int) -> None:
    # The advisory pre-check can race; the unique constraint is authoritative.
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Nummernkonflikt beim Speichern von Nachweis %s: %s", number, exc.orig)
        raise ConflictError(f"Nachweis mit der Nummer {number} wurde gleichzeitig angelegt", number=number) from exc


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def create_record(
    db: Session,
    actor: User,
    number: int,
    period_start,
    period_end,
    trainer_id: int,
    activities: Iterable[Dict[str, Any]],
    ausbildungsjahr: Optional[str] = None,
    datum_azubi=None,
    signatur_azubi: Optional[str] = None,
    signatur_ausbilder: Optional[str] = None,
) -> Nachweis:
    _validate_period(period_start, period_end)
    if number is None or number <= 0:
        raise ValidationFailed("Nummer muss positiv sein")
    _resolve_trainer(db, trainer_id)
    if record_number_exists(db, actor.id, number):
        raise DuplicateNumberError(number)

    record = Nachweis(
        owner_id=actor.id,
        trainer_id=trainer_id,
        number=number,
        period_start=period_start,
        period_end=period_end,
        status=Status.IN_BEARBEITUNG.value,
        ausbildungsjahr=ausbildungsjahr,
        datum_azubi=datum_azubi,
        signatur_azubi=signatur_azubi,
        signatur_ausbilder=signatur_ausbilder,
    )
    record.activities = _build_activities(activities)
    db.add(record)
    _flush_unique(db, number)
    audit.record_action(db, record.id, "ERSTELLT", actor.username)
    db.commit()
    db.refresh(record)
    logger.info("Nachweis %s (Nr. %s) von %s erstellt", record.id, number, actor.username)
    return record


def get_record(db: Session, actor: User, record_id: int) -> Nachweis:
    record = _get_record(db, record_id)
    if not _can_view(actor, record):
        raise ForbiddenError("Kein Zugriff auf diesen Nachweis")
    return record


def list_records(
    db: Session,
    actor: User,
    owner_id: Optional[int] = None,
    trainer_id: Optional[int] = None,
    status_value: Optional[Status] = None,
    page: int = 0,
    size: Optional[int] = None,
    sort_by: str = "periodStart",
    sort_dir: str = "asc",
) -> Dict[str, Any]:
    size = size or settings.default_page_size
    size = max(1, min(size, settings.max_page_size))
    page = max(page, 0)

    query = db.query(Nachweis)
    if actor.is_trainer and not actor.is_admin:
        query = query.filter(Nachweis.trainer_id == actor.id)
    elif not actor.is_trainer:
        query = query.filter(Nachweis.owner_id == actor.id)
    if owner_id is not None:
        query = query.filter(Nachweis.owner_id == owner_id)
    if trainer_id is not None:
        query = query.filter(Nachweis.trainer_id == trainer_id)
    if status_value is not None:
        query = query.filter(Nachweis.status == status_value.value)

    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        raise ValidationFailed(f"Unbekanntes Sortierfeld: {sort_by}")
    ordering = column.desc() if sort_dir.lower() == "desc" else column.asc()

    total = query.count()
    records = query.order_by(ordering, Nachweis.id.asc()).offset(page * size).limit(size).all()
    return {
        "content": records,
        "total_pages": math.ceil(total / size) if total else 0,
        "total_elements": total,
        "page": page,
        "size": size,
    }


def update_record(db: Session, actor: User, record_id: int, changes: Dict[str, Any]) -> Nachweis:
    record = _get_record(db, record_id)
    is_owner = _is_owner(actor, record)
    is_reviewer = _is_reviewer(actor, record)
    if not (is_owner or is_reviewer):
        raise ForbiddenError("Nur Besitzer oder zuständiger Ausbilder dürfen den Nachweis ändern")

    admin_changes = {key: changes[key] for key in ADMIN_FIELDS if key in changes}
    content_changes = {key: changes[key] for key in CONTENT_FIELDS if key in changes}
    if admin_changes and not is_reviewer:
        raise ForbiddenError("Status und Kommentar dürfen nur Ausbilder ändern")
    if content_changes and not is_reviewer and record.status == Status.ANGENOMMEN.value:
        raise ConflictError("Angenommene Nachweise können nicht mehr bearbeitet werden")

    period_start = content_changes.get("period_start", record.period_start)
    period_end = content_changes.get("period_end", record.period_end)
    _validate_period(period_start, period_end)

    number = content_changes.get("number")
    if number is not None and number != record.number:
        if record_number_exists(db, record.owner_id, number, exclude_id=record.id):
            raise DuplicateNumberError(number)
    if content_changes.get("trainer_id") is not None:
        _resolve_trainer(db, content_changes["trainer_id"])

    for key, value in content_changes.items():
        if key == "activities":
            if value is None:
                continue
            replacement = _build_activities(value)
            # Old rows must be gone before rows with the same (day, slot) are inserted.
            record.activities.clear()
            db.flush()
            record.activities = replacement
        elif value is not None or key not in {"number", "period_start", "period_end", "trainer_id"}:
            setattr(record, key, value)

    transition = None
    if "status" in admin_changes and admin_changes["status"] is not None:
        try:
            transition = apply_transition(record, Status(admin_changes["status"]), admin_changes.get("comment"))
        except ValueError as exc:
            raise ConflictError(str(exc)) from exc
    elif "comment" in admin_changes:
        record.comment = admin_changes["comment"]

    if content_changes and not is_reviewer and record.status == Status.ABGELEHNT.value:
        # Resubmission after rejection.
        record.status = Status.IN_BEARBEITUNG.value

    # Activities alone do not dirty the parent row.
    record.updated_at = utcnow()
    audit.record_action(db, record.id, "BEARBEITET", actor.username)
    if transition is not None:
        audit.record_action(db, record.id, f"STATUS_{transition.current.value}", actor.username)
        notifications.notify_status_change(db, record, transition, actor)
    _flush_unique(db, record.number)
    db.commit()
    db.refresh(record)
    logger.info("Nachweis %s von %s bearbeitet", record.id, actor.username)
    return record


def set_record_status(
    db: Session,
    actor: User,
    record_id: int,
    status_value: Status,
    comment: Optional[str] = None,
) -> Nachweis:
    record = _get_record(db, record_id)
    if not _is_reviewer(actor, record):
        raise ForbiddenError("Nur Ausbilder oder Administratoren dürfen den Status ändern")
    try:
        transition = apply_transition(record, status_value, comment)
    except ValueError as exc:
        raise ConflictError(str(exc)) from exc
    record.updated_at = utcnow()
    audit.record_action(db, record.id, f"STATUS_{status_value.value}", actor.username)
    notifications.notify_status_change(db, record, transition, actor)
    db.commit()
    db.refresh(record)
    logger.info(
        "Nachweis %s: %s -> %s durch %s",
        record.id,
        transition.previous.value,
        transition.current.value,
        actor.username,
    )
    return record


def delete_record(db: Session, actor: User, record_id: int) -> None:
    record = _get_record(db, record_id)
    if not (_is_owner(actor, record) or actor.is_admin):
        raise ForbiddenError("Nur Besitzer oder Administratoren dürfen löschen")
    db.delete(record)
    audit.record_action(db, record_id, "GELOESCHT", actor.username)
    db.commit()
    logger.info("Nachweis %s von %s gelöscht", record_id, actor.username)


# ---------------------------------------------------------------------------
# Batch operations
# ---------------------------------------------------------------------------


def batch_update_status(
    db: Session,
    actor: User,
    ids: List[int],
    status_value: Status,
    comment: Optional[str] = None,
) -> BatchOutcome:
    if not actor.is_trainer:
        raise ForbiddenError("Nur Ausbilder oder Administratoren dürfen den Status ändern")
    outcome = BatchOutcome()
    for record_id in ids:
        record = db.get(Nachweis, record_id)
        if record is None:
            outcome.fail(record_id, "Nachweis nicht gefunden")
            continue
        if not _is_reviewer(actor, record):
            outcome.fail(record_id, "Keine Berechtigung für diesen Nachweis")
            continue
        try:
            transition = apply_transition(record, status_value, comment)
        except ValueError as exc:
            outcome.fail(record_id, str(exc))
            continue
        record.updated_at = utcnow()
        audit.record_action(db, record.id, f"STATUS_{status_value.value}", actor.username)
        notifications.notify_status_change(db, record, transition, actor)
        outcome.succeed(record_id)
    db.commit()
    logger.info("Batch-Status %s durch %s: %s", status_value.value, actor.username, outcome.message)
    for record_id in outcome.failed_ids:
        logger.info("Batch-Status übersprungen für %s: %s", record_id, outcome.detail[str(record_id)])
    return outcome


def batch_delete(db: Session, actor: User, ids: List[int]) -> BatchOutcome:
    outcome = BatchOutcome()
    for record_id in ids:
        record = db.get(Nachweis, record_id)
        if record is None:
            outcome.fail(record_id, "Nachweis nicht gefunden")
            continue
        if not (_is_owner(actor, record) or actor.is_admin):
            outcome.fail(record_id, "Keine Berechtigung zum Löschen")
            continue
        db.delete(record)
        db.flush()
        audit.record_action(db, record_id, "GELOESCHT", actor.username)
        outcome.succeed(record_id)
    db.commit()
    logger.info("Batch-Löschen durch %s: %s", actor.username, outcome.message)
    return outcome


def collect_exportable_records(db: Session, actor: User, ids: List[int]) -> List[Nachweis]:
    """Load every requested record or fail the whole export."""

    records: List[Nachweis] = []
    seen: set[int] = set()
    for record_id in ids:
        if record_id in seen:
            continue
        seen.add(record_id)
        record = db.get(Nachweis, record_id)
        if record is None:
            raise NotFoundError(f"Nachweis {record_id} nicht gefunden", nachweisId=record_id)
        if not _can_view(actor, record):
            raise ForbiddenError(f"Kein Zugriff auf Nachweis {record_id}", nachweisId=record_id)
        records.append(record)
    return records
