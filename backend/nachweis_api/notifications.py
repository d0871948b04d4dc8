from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .approval import NOTIFICATION_TYPES, STATUS_LABELS, Transition
from .errors import NotFoundError
from .models import Nachweis, Notification, User, utcnow

logger = logging.getLogger(__name__)

UNREAD = "UNREAD"
READ = "READ"


def notify_status_change(db: Session, record: Nachweis, transition: Transition, actor: User) -> Notification:
    """Tell the owning Azubi about a status change."""

    label = STATUS_LABELS[transition.current]
    message = f"{actor.name} hat Ihren Nachweis Nr. {record.number} als {label} markiert."
    if transition.comment:
        message = f"{message} Kommentar: {transition.comment}"
    notification = Notification(
        recipient_id=record.owner_id,
        title=f"Nachweis Nr. {record.number} {label}",
        message=message,
        type=NOTIFICATION_TYPES[transition.current],
        status=UNREAD,
        nachweis_id=record.id,
    )
    db.add(notification)
    return notification


def list_notifications(db: Session, user: User, status_value: Optional[str] = None) -> List[Notification]:
    query = db.query(Notification).filter(Notification.recipient_id == user.id)
    if status_value:
        query = query.filter(Notification.status == status_value.upper())
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(db: Session, user: User, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.recipient_id != user.id:
        raise NotFoundError("Benachrichtigung nicht gefunden")
    if notification.status != READ:
        notification.status = READ
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
        logger.info("Benachrichtigung %s von %s gelesen", notification_id, user.username)
    return notification
