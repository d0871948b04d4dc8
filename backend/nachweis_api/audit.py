"""Audit trail writers and the three audit read endpoints.

The read side deliberately keeps the historical payload shapes: record audits
come back as ``{items, total}``, role audits as ``{audits: {items,
totalElements}}`` and the per-record trail as ``{data: [...]}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .errors import ForbiddenError
from .models import Nachweis, NachweisAuditLog, RoleAudit, User

logger = logging.getLogger(__name__)


def record_action(db: Session, nachweis_id: int, aktion: str, benutzer_name: str) -> NachweisAuditLog:
    entry = NachweisAuditLog(nachweis_id=nachweis_id, aktion=aktion, benutzer_name=benutzer_name)
    db.add(entry)
    return entry


def record_role_change(
    db: Session,
    target_username: str,
    role_name: str,
    action: str,
    performed_by: str,
) -> RoleAudit:
    entry = RoleAudit(
        target_username=target_username,
        role_name=role_name,
        action=action,
        performed_by=performed_by,
    )
    db.add(entry)
    return entry


def _require_reviewer(actor: User) -> None:
    if not actor.is_trainer:
        raise ForbiddenError("Audit-Protokolle sind nur für Ausbilder und Administratoren sichtbar")


def _record_audit_item(entry: NachweisAuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "nachweisId": entry.nachweis_id,
        "aktion": entry.aktion,
        "aktionsZeit": entry.aktions_zeit.isoformat() if entry.aktions_zeit else None,
        "benutzerName": entry.benutzer_name,
    }


def _role_audit_item(entry: RoleAudit) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "targetUsername": entry.target_username,
        "roleName": entry.role_name,
        "action": entry.action,
        "performedBy": entry.performed_by,
        "performedAt": entry.performed_at.isoformat() if entry.performed_at else None,
    }


def list_record_audits(db: Session, actor: User, page: int = 0, size: Optional[int] = 50) -> Dict[str, Any]:
    _require_reviewer(actor)
    query = db.query(NachweisAuditLog)
    if not actor.is_admin:
        own_ids = db.query(Nachweis.id).filter(Nachweis.trainer_id == actor.id)
        query = query.filter(NachweisAuditLog.nachweis_id.in_(own_ids.scalar_subquery()))
    total = query.count()
    query = query.order_by(NachweisAuditLog.aktions_zeit.desc(), NachweisAuditLog.id.desc())
    if size:
        query = query.offset(max(page, 0) * size).limit(size)
    return {"items": [_record_audit_item(entry) for entry in query.all()], "total": total}


def list_role_audits(db: Session, actor: User, page: int = 0, size: Optional[int] = 50) -> Dict[str, Any]:
    _require_reviewer(actor)
    query = db.query(RoleAudit)
    total = query.count()
    query = query.order_by(RoleAudit.performed_at.desc(), RoleAudit.id.desc())
    if size:
        query = query.offset(max(page, 0) * size).limit(size)
    return {"audits": {"items": [_role_audit_item(entry) for entry in query.all()], "totalElements": total}}


def list_audits_for_record(db: Session, actor: User, nachweis_id: int) -> Dict[str, Any]:
    _require_reviewer(actor)
    if not actor.is_admin:
        record = db.get(Nachweis, nachweis_id)
        if record is None or record.trainer_id != actor.id:
            raise ForbiddenError("Kein Zugriff auf das Protokoll dieses Nachweises")
    entries = (
        db.query(NachweisAuditLog)
        .filter(NachweisAuditLog.nachweis_id == nachweis_id)
        .order_by(NachweisAuditLog.aktions_zeit.desc(), NachweisAuditLog.id.desc())
        .all()
    )
    return {"data": [_record_audit_item(entry) for entry in entries]}
