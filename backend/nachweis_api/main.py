from __future__ import annotations

from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import audit, documents, models, notifications, services
from .config import settings
from .database import get_db, init_db
from .errors import NachweisError, nachweis_error_handler
from .logging_setup import configure_logging
from .models import Role, Status
from .schemas import (
    BatchDeleteResponse,
    BatchIdsRequest,
    BatchStatusRequest,
    BatchStatusResponse,
    ExistsResponse,
    NextNumberResponse,
    NotificationResponse,
    RecordCreateRequest,
    RecordPageResponse,
    RecordResponse,
    RecordUpdateRequest,
    RoleUpdateRequest,
    StatusUpdateRequest,
    UserCreateRequest,
    UserResponse,
)

configure_logging()

init_db(settings.bootstrap_admin)

app = FastAPI(title=settings.app_name)
app.add_exception_handler(NachweisError, nachweis_error_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_current_user(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
) -> models.User:
    return services.resolve_actor(db, x_user_id)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Records: fixed paths first so they are not taken for a record id
# ---------------------------------------------------------------------------


@app.get("/records/exists/by-number/{number}", response_model=ExistsResponse)
def record_exists(
    number: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ExistsResponse:
    return ExistsResponse(exists=services.record_number_exists(db, user.id, number))


@app.get("/records/next-number", response_model=NextNumberResponse)
def record_next_number(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NextNumberResponse:
    return NextNumberResponse(next_number=services.next_record_number(db, user.id))


@app.put("/records/batch-status", response_model=BatchStatusResponse)
def records_batch_status(
    payload: BatchStatusRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BatchStatusResponse:
    outcome = services.batch_update_status(db, user, payload.ids, payload.status, payload.comment)
    return BatchStatusResponse(
        updated_count=len(outcome.succeeded_ids),
        failed_count=len(outcome.failed_ids),
        succeeded_ids=outcome.succeeded_ids,
        failed_ids=outcome.failed_ids,
        detail=outcome.detail,
        message=outcome.message,
    )


@app.delete("/records/batch-delete", response_model=BatchDeleteResponse)
def records_batch_delete(
    payload: BatchIdsRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BatchDeleteResponse:
    outcome = services.batch_delete(db, user, payload.ids)
    return BatchDeleteResponse(
        deleted_count=len(outcome.succeeded_ids),
        failed_count=len(outcome.failed_ids),
        succeeded_ids=outcome.succeeded_ids,
        failed_ids=outcome.failed_ids,
        detail=outcome.detail,
        message=outcome.message,
    )


@app.post("/records/batch-export")
def records_batch_export(
    payload: BatchIdsRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    records = services.collect_exportable_records(db, user, payload.ids)
    filename, content = documents.build_export_archive(records)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content, media_type="application/zip", headers=headers)


@app.post("/records/batch-print")
def records_batch_print(
    payload: BatchIdsRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    records = services.collect_exportable_records(db, user, payload.ids)
    filename, content = documents.build_print_bundle(records)
    headers = {"Content-Disposition": f'inline; filename="{filename}"'}
    return Response(content, media_type="application/pdf", headers=headers)


@app.post("/records", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def records_create(
    payload: RecordCreateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecordResponse:
    return services.create_record(
        db,
        user,
        payload.number,
        payload.period_start,
        payload.period_end,
        payload.trainer_id,
        [activity.model_dump() for activity in payload.activities],
        ausbildungsjahr=payload.ausbildungsjahr,
        datum_azubi=payload.datum_azubi,
        signatur_azubi=payload.signatur_azubi,
        signatur_ausbilder=payload.signatur_ausbilder,
    )


@app.get("/records", response_model=RecordPageResponse)
def records_list(
    owner_id: Optional[int] = Query(default=None, alias="ownerId"),
    trainer_id: Optional[int] = Query(default=None, alias="trainerId"),
    status_value: Optional[Status] = Query(default=None, alias="status"),
    page: int = Query(default=0, ge=0),
    size: Optional[int] = Query(default=None, ge=1),
    sort_by: str = Query(default="periodStart", alias="sortBy"),
    sort_dir: str = Query(default="asc", alias="sortDir"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecordPageResponse:
    return services.list_records(
        db,
        user,
        owner_id=owner_id,
        trainer_id=trainer_id,
        status_value=status_value,
        page=page,
        size=size,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )


@app.get("/records/{record_id}", response_model=RecordResponse)
def records_get(
    record_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecordResponse:
    return services.get_record(db, user, record_id)


@app.put("/records/{record_id}", response_model=RecordResponse)
def records_update(
    record_id: int,
    payload: RecordUpdateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecordResponse:
    changes = payload.model_dump(exclude_unset=True)
    return services.update_record(db, user, record_id, changes)


@app.put("/records/{record_id}/status", response_model=RecordResponse)
def records_set_status(
    record_id: int,
    payload: StatusUpdateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecordResponse:
    return services.set_record_status(db, user, record_id, payload.status, payload.comment)


@app.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def records_delete(
    record_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    services.delete_record(db, user, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/records/{record_id}/document")
def records_document(
    record_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    record = services.get_record(db, user, record_id)
    content = documents.render_record_pdf(record)
    headers = {"Content-Disposition": f'inline; filename="{documents.document_filename(record)}"'}
    return Response(content, media_type="application/pdf", headers=headers)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@app.get("/audit/records")
def audit_records(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=50, ge=1, le=500),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return audit.list_record_audits(db, user, page, size)


@app.get("/audit/roles")
def audit_roles(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=50, ge=1, le=500),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return audit.list_role_audits(db, user, page, size)


@app.get("/audit/records/{record_id}")
def audit_for_record(
    record_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return audit.list_audits_for_record(db, user, record_id)


# ---------------------------------------------------------------------------
# Users and notifications
# ---------------------------------------------------------------------------


@app.get("/users", response_model=List[UserResponse])
def users_list(
    role: Optional[Role] = None,
    _user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[UserResponse]:
    return services.list_users(db, role)


@app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def users_create(
    payload: UserCreateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    return services.create_user(db, user, payload.username, payload.name, payload.role)


@app.put("/users/{user_id}/role", response_model=UserResponse)
def users_change_role(
    user_id: int,
    payload: RoleUpdateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    return services.change_user_role(db, user, user_id, payload.role)


@app.get("/notifications", response_model=List[NotificationResponse])
def notifications_list(
    status_value: Optional[str] = Query(default=None, alias="status"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[NotificationResponse]:
    return notifications.list_notifications(db, user, status_value)


@app.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def notifications_mark_read(
    notification_id: int,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationResponse:
    return notifications.mark_read(db, user, notification_id)
