from __future__ import annotations

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from nachweis_api import models, services
from nachweis_api.errors import ConflictError


def _create(client: TestClient, as_user, payload: dict, who: str = "azubi") -> dict:
    response = client.post("/records", json=payload, headers=as_user(who))
    assert response.status_code == 201, response.text
    return response.json()


def test_create_record_returns_camel_case_record(client: TestClient, as_user, record_payload, users):
    data = _create(client, as_user, record_payload(1))
    assert data["number"] == 1
    assert data["status"] == "IN_BEARBEITUNG"
    assert data["ownerId"] == users["azubi"]
    assert data["trainerId"] == users["trainer"]
    assert data["periodStart"] == "2024-03-04"
    assert data["createdAt"].endswith("+00:00")
    ordering = [(item["day"], item["slot"]) for item in data["activities"]]
    assert ordering == [("MONDAY", 1), ("MONDAY", 2), ("TUESDAY", 1)]
    assert data["activities"][1]["hours"] == 0.5


def test_duplicate_number_is_rejected_per_owner(client: TestClient, as_user, record_payload):
    _create(client, as_user, record_payload(5))
    response = client.post("/records", json=record_payload(5), headers=as_user("azubi"))
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "DUPLICATE_NUMBER"
    assert "5" in body["detail"]
    assert body["number"] == 5

    # Another Azubi may reuse the number.
    other = client.post("/records", json=record_payload(5), headers=as_user("azubi2"))
    assert other.status_code == 201


def test_exists_and_next_number(client: TestClient, as_user, record_payload):
    assert client.get("/records/next-number", headers=as_user("azubi")).json() == {"nextNumber": 1}
    _create(client, as_user, record_payload(3))
    _create(client, as_user, record_payload(7))

    assert client.get("/records/exists/by-number/3", headers=as_user("azubi")).json() == {"exists": True}
    assert client.get("/records/exists/by-number/4", headers=as_user("azubi")).json() == {"exists": False}
    assert client.get("/records/exists/by-number/3", headers=as_user("azubi2")).json() == {"exists": False}
    assert client.get("/records/next-number", headers=as_user("azubi")).json() == {"nextNumber": 8}


@pytest.mark.parametrize(
    "changes",
    [
        {"periodEnd": "2024-03-01"},
        {
            "activities": [
                {"day": "MONDAY", "slot": 1, "section": "Meeting", "description": "A", "hours": 1},
                {"day": "MONDAY", "slot": 1, "section": "Meeting", "description": "B", "hours": 1},
            ]
        },
    ],
)
def test_create_validation_failures(client: TestClient, as_user, record_payload, changes):
    response = client.post("/records", json=record_payload(1, **changes), headers=as_user("azubi"))
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"


@pytest.mark.parametrize(
    "activity",
    [
        {"day": "SATURDAY", "slot": 4, "section": "Sonstiges", "description": "Messe", "hours": 2},
        {"day": "MONDAY", "slot": 6, "section": "Sonstiges", "description": "Zu viel", "hours": 1},
        {"day": "MONDAY", "slot": 1, "section": "Sonstiges", "description": "Negativ", "hours": -1},
    ],
)
def test_create_rejects_out_of_range_activities(client: TestClient, as_user, record_payload, activity):
    response = client.post("/records", json=record_payload(1, activities=[activity]), headers=as_user("azubi"))
    assert response.status_code == 422


def test_trainer_must_have_trainer_role(client: TestClient, as_user, record_payload):
    response = client.post("/records", json=record_payload(1, trainer="azubi2"), headers=as_user("azubi"))
    assert response.status_code == 400


def test_unknown_or_missing_user_is_forbidden(client: TestClient, record_payload):
    assert client.post("/records", json=record_payload(1), headers={"X-User-Id": "9999"}).status_code == 403
    response = client.get("/records")
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_owner_update_replaces_activities(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))
    activities = [{"day": "FRIDAY", "slot": 1, "section": "Designen", "description": "UI/UX Design", "hours": 8}]
    response = client.put(f"/records/{created['id']}", json={"activities": activities}, headers=as_user("azubi"))
    assert response.status_code == 200
    data = response.json()
    assert [(a["day"], a["slot"], a["hours"]) for a in data["activities"]] == [("FRIDAY", 1, 8.0)]

    # Same (day, slot) again must not trip the unique constraint.
    activities[0]["hours"] = 7.5
    response = client.put(f"/records/{created['id']}", json={"activities": activities}, headers=as_user("azubi"))
    assert response.status_code == 200
    assert response.json()["activities"][0]["hours"] == 7.5


def test_update_permissions(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))
    url = f"/records/{created['id']}"

    assert client.put(url, json={"ausbildungsjahr": "2"}, headers=as_user("azubi2")).status_code == 403
    assert client.put(url, json={"ausbildungsjahr": "2"}, headers=as_user("trainer2")).status_code == 403
    owner_status = client.put(url, json={"status": "ANGENOMMEN"}, headers=as_user("azubi"))
    assert owner_status.status_code == 403

    trainer_update = client.put(url, json={"status": "ABGELEHNT", "comment": "Bitte ergänzen"}, headers=as_user("trainer"))
    assert trainer_update.status_code == 200
    assert trainer_update.json()["status"] == "ABGELEHNT"
    assert trainer_update.json()["comment"] == "Bitte ergänzen"


def test_owner_edit_of_rejected_record_resubmits(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))
    url = f"/records/{created['id']}"
    client.put(f"{url}/status", json={"status": "ABGELEHNT"}, headers=as_user("trainer"))

    response = client.put(url, json={"ausbildungsjahr": "1. Ausbildungsjahr"}, headers=as_user("azubi"))
    assert response.status_code == 200
    assert response.json()["status"] == "IN_BEARBEITUNG"
    assert response.json()["ausbildungsjahr"] == "1. Ausbildungsjahr"


def test_owner_edit_of_approved_record_conflicts(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))
    url = f"/records/{created['id']}"
    client.put(f"{url}/status", json={"status": "ANGENOMMEN"}, headers=as_user("trainer"))

    response = client.put(url, json={"ausbildungsjahr": "2"}, headers=as_user("azubi"))
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_update_to_taken_number_is_duplicate(client: TestClient, as_user, record_payload):
    _create(client, as_user, record_payload(1))
    second = _create(client, as_user, record_payload(2))
    response = client.put(f"/records/{second['id']}", json={"number": 1}, headers=as_user("azubi"))
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_NUMBER"

    unchanged = client.put(f"/records/{second['id']}", json={"number": 2}, headers=as_user("azubi"))
    assert unchanged.status_code == 200


def test_list_visibility_and_paging(client: TestClient, as_user, record_payload, sample_week):
    for number in (3, 1, 2):
        week = sample_week + dt.timedelta(weeks=number)
        _create(client, as_user, record_payload(number, week_start=week))
    _create(client, as_user, record_payload(1, trainer="trainer2"), who="azubi2")

    own = client.get("/records", params={"size": 2}, headers=as_user("azubi")).json()
    assert own["totalElements"] == 3
    assert own["totalPages"] == 2
    assert [item["number"] for item in own["content"]] == [1, 2]

    by_number = client.get(
        "/records", params={"sortBy": "number", "sortDir": "desc"}, headers=as_user("azubi")
    ).json()
    assert [item["number"] for item in by_number["content"]] == [3, 2, 1]

    trainer_view = client.get("/records", headers=as_user("trainer2")).json()
    assert trainer_view["totalElements"] == 1

    admin_view = client.get("/records", params={"status": "IN_BEARBEITUNG"}, headers=as_user("admin")).json()
    assert admin_view["totalElements"] == 4

    bad_sort = client.get("/records", params={"sortBy": "owner"}, headers=as_user("azubi"))
    assert bad_sort.status_code == 400


def test_get_and_delete_record(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))
    url = f"/records/{created['id']}"

    assert client.get(url, headers=as_user("trainer")).status_code == 200
    assert client.get(url, headers=as_user("azubi2")).status_code == 403
    assert client.delete(url, headers=as_user("trainer")).status_code == 403

    assert client.delete(url, headers=as_user("azubi")).status_code == 204
    missing = client.get(url, headers=as_user("azubi"))
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_storage_race_surfaces_as_conflict(plain_session: Session, monkeypatch):
    azubi = models.User(username="lena", name="Lena", role=models.Role.AZUBI.value)
    trainer = models.User(username="meier", name="Meier", role=models.Role.AUSBILDER.value)
    plain_session.add_all([azubi, trainer])
    plain_session.commit()

    start = dt.date(2024, 3, 4)
    services.create_record(plain_session, azubi, 1, start, start, trainer.id, [])
    # Simulate a concurrent writer that passed the advisory check.
    monkeypatch.setattr(services, "record_number_exists", lambda *args, **kwargs: False)

    with pytest.raises(ConflictError) as excinfo:
        services.create_record(plain_session, azubi, 1, start, start, trainer.id, [])
    assert excinfo.value.status_code == 409
    assert plain_session.query(models.Nachweis).count() == 1


def test_null_activities_keep_the_week(client: TestClient, as_user, record_payload):
    created = _create(client, as_user, record_payload(1))

    kept = client.put(
        f"/records/{created['id']}",
        json={"activities": None, "ausbildungsjahr": "2"},
        headers=as_user("azubi"),
    )
    assert kept.status_code == 200, kept.text
    assert len(kept.json()["activities"]) == 3
    assert kept.json()["ausbildungsjahr"] == "2"

    cleared = client.put(f"/records/{created['id']}", json={"activities": []}, headers=as_user("azubi"))
    assert cleared.status_code == 200, cleared.text
    assert cleared.json()["activities"] == []


def test_record_and_created_audit_are_written_together(plain_session: Session, monkeypatch):
    azubi = models.User(username="lena", name="Lena", role=models.Role.AZUBI.value)
    trainer = models.User(username="meier", name="Meier", role=models.Role.AUSBILDER.value)
    plain_session.add_all([azubi, trainer])
    plain_session.commit()
    start = dt.date(2024, 3, 4)

    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(services.audit, "record_action", broken_audit)
    with pytest.raises(RuntimeError):
        services.create_record(plain_session, azubi, 1, start, start, trainer.id, [])
    plain_session.rollback()
    assert plain_session.query(models.Nachweis).count() == 0

    monkeypatch.undo()
    record = services.create_record(plain_session, azubi, 1, start, start, trainer.id, [])
    audits = plain_session.query(models.NachweisAuditLog).filter_by(nachweis_id=record.id).all()
    assert [entry.aktion for entry in audits] == ["ERSTELLT"]
