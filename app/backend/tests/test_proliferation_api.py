from __future__ import annotations

from datetime import date, timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.models.entities import AuditEvent, ProjectLifecycleStatus
from conftest import HOD, OFFICE, OFFICER, VIEWER, create_project, principal_headers

API = "/api/v1/proliferation"


def _yearly(client: TestClient, headers: dict[str, str], project_id: str, **overrides) -> object:
    payload = {"project_id": project_id, "source": "SDD", "year": 2023, "total_quantity": 10, **overrides}
    return client.post(f"{API}/yearly", headers=headers, json=payload)


def _granular(client: TestClient, headers: dict[str, str], project_id: str, **overrides) -> object:
    payload = {
        "project_id": project_id,
        "simulator_name": "Tank driving simulator",
        "unit_name": "12 Armoured Regiment",
        "proliferation_date": "2023-08-14",
        "quantity": 2,
        **overrides,
    }
    return client.post(f"{API}/granular", headers=headers, json=payload)


def test_submissions_require_completed_project(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    ongoing = create_project(db_session, code="ONG-1", name="Ongoing", lifecycle_status=ProjectLifecycleStatus.ACTIVE)
    archived = create_project(db_session, code="ARC-1", name="Archived", is_archived=True)

    response = _yearly(client, headers, str(ongoing.id))
    assert response.status_code == 422
    assert response.json()["detail"] == "Proliferation data can only be recorded for completed projects."
    assert _yearly(client, headers, str(archived.id)).status_code == 422


def test_submission_validation(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)

    assert _yearly(client, headers, project_id, source="XYZ").status_code == 422
    assert _yearly(client, headers, project_id, year=1999).status_code == 422
    assert _yearly(client, headers, project_id, total_quantity=-1).status_code == 422
    assert _granular(client, headers, project_id, quantity=0).status_code == 422
    assert _granular(client, headers, project_id, unit_name="   ").status_code == 422

    far_future = (date.today() + timedelta(days=45)).isoformat()
    assert _granular(client, headers, project_id, proliferation_date=far_future).status_code == 422
    near_future = (date.today() + timedelta(days=5)).isoformat()
    assert _granular(client, headers, project_id, proliferation_date=near_future).status_code == 201


def test_viewer_cannot_submit(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, VIEWER, AppRole.VIEWER)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)

    assert _yearly(client, headers, project_id).status_code == 403


def test_approver_submissions_are_auto_approved(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)

    created = _yearly(client, headers, project_id, source="abw 515")
    assert created.status_code == 201
    entry = created.json()
    assert entry["approval_status"] == "approved"
    assert entry["source"] == "ABW515"
    assert entry["project_code"] == "SIM-1"

    duplicate = _yearly(client, headers, project_id, source="ABW515", total_quantity=4)
    assert duplicate.status_code == 409

    granular = _granular(client, headers, project_id).json()
    assert granular["source"] == "SDD"
    assert granular["approval_status"] == "approved"


def test_pending_entry_approval_flow(client: TestClient, db_session: Session) -> None:
    officer_headers = principal_headers(db_session, OFFICER, AppRole.PROJECT_OFFICER)
    hod_headers = principal_headers(db_session, HOD, AppRole.HOD)
    office_headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)

    entry = _yearly(client, officer_headers, project_id).json()
    assert entry["approval_status"] == "pending"

    other_user = client.put(
        f"{API}/yearly/{entry['id']}",
        headers=office_headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "total_quantity": 11, "row_version": entry["row_version"]},
    )
    assert other_user.status_code == 403

    edited = client.put(
        f"{API}/yearly/{entry['id']}",
        headers=officer_headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "total_quantity": 12, "row_version": entry["row_version"]},
    )
    assert edited.status_code == 200
    entry = edited.json()
    assert entry["total_quantity"] == 12

    not_approver = client.post(
        f"{API}/entries/yearly/{entry['id']}/decision",
        headers=officer_headers,
        json={"approve": True, "row_version": entry["row_version"]},
    )
    assert not_approver.status_code == 403

    reject_without_reason = client.post(
        f"{API}/entries/yearly/{entry['id']}/decision",
        headers=hod_headers,
        json={"approve": False, "row_version": entry["row_version"], "notes": "  "},
    )
    assert reject_without_reason.status_code == 422
    assert reject_without_reason.json()["detail"] == "Provide a reason for rejecting the entry."

    approved = client.post(
        f"{API}/entries/yearly/{entry['id']}/decision",
        headers=hod_headers,
        json={"approve": True, "row_version": entry["row_version"]},
    )
    assert approved.status_code == 200
    entry = approved.json()
    assert entry["approval_status"] == "approved"
    assert entry["approved_by_user_id"] is not None

    again = client.post(
        f"{API}/entries/yearly/{entry['id']}/decision",
        headers=hod_headers,
        json={"approve": True, "row_version": entry["row_version"]},
    )
    assert again.status_code == 409

    locked = client.delete(f"{API}/entries/yearly/{entry['id']}?row_version={entry['row_version']}", headers=officer_headers)
    assert locked.status_code == 409

    pending = client.get(f"{API}/entries/yearly?approval_status=pending", headers=hod_headers).json()["items"]
    assert pending == []


def test_rejected_entry_can_be_resubmitted(client: TestClient, db_session: Session) -> None:
    officer_headers = principal_headers(db_session, OFFICER, AppRole.PROJECT_OFFICER)
    hod_headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)
    entry = _granular(client, officer_headers, project_id).json()

    rejected = client.post(
        f"{API}/entries/granular/{entry['id']}/decision",
        headers=hod_headers,
        json={"approve": False, "row_version": entry["row_version"], "notes": "Wrong unit"},
    ).json()
    assert rejected["approval_status"] == "rejected"
    assert rejected["decision_notes"] == "Wrong unit"

    resubmitted = client.put(
        f"{API}/granular/{entry['id']}",
        headers=officer_headers,
        json={
            "project_id": project_id,
            "simulator_name": "Tank driving simulator",
            "unit_name": "14 Armoured Regiment",
            "proliferation_date": "2023-08-14",
            "quantity": 2,
            "row_version": rejected["row_version"],
        },
    )
    assert resubmitted.status_code == 200
    assert resubmitted.json()["approval_status"] == "pending"
    assert resubmitted.json()["decision_notes"] is None

    deleted = client.delete(
        f"{API}/entries/granular/{entry['id']}?row_version={resubmitted.json()['row_version']}",
        headers=officer_headers,
    )
    assert deleted.status_code == 204


def test_year_preferences_drive_effective_total(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)
    _yearly(client, headers, project_id, total_quantity=10)
    _granular(client, headers, project_id, quantity=3)
    _granular(client, headers, project_id, quantity=1, unit_name="7 Field Regiment")

    detail = client.get(f"{API}/projects/{project_id}", headers=headers).json()
    assert detail["eligible"] is True
    assert detail["years"][0]["effective_total"] == 14
    assert detail["years"][0]["variance"] == 6

    created = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "mode": "use_granular"},
    )
    assert created.status_code == 200
    assert created.json()["outcome"] == "created"
    assert created.json()["effective_total"] == 4
    preference = created.json()["preference"]

    stale = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "mode": "use_yearly", "row_version": "stale"},
    )
    assert stale.status_code == 409

    unchanged = client.put(
        f"{API}/preferences",
        headers=headers,
        json={
            "project_id": project_id,
            "source": "SDD",
            "year": 2023,
            "mode": "use_granular",
            "row_version": preference["row_version"],
        },
    )
    assert unchanged.json()["outcome"] == "no_change"

    updated = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "mode": "use_yearly"},
    ).json()
    assert updated["outcome"] == "updated"
    assert updated["effective_total"] == 10

    cleared = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "mode": None},
    ).json()
    assert cleared["outcome"] == "cleared"
    assert cleared["preference"] is None
    assert cleared["effective_total"] == 14

    events = (
        db_session.query(AuditEvent)
        .filter(AuditEvent.entity_name == "ProliferationYearPreference")
        .all()
    )
    outcomes = {event.payload["outcome"]: event.payload for event in events}
    assert sorted(outcomes) == ["cleared", "created", "updated"]
    assert {event.action_type for event in events} == {"preference_saved"}
    assert outcomes["created"]["mode"] == "use_granular"
    assert outcomes["cleared"]["mode"] is None


def test_abw515_preferences_cannot_override_yearly(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)

    response = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "ABW515", "year": 2023, "mode": "use_granular"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "ABW 515 uses Yearly totals and cannot be overridden."

    token_without_preference = client.put(
        f"{API}/preferences",
        headers=headers,
        json={"project_id": project_id, "source": "SDD", "year": 2023, "mode": "auto", "row_version": "abc"},
    )
    assert token_without_preference.status_code == 409


def test_unit_suggestions(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    project_id = str(create_project(db_session, code="SIM-1", name="Simulator").id)
    _granular(client, headers, project_id, unit_name="12 Armoured Regiment")
    _granular(client, headers, project_id, unit_name="45 Armoured Regiment")
    _granular(client, headers, project_id, unit_name="7 Field Regiment")

    suggestions = client.get(f"{API}/units/suggestions?term=armoured", headers=headers).json()["items"]
    assert sorted(suggestions) == ["12 Armoured Regiment", "45 Armoured Regiment"]
    assert client.get(f"{API}/units/suggestions?term=a", headers=headers).json()["items"] == []
