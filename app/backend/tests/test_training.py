from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.models.entities import TraineeCategory
from app.services.training_service import infer_category_from_rank, resolve_category
from conftest import HOD, OFFICE, VIEWER, create_catalog_item, create_project, principal_headers

API = "/api/v1/trainings"


def _create(client: TestClient, headers: dict[str, str], training_type_id: str, **overrides) -> object:
    payload = {"training_type_id": training_type_id, "training_month": 3, "training_year": 2024, **overrides}
    return client.post(API, headers=headers, json=payload)


@pytest.mark.parametrize(
    ("rank", "expected"),
    [
        ("Capt", TraineeCategory.OFFICER),
        ("Lt Col", TraineeCategory.OFFICER),
        ("Brig.", TraineeCategory.OFFICER),
        ("Nb Sub", TraineeCategory.JCO),
        ("Sub Maj", TraineeCategory.JCO),
        ("Subedar", TraineeCategory.JCO),
        ("Hav", TraineeCategory.OTHER_RANK),
        ("Sep", TraineeCategory.OTHER_RANK),
    ],
)
def test_infer_category_from_rank(rank: str, expected: TraineeCategory) -> None:
    assert infer_category_from_rank(rank) is expected


def test_explicit_category_overrides_rank() -> None:
    assert resolve_category(1, "Cfn") is TraineeCategory.JCO
    assert resolve_category(7, "Capt") is TraineeCategory.OFFICER
    assert resolve_category(None, "Hav") is TraineeCategory.OTHER_RANK


def test_training_with_month_uses_legacy_counters(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")

    created = _create(
        client,
        headers,
        training_type["id"],
        legacy_officer_count=4,
        legacy_jco_count=2,
        legacy_or_count=10,
        notes="  Conducted at the factory  ",
    )

    assert created.status_code == 201
    training = created.json()
    assert training["training_type_name"] == "Simulator operator course"
    assert (training["officers"], training["jcos"], training["ors"], training["total"]) == (4, 2, 10, 16)
    assert training["counter_source"] == "legacy"
    assert training["start_date"] is None
    assert training["notes"] == "Conducted at the factory"

    ranged = _create(
        client,
        headers,
        training_type["id"],
        training_month=None,
        training_year=None,
        start_date="2024-05-01",
        end_date="2024-05-10",
    ).json()
    assert (ranged["start_date"], ranged["end_date"], ranged["training_month"]) == ("2024-05-01", "2024-05-10", None)
    assert ranged["total"] == 0


def test_training_validation(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    project_type = create_catalog_item(
        client, headers, "training-types", "Project handover", requires_project_selection=True
    )
    project = create_project(db_session, code="SIM-1", name="Alpha simulator")
    archived = create_project(db_session, code="SIM-2", name="Old simulator", is_archived=True)
    type_id = training_type["id"]

    undated = _create(client, headers, type_id, training_month=None, training_year=None)
    assert undated.status_code == 422
    assert undated.json()["detail"] == "Provide either a start and end date or a training month and year."

    assert _create(client, headers, type_id, training_month=None, training_year=None, start_date="2024-05-01").status_code == 422
    inverted = _create(
        client, headers, type_id, training_month=None, training_year=None, start_date="2024-05-10", end_date="2024-05-01"
    )
    assert inverted.status_code == 422
    assert _create(client, headers, type_id, training_year=None).status_code == 422
    assert _create(client, headers, type_id, training_month=13).status_code == 422
    out_of_range = _create(client, headers, type_id, training_year=10000)
    assert out_of_range.status_code == 422
    assert out_of_range.json()["detail"] == "Training year must be between 2000 and 3000."
    assert _create(client, headers, type_id, training_year=1999).status_code == 422
    assert _create(client, headers, type_id, legacy_or_count=-1).status_code == 422

    unknown_type = _create(client, headers, "00000000-0000-0000-0000-000000000000")
    assert unknown_type.status_code == 400

    no_projects = _create(client, headers, project_type["id"])
    assert no_projects.status_code == 422
    assert no_projects.json()["detail"] == "Select at least one project for this training type."

    with_archived = _create(client, headers, project_type["id"], project_ids=[str(archived.id)])
    assert with_archived.status_code == 422

    linked = _create(client, headers, project_type["id"], project_ids=[str(project.id), str(project.id)])
    assert linked.status_code == 201
    assert [item["code"] for item in linked.json()["projects"]] == ["SIM-1"]

    viewer_headers = principal_headers(db_session, VIEWER, AppRole.VIEWER)
    assert _create(client, viewer_headers, type_id).status_code == 403


def test_training_update_uses_row_version(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    training = _create(client, headers, training_type["id"], legacy_or_count=3).json()

    body = {"training_type_id": training_type["id"], "training_month": 4, "training_year": 2024, "legacy_or_count": 6}
    updated = client.put(f"{API}/{training['id']}", headers=headers, json={**body, "row_version": training["row_version"]})
    assert updated.status_code == 200
    assert (updated.json()["training_month"], updated.json()["total"]) == (4, 6)

    stale = client.put(f"{API}/{training['id']}", headers=headers, json={**body, "row_version": training["row_version"]})
    assert stale.status_code == 409


def test_roster_replaces_legacy_counters(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    training = _create(
        client, headers, training_type["id"], legacy_officer_count=5, legacy_jco_count=5, legacy_or_count=5
    ).json()

    rows = [
        {"rank": "Capt", "name": "A. Rao", "unit_name": "12 Armoured Regiment", "army_number": "IC-1001"},
        {"rank": "Nb Sub", "name": "B. Singh", "unit_name": "12 Armoured Regiment", "army_number": "JC-2002"},
        {"rank": "Hav", "name": "C. Kumar", "unit_name": "7 Field Regiment"},
        {"rank": "", "name": "  ", "unit_name": None},
        {"rank": "Cfn", "name": "D. Das", "unit_name": "7 Field Regiment", "category": 1},
    ]
    saved = client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={"row_version": training["row_version"], "rows": rows},
    )

    assert saved.status_code == 200
    roster = saved.json()
    assert (roster["officers"], roster["jcos"], roster["ors"], roster["total"]) == (1, 2, 1, 4)
    assert roster["counter_source"] == "roster"
    assert len(roster["roster"]) == 4
    assert roster["row_version"] != training["row_version"]

    stale = client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={"row_version": training["row_version"], "rows": rows},
    )
    assert stale.status_code == 409

    duplicate = client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={
            "row_version": roster["row_version"],
            "rows": [
                {"rank": "Hav", "name": "C. Kumar", "unit_name": "7 Field Regiment", "army_number": "15432"},
                {"rank": "Nk", "name": "E. Paul", "unit_name": "7 Field Regiment", "army_number": "15432"},
            ],
        },
    )
    assert duplicate.status_code == 422
    assert duplicate.json()["detail"] == 'The Army number "15432" is already listed.'

    incomplete = client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={"row_version": roster["row_version"], "rows": [{"rank": "Hav", "name": "C. Kumar"}]},
    )
    assert incomplete.status_code == 422
    assert incomplete.json()["detail"].startswith("Row 1 is missing required information.")

    cleared = client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={"row_version": roster["row_version"], "rows": []},
    ).json()
    assert cleared["counter_source"] == "legacy"
    assert cleared["total"] == 15

    details = client.get(f"{API}/{training['id']}", headers=headers).json()
    assert details["roster"] == []
    assert details["pending_delete_request"] is None


def test_delete_request_flow(client: TestClient, db_session: Session) -> None:
    office_headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    hod_headers = principal_headers(db_session, HOD, AppRole.HOD)
    training_type = create_catalog_item(client, office_headers, "training-types", "Simulator operator course")
    training = _create(client, office_headers, training_type["id"]).json()
    request_url = f"{API}/{training['id']}/delete-requests"

    requested = client.post(
        request_url,
        headers=office_headers,
        json={"row_version": training["row_version"], "reason": "Entered twice"},
    )
    assert requested.status_code == 201
    request = requested.json()
    assert request["status"] == "pending"
    assert request["training_label"] == "Simulator operator course (2024-03)"

    again = client.post(
        request_url,
        headers=office_headers,
        json={"row_version": training["row_version"], "reason": "Entered twice"},
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "A delete request is already pending for this training."

    pending = client.get(f"{API}/delete-requests/pending", headers=hod_headers).json()["items"]
    assert [item["id"] for item in pending] == [request["id"]]
    details = client.get(f"{API}/{training['id']}", headers=office_headers).json()
    assert details["pending_delete_request"]["id"] == request["id"]

    assert client.post(f"{API}/delete-requests/{request['id']}/approve", headers=office_headers).status_code == 403
    assert (
        client.post(f"{API}/delete-requests/{request['id']}/reject", headers=hod_headers, json={"notes": ""}).status_code
        == 422
    )

    rejected = client.post(
        f"{API}/delete-requests/{request['id']}/reject",
        headers=hod_headers,
        json={"notes": "Keep it, the second entry is a different batch"},
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert client.get(f"{API}/{training['id']}", headers=office_headers).status_code == 200

    second = client.post(
        request_url,
        headers=office_headers,
        json={"row_version": training["row_version"], "reason": "Duplicate after review"},
    ).json()
    approved = client.post(f"{API}/delete-requests/{second['id']}/approve", headers=hod_headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["decided_by_user_id"] is not None
    assert client.get(f"{API}/{training['id']}", headers=office_headers).status_code == 404

    decided = client.post(f"{API}/delete-requests/{second['id']}/approve", headers=hod_headers)
    assert decided.status_code == 409
    assert decided.json()["detail"] == "The delete request is no longer pending."
    assert client.get(f"{API}/delete-requests/pending", headers=hod_headers).json()["items"] == []


def test_search_filters_and_kpis(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    operator = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    maintainer = create_catalog_item(client, headers, "training-types", "Maintainer course")
    project = create_project(db_session, code="SIM-1", name="Alpha simulator")

    month_training = _create(client, headers, operator["id"], legacy_officer_count=1, legacy_or_count=2).json()
    _create(
        client,
        headers,
        operator["id"],
        training_month=None,
        training_year=None,
        start_date="2024-05-01",
        end_date="2024-05-10",
        legacy_jco_count=1,
        legacy_or_count=1,
    )
    _create(
        client,
        headers,
        maintainer["id"],
        training_month=None,
        training_year=None,
        start_date="2023-12-28",
        end_date="2024-01-03",
        legacy_officer_count=2,
        project_ids=[str(project.id)],
    )

    everything = client.get(API, headers=headers).json()
    assert everything["total"] == 3
    assert [item["start_date"] or item["training_month"] for item in everything["items"]] == ["2024-05-01", 3, "2023-12-28"]
    kpis = everything["kpis"]
    assert (kpis["trainings"], kpis["officers"], kpis["jcos"], kpis["ors"], kpis["total"]) == (3, 3, 1, 3, 7)
    assert [(item["name"], item["total"]) for item in kpis["by_type"]] == [
        ("Simulator operator course", 5),
        ("Maintainer course", 2),
    ]

    first_quarter = client.get(f"{API}?from_date=2024-01-01&to_date=2024-03-31", headers=headers).json()
    assert first_quarter["total"] == 2
    mid_march = client.get(f"{API}?from_date=2024-03-15", headers=headers).json()
    assert mid_march["total"] == 2

    by_type = client.get(f"{API}?training_type_id={maintainer['id']}", headers=headers).json()
    assert by_type["total"] == 1
    by_project_code = client.get(f"{API}?q=sim-1", headers=headers).json()
    assert [item["training_type_name"] for item in by_project_code["items"]] == ["Maintainer course"]
    by_project = client.get(f"{API}?project_id={project.id}", headers=headers).json()
    assert by_project["total"] == 1

    client.put(
        f"{API}/{month_training['id']}/roster",
        headers=headers,
        json={
            "row_version": month_training["row_version"],
            "rows": [{"rank": "Maj", "name": "F. Khan", "unit_name": "Armoured Corps Centre"}],
        },
    )
    officers_only = client.get(f"{API}?category=0", headers=headers).json()
    assert officers_only["total"] == 1
    assert client.get(f"{API}?category=1", headers=headers).json()["total"] == 0

    inverted = client.get(f"{API}?from_date=2024-05-01&to_date=2024-01-01", headers=headers)
    assert inverted.status_code == 400


def test_training_export(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    training = _create(client, headers, training_type["id"]).json()
    client.put(
        f"{API}/{training['id']}/roster",
        headers=headers,
        json={
            "row_version": training["row_version"],
            "rows": [{"rank": "Hav", "name": "C. Kumar", "unit_name": "7 Field Regiment"}],
        },
    )

    exported = client.get(f"{API}/export?include_roster=true", headers=headers)

    assert exported.status_code == 200
    assert 'filename="training-tracker-' in exported.headers["content-disposition"]
    assert exported.content[:2] == b"PK"


def test_delete_request_reason_is_truncated(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    training = _create(client, headers, training_type["id"]).json()

    requested = client.post(
        f"{API}/{training['id']}/delete-requests",
        headers=headers,
        json={"row_version": training["row_version"], "reason": "x" * 1500},
    )

    assert requested.status_code == 201
    assert len(requested.json()["reason"]) == 1000

    blank = client.post(
        f"{API}/{training['id']}/delete-requests",
        headers=headers,
        json={"row_version": training["row_version"], "reason": "   "},
    )
    assert blank.status_code == 422


def test_listing_survives_out_of_range_years(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICE, AppRole.PROJECT_OFFICE)
    training_type = create_catalog_item(client, headers, "training-types", "Simulator operator course")
    _create(client, headers, training_type["id"], training_year=10000)
    _create(client, headers, training_type["id"], training_year=2024)

    listing = client.get(API, headers=headers)

    assert listing.status_code == 200
    assert listing.json()["total"] == 1
