from __future__ import annotations

import base64
import io

import pytest
from openpyxl import load_workbook
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.auth import AppRole
from app.models.entities import ProjectLifecycleStatus
from app.services import proliferation_reporting_service
from app.services.proliferation_reporting_service import (
    OverviewQuery,
    ProliferationReportingService,
    ProliferationReportKind,
    ReportQuery,
)
from conftest import HOD, OFFICER, create_project, principal_headers

API = "/api/v1/proliferation"


@pytest.fixture
def seeded(client: TestClient, db_session: Session) -> dict[str, object]:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    officer_headers = principal_headers(db_session, OFFICER, AppRole.PROJECT_OFFICER)
    alpha = create_project(db_session, code="SIM-1", name="Alpha simulator")
    bravo = create_project(db_session, code="SIM-2", name="Bravo simulator")
    create_project(db_session, code="SIM-3", name="Charlie simulator", lifecycle_status=ProjectLifecycleStatus.ACTIVE)

    def post(path: str, body: dict[str, object], as_headers: dict[str, str] = headers) -> None:
        response = client.post(f"{API}/{path}", headers=as_headers, json=body)
        assert response.status_code == 201, response.text

    post("yearly", {"project_id": str(alpha.id), "source": "SDD", "year": 2023, "total_quantity": 10})
    post("yearly", {"project_id": str(alpha.id), "source": "ABW515", "year": 2022, "total_quantity": 5})
    post(
        "granular",
        {
            "project_id": str(alpha.id),
            "simulator_name": "Driving simulator",
            "unit_name": "12 Armoured Regiment",
            "proliferation_date": "2023-08-14",
            "quantity": 3,
        },
    )
    post(
        "granular",
        {
            "project_id": str(alpha.id),
            "simulator_name": "Driving simulator",
            "unit_name": "7 Field Regiment",
            "proliferation_date": "2023-09-01",
            "quantity": 2,
        },
    )
    post(
        "granular",
        {
            "project_id": str(bravo.id),
            "simulator_name": "Gunnery simulator",
            "unit_name": "12 Armoured Regiment",
            "proliferation_date": "2024-02-10",
            "quantity": 4,
        },
    )
    post(
        "yearly",
        {"project_id": str(bravo.id), "source": "SDD", "year": 2024, "total_quantity": 99},
        officer_headers,
    )
    return {"headers": headers, "alpha": str(alpha.id), "bravo": str(bravo.id)}


def test_summary_counts_only_approved_effective_totals(client: TestClient, seeded: dict[str, object]) -> None:
    summary = client.get(f"{API}/summary", headers=seeded["headers"]).json()

    assert summary["totals"] == {"total": 24, "sdd": 19, "abw515": 5}
    assert [(row["project_code"], row["total"]) for row in summary["by_project"]] == [("SIM-1", 20), ("SIM-2", 4)]
    assert [row["year"] for row in summary["by_year"]] == [2024, 2023, 2022]
    assert summary["by_project_year"][0]["project_code"] == "SIM-2"


def test_overview_lists_both_data_types(client: TestClient, seeded: dict[str, object]) -> None:
    headers = seeded["headers"]

    everything = client.get(f"{API}/overview", headers=headers).json()
    assert everything["total"] == 6
    assert {row["data_type"] for row in everything["items"]} == {"Yearly", "Granular"}
    assert everything["kpis"]["all_time"]["projects"] == 2
    assert everything["kpis"]["all_time"]["total"] == 24

    approved = client.get(f"{API}/overview?approval_status=approved", headers=headers).json()
    assert approved["total"] == 5

    abw = client.get(f"{API}/overview?source=ABW 515", headers=headers).json()
    assert [(row["source_label"], row["quantity"]) for row in abw["items"]] == [("ABW 515", 5)]

    paged = client.get(f"{API}/overview?page=2&page_size=4", headers=headers).json()
    assert len(paged["items"]) == 2

    by_unit = client.get(f"{API}/overview?search=field", headers=headers).json()
    assert [row["unit_name"] for row in by_unit["items"]] == ["7 Field Regiment"]

    inverted = client.get(f"{API}/overview?from_date=2024-01-01&to_date=2023-01-01", headers=headers)
    assert inverted.status_code == 400


def test_unit_and_project_reports(client: TestClient, seeded: dict[str, object]) -> None:
    headers = seeded["headers"]

    project_to_units = client.get(f"{API}/reports/project-to-units?project_id={seeded['alpha']}", headers=headers)
    assert project_to_units.status_code == 200
    body = project_to_units.json()
    assert body["report"] == "ProjectToUnits"
    assert [row["unit_name"] for row in body["rows"]] == ["7 Field Regiment", "12 Armoured Regiment"]
    assert body["columns"][0] == {"key": "project_name", "label": "Project"}

    without_project = client.get(f"{API}/reports/ProjectToUnits", headers=headers).json()
    assert without_project["total"] == 0

    unit_to_projects = client.get(f"{API}/reports/UnitToProjects?unit_name=armoured", headers=headers).json()
    assert [row["project_code"] for row in unit_to_projects["rows"]] == ["SIM-2", "SIM-1"]

    coverage = client.get(f"{API}/reports/ProjectCoverageSummary", headers=headers).json()
    alpha_row = next(row for row in coverage["rows"] if row["project_code"] == "SIM-1")
    assert alpha_row["total_quantity"] == 5
    assert alpha_row["unique_units"] == 2
    assert (alpha_row["first_date"], alpha_row["last_date"]) == ("2023-08-14", "2023-09-01")


def test_ledger_and_reconciliation_reports(client: TestClient, seeded: dict[str, object]) -> None:
    headers = seeded["headers"]

    ledger = client.get(f"{API}/reports/GranularLedger?from_date=2024-01-01", headers=headers).json()
    assert ledger["total"] == 1
    assert ledger["rows"][0]["simulator_name"] == "Gunnery simulator"

    assert client.get(f"{API}/reports/GranularLedger?approval_status=pending", headers=headers).json()["total"] == 0
    assert client.get(f"{API}/reports/GranularLedger?approval_status=all", headers=headers).json()["total"] == 3

    reconciliation = client.get(f"{API}/reports/YearlyReconciliation", headers=headers).json()
    assert [(row["project_code"], row["year"]) for row in reconciliation["rows"]] == [
        ("SIM-2", 2024),
        ("SIM-1", 2023),
        ("SIM-1", 2022),
    ]
    alpha_2023 = reconciliation["rows"][1]
    assert alpha_2023["yearly_approved_total"] == 10
    assert alpha_2023["granular_approved_total"] == 5
    assert alpha_2023["effective_total"] == 15
    assert alpha_2023["variance"] == 5
    assert alpha_2023["preference_mode"] == "use_yearly_and_granular"
    assert reconciliation["rows"][0]["yearly_approved_total"] == 0

    inverted = client.get(f"{API}/reports/GranularLedger?from_date=2024-01-01&to_date=2023-01-01", headers=headers)
    assert inverted.status_code == 400
    assert client.get(f"{API}/reports/NotAReport", headers=headers).status_code == 404


def test_report_export(client: TestClient, seeded: dict[str, object]) -> None:
    exported = client.get(f"{API}/reports/GranularLedger/export", headers=seeded["headers"])

    assert exported.status_code == 200
    assert 'filename="proliferation-report-granularledger-' in exported.headers["content-disposition"]
    assert exported.content[:2] == b"PK"


def test_yearly_csv_import_reports_row_errors(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    create_project(db_session, code="SIM-1", name="Alpha simulator")
    create_project(db_session, code="SIM-9", name="Ongoing", lifecycle_status=ProjectLifecycleStatus.ACTIVE)
    content = (
        "ProjectCode,Source,Year,TotalQuantity,Remarks\n"
        "SIM-1,SDD,2021,7,Backfill\n"
        "SIM-404,SDD,2021,1,\n"
        "SIM-1,XYZ,2021,1,\n"
        "SIM-1,ABW 515,twenty,1,\n"
        "SIM-1,SDD,2021,8,Second copy\n"
        "SIM-9,SDD,2021,1,\n"
    )

    response = client.post(
        f"{API}/import/yearly",
        headers=headers,
        files={"file": ("yearly.csv", content.encode("utf-8"), "text/csv")},
    )

    assert response.status_code == 200
    result = response.json()
    assert result["kind"] == "yearly"
    assert result["accepted"] == 1
    assert result["rejected"] == 5
    assert [(error["row_number"], error["message"]) for error in result["errors"]] == [
        (3, 'Project "SIM-404" was not found.'),
        (4, 'Unknown source "XYZ".'),
        (5, "Year must be a whole number."),
        (6, "An approved yearly total already exists for this project, source and year."),
        (7, "Proliferation data can only be recorded for completed projects."),
    ]
    error_csv = base64.b64decode(result["error_csv_base64"]).decode("utf-8")
    assert error_csv.splitlines()[0] == "RowNumber,Error"

    stored = client.get(f"{API}/entries/yearly", headers=headers).json()["items"]
    assert [(item["year"], item["total_quantity"], item["remarks"]) for item in stored] == [(2021, 7, "Backfill")]


def test_granular_csv_import_by_officer_is_pending(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, OFFICER, AppRole.PROJECT_OFFICER)
    create_project(db_session, code="SIM-1", name="Alpha simulator")
    content = (
        "\ufeffProjectCode,SimulatorName,UnitName,ProliferationDate,Quantity,Remarks\n"
        "SIM-1,Driving simulator,3 Grenadiers,2023-05-02,2,\n"
        "\n"
        "SIM-1,Driving simulator,3 Grenadiers,02/05/2023,2,\n"
        "SIM-1,Driving simulator,3 Grenadiers,2023-05-02,0,\n"
    )

    result = client.post(
        f"{API}/import/granular",
        headers=headers,
        files={"file": ("granular.csv", content.encode("utf-8"), "text/csv")},
    ).json()

    assert result["accepted"] == 1
    assert [error["row_number"] for error in result["errors"]] == [4, 5]
    assert result["errors"][0]["message"] == "ProliferationDate must be in YYYY-MM-DD format."
    assert result["errors"][1]["message"] == "Quantity must be greater than zero."

    stored = client.get(f"{API}/entries/granular", headers=headers).json()["items"]
    assert [item["approval_status"] for item in stored] == ["pending"]


def test_csv_import_rejects_bad_files(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)

    empty = client.post(f"{API}/import/yearly", headers=headers, files={"file": ("empty.csv", b"", "text/csv")})
    assert empty.status_code == 400

    wrong_header = client.post(
        f"{API}/import/granular",
        headers=headers,
        files={"file": ("wrong.csv", b"Code,Quantity\nSIM-1,2\n", "text/csv")},
    )
    assert wrong_header.status_code == 400
    assert wrong_header.json()["detail"].startswith("Unexpected header.")

    clean = client.post(
        f"{API}/import/yearly",
        headers=headers,
        files={"file": ("ok.csv", b"ProjectCode,Source,Year,TotalQuantity,Remarks\n", "text/csv")},
    ).json()
    assert clean["accepted"] == 0
    assert clean["error_csv_base64"] is None


def test_overview_hides_ineligible_projects_and_scopes_kpis(client: TestClient, db_session: Session) -> None:
    headers = principal_headers(db_session, HOD, AppRole.HOD)
    alpha = create_project(db_session, code="SIM-1", name="alpha simulator")
    bravo = create_project(db_session, code="SIM-2", name="Bravo simulator")
    retired = create_project(db_session, code="SIM-3", name="Retired simulator")
    for project, source, quantity in ((alpha, "ABW515", 5), (bravo, "SDD", 7), (retired, "SDD", 10)):
        response = client.post(
            f"{API}/yearly",
            headers=headers,
            json={"project_id": str(project.id), "source": source, "year": 2023, "total_quantity": quantity},
        )
        assert response.status_code == 201, response.text
    retired.is_archived = True
    db_session.commit()

    everything = client.get(f"{API}/overview", headers=headers).json()
    assert [row["project_code"] for row in everything["items"]] == ["SIM-1", "SIM-2"]
    assert everything["kpis"]["all_time"] == {"projects": 2, "total": 12, "sdd": 7, "abw515": 5}

    abw = client.get(f"{API}/overview?source=ABW515", headers=headers).json()
    assert abw["total"] == 1
    assert abw["kpis"]["all_time"] == {"projects": 1, "total": 5, "sdd": 0, "abw515": 5}

    other_year = client.get(f"{API}/overview?year=2022", headers=headers).json()
    assert other_year["items"] == []
    assert other_year["kpis"]["all_time"] == {"projects": 0, "total": 0, "sdd": 0, "abw515": 0}


def test_page_sizes_are_capped(client: TestClient, db_session: Session, seeded: dict[str, object]) -> None:
    headers = seeded["headers"]
    service = ProliferationReportingService(db_session)

    assert service.overview(OverviewQuery(page_size=500))["page_size"] == 100
    ledger = service.run_report(ReportQuery(kind=ProliferationReportKind.GRANULAR_LEDGER, page_size=1000))
    assert ledger.page_size == 200

    assert client.get(f"{API}/overview?page_size=101", headers=headers).status_code == 422
    assert client.get(f"{API}/reports/GranularLedger?page_size=201", headers=headers).status_code == 422


def test_report_export_row_cap(
    client: TestClient, seeded: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(proliferation_reporting_service, "MAX_EXPORT_ROWS", 2)

    exported = client.get(f"{API}/reports/GranularLedger/export", headers=seeded["headers"])

    assert exported.status_code == 200
    sheet = load_workbook(io.BytesIO(exported.content))["Report"]
    assert sheet.max_row == 3


def test_project_totals_export(client: TestClient, seeded: dict[str, object]) -> None:
    headers = seeded["headers"]

    exported = client.get(f"{API}/export/projects", headers=headers)

    assert exported.status_code == 200
    assert 'filename="proliferation-projects-all-sources-all-' in exported.headers["content-disposition"]
    workbook = load_workbook(io.BytesIO(exported.content))
    assert workbook.sheetnames == ["All Projects", "Project By Year", "Project By Unit", "Unit Projects", "Filters"]
    assert list(workbook["All Projects"].iter_rows(min_row=2, values_only=True)) == [
        ("Alpha simulator", "SIM-1", 20, 15, 5),
        ("Bravo simulator", "SIM-2", 4, 4, 0),
    ]
    assert list(workbook["Unit Projects"].iter_rows(min_row=2, values_only=True)) == [
        ("12 Armoured Regiment", "Alpha simulator", "SIM-1"),
        ("12 Armoured Regiment", "Bravo simulator", "SIM-2"),
        ("7 Field Regiment", "Alpha simulator", "SIM-1"),
    ]

    abw = client.get(f"{API}/export/projects?source=ABW 515&year=2022", headers=headers)
    assert 'filename="proliferation-projects-abw-515-years-2022-' in abw.headers["content-disposition"]
    rows = list(load_workbook(io.BytesIO(abw.content))["All Projects"].iter_rows(min_row=2, values_only=True))
    assert rows == [("Alpha simulator", "SIM-1", 5, 0, 5)]

    mixed = client.get(f"{API}/export/projects?year=2023&from_date=2023-01-01", headers=headers)
    assert mixed.status_code == 400
    assert mixed.json()["detail"] == "Choose either specific years or a date range, not both."
