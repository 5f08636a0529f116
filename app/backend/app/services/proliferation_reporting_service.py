"""Read-side proliferation reporting: summary, overview, reports and export."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.entities import ApprovalStatus, Project, ProjectLifecycleStatus, ProliferationSource
from app.repositories.proliferation_repository import ComboKey, ProliferationRepository
from app.services.common import XLSX_MEDIA_TYPE, ExportFilePayload, export_stamp, iso_or_none
from app.services.exports import SheetSpec, build_workbook, filters_sheet
from app.services.proliferation_service import EffectiveCombo, build_effective_combos

LOGGER = logging.getLogger(__name__)

DEFAULT_OVERVIEW_PAGE_SIZE = 20
MAX_OVERVIEW_PAGE_SIZE = 100
DEFAULT_REPORT_PAGE_SIZE = 50
MAX_REPORT_PAGE_SIZE = 200
MAX_EXPORT_ROWS = 100_000

SOURCE_LABELS = {
    ProliferationSource.SDD: "SDD",
    ProliferationSource.ABW515: "ABW 515",
}


class ProliferationReportKind(str, Enum):
    PROJECT_TO_UNITS = "ProjectToUnits"
    UNIT_TO_PROJECTS = "UnitToProjects"
    PROJECT_COVERAGE_SUMMARY = "ProjectCoverageSummary"
    GRANULAR_LEDGER = "GranularLedger"
    YEARLY_RECONCILIATION = "YearlyReconciliation"


@dataclass(slots=True)
class OverviewQuery:
    source: ProliferationSource | None = None
    years: list[int] = field(default_factory=list)
    from_date: date | None = None
    to_date: date | None = None
    search: str | None = None
    approval_status: ApprovalStatus | None = None
    page: int = 1
    page_size: int = DEFAULT_OVERVIEW_PAGE_SIZE


@dataclass(slots=True)
class ReportQuery:
    kind: ProliferationReportKind
    source: ProliferationSource | None = None
    project_id: UUID | None = None
    unit_name: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    approval_status: str | None = None
    page: int = 1
    page_size: int = DEFAULT_REPORT_PAGE_SIZE


@dataclass(slots=True)
class ProjectExportQuery:
    source: ProliferationSource | None = None
    years: list[int] = field(default_factory=list)
    from_date: date | None = None
    to_date: date | None = None
    search: str | None = None


@dataclass(slots=True)
class ReportPage:
    kind: ProliferationReportKind
    columns: list[tuple[str, str]]
    rows: list[dict[str, object]]
    total: int
    page: int
    page_size: int


REPORT_COLUMNS: dict[ProliferationReportKind, list[tuple[str, str]]] = {
    ProliferationReportKind.PROJECT_TO_UNITS: [
        ("project_name", "Project"),
        ("project_code", "Code"),
        ("source_label", "Source"),
        ("unit_name", "Unit"),
        ("proliferation_date", "Proliferation date"),
        ("year", "Year"),
        ("quantity", "Quantity"),
        ("remarks", "Remarks"),
        ("approval_status", "Status"),
    ],
    ProliferationReportKind.UNIT_TO_PROJECTS: [
        ("unit_name", "Unit"),
        ("project_name", "Project"),
        ("project_code", "Code"),
        ("source_label", "Source"),
        ("proliferation_date", "Proliferation date"),
        ("year", "Year"),
        ("quantity", "Quantity"),
        ("remarks", "Remarks"),
        ("approval_status", "Status"),
    ],
    ProliferationReportKind.PROJECT_COVERAGE_SUMMARY: [
        ("project_name", "Project"),
        ("project_code", "Code"),
        ("source_label", "Source"),
        ("total_quantity", "Total quantity"),
        ("unique_units", "Unique units"),
        ("first_date", "First proliferation date"),
        ("last_date", "Last proliferation date"),
    ],
    ProliferationReportKind.GRANULAR_LEDGER: [
        ("project_name", "Project"),
        ("project_code", "Code"),
        ("source_label", "Source"),
        ("proliferation_date", "Proliferation date"),
        ("unit_name", "Unit"),
        ("simulator_name", "Simulator"),
        ("quantity", "Quantity"),
        ("remarks", "Remarks"),
        ("approval_status", "Status"),
    ],
    ProliferationReportKind.YEARLY_RECONCILIATION: [
        ("project_name", "Project"),
        ("project_code", "Code"),
        ("source_label", "Source"),
        ("year", "Year"),
        ("yearly_approved_total", "Yearly approved total"),
        ("granular_approved_total", "Granular approved total"),
        ("preference_mode", "Preference mode"),
        ("effective_total", "Effective total"),
        ("variance", "Variance"),
    ],
}


def parse_report_kind(value: str) -> ProliferationReportKind:
    normalized = value.strip().replace("-", "").replace("_", "").lower()
    for kind in ProliferationReportKind:
        if kind.value.lower() == normalized:
            return kind
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown report kind.")


def _split_totals(combos: list[EffectiveCombo]) -> dict[str, int]:
    sdd = sum(combo.effective for combo in combos if combo.source is ProliferationSource.SDD)
    abw515 = sum(combo.effective for combo in combos if combo.source is ProliferationSource.ABW515)
    return {"total": sdd + abw515, "sdd": sdd, "abw515": abw515}


def _is_eligible(project: Project) -> bool:
    return (
        project.lifecycle_status is ProjectLifecycleStatus.COMPLETED
        and not project.is_archived
        and not project.is_deleted
    )


def _file_segment(value: str | None, fallback: str) -> str:
    cleaned = "".join(ch if ch.isalnum() else "-" for ch in (value or "").strip().lower()).strip("-")
    return cleaned or fallback


class ProliferationReportingService:
    """Aggregations over approved proliferation data."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ProliferationRepository(db)

    def _combos(self, project_id: UUID | None = None) -> list[EffectiveCombo]:
        return build_effective_combos(
            self.repo.approved_yearly_totals(project_id),
            self.repo.approved_granular_totals(project_id),
            self.repo.preferences_by_combo(project_id),
        )

    # ---------- Summary ----------
    def summary(self) -> dict[str, object]:
        combos = [combo for combo in self._combos() if combo.effective > 0]
        projects = self.repo.projects_by_ids({combo.project_id for combo in combos})

        by_project: dict[UUID, list[EffectiveCombo]] = defaultdict(list)
        by_year: dict[int, list[EffectiveCombo]] = defaultdict(list)
        by_project_year: dict[tuple[UUID, int], list[EffectiveCombo]] = defaultdict(list)
        for combo in combos:
            by_project[combo.project_id].append(combo)
            by_year[combo.year].append(combo)
            by_project_year[(combo.project_id, combo.year)].append(combo)

        project_rows = []
        for project_id, items in by_project.items():
            project = projects.get(project_id)
            project_rows.append(
                {
                    "project_id": str(project_id),
                    "project_code": project.code if project else None,
                    "project_name": project.name if project else None,
                    **_split_totals(items),
                }
            )
        project_rows.sort(key=lambda row: (-row["total"], row["project_name"] or "", row["project_code"] or ""))

        year_rows = [{"year": year, **_split_totals(items)} for year, items in by_year.items()]
        year_rows.sort(key=lambda row: -row["year"])

        project_year_rows = []
        for (project_id, year), items in by_project_year.items():
            project = projects.get(project_id)
            project_year_rows.append(
                {
                    "project_id": str(project_id),
                    "project_code": project.code if project else None,
                    "project_name": project.name if project else None,
                    "year": year,
                    **_split_totals(items),
                }
            )
        project_year_rows.sort(key=lambda row: (-row["year"], row["project_name"] or "", row["project_code"] or ""))

        return {
            "totals": _split_totals(combos),
            "by_project": project_rows,
            "by_year": year_rows,
            "by_project_year": project_year_rows,
        }

    # ---------- Overview ----------
    def _kpis(self, combos: list[EffectiveCombo], *, min_year: int | None = None) -> dict[str, int]:
        selected = [
            combo for combo in combos if combo.effective > 0 and (min_year is None or combo.year >= min_year)
        ]
        return {"projects": len({combo.project_id for combo in selected}), **_split_totals(selected)}

    def overview(self, query: OverviewQuery) -> dict[str, object]:
        if query.from_date and query.to_date and query.from_date > query.to_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The start date must be on or before the end date.",
            )
        page = max(query.page, 1)
        page_size = query.page_size if query.page_size >= 1 else DEFAULT_OVERVIEW_PAGE_SIZE
        page_size = min(page_size, MAX_OVERVIEW_PAGE_SIZE)

        combos = self._combos()
        effective_by_key: dict[ComboKey, int] = {combo.key: combo.effective for combo in combos}

        rows: list[dict[str, object]] = []
        listed_keys: set[ComboKey] = set()
        yearly_rows = self.repo.list_yearly(
            source=query.source,
            approval_status=query.approval_status,
            years=query.years or None,
            year_from=query.from_date.year if query.from_date and not query.years else None,
            year_to=query.to_date.year if query.to_date and not query.years else None,
            search=query.search,
        )
        for entry, project in yearly_rows:
            if not _is_eligible(project):
                continue
            listed_keys.add((project.id, entry.source, entry.year))
            rows.append(
                {
                    "id": str(entry.id),
                    "data_type": "Yearly",
                    "project_id": str(project.id),
                    "project_code": project.code,
                    "project_name": project.name,
                    "source": entry.source.value,
                    "source_label": SOURCE_LABELS[entry.source],
                    "year": entry.year,
                    "proliferation_date": None,
                    "unit_name": None,
                    "simulator_name": None,
                    "quantity": entry.total_quantity,
                    "effective_total": effective_by_key.get((project.id, entry.source, entry.year), 0),
                    "approval_status": entry.approval_status.value,
                    "remarks": entry.remarks,
                    "row_version": entry.row_version,
                }
            )

        if query.source in (None, ProliferationSource.SDD):
            granular_rows = self.repo.list_granular(
                approval_status=query.approval_status,
                from_date=query.from_date if not query.years else None,
                to_date=query.to_date if not query.years else None,
                search=query.search,
            )
            for entry, project in granular_rows:
                year = entry.proliferation_date.year
                if not _is_eligible(project) or (query.years and year not in query.years):
                    continue
                listed_keys.add((project.id, entry.source, year))
                rows.append(
                    {
                        "id": str(entry.id),
                        "data_type": "Granular",
                        "project_id": str(project.id),
                        "project_code": project.code,
                        "project_name": project.name,
                        "source": entry.source.value,
                        "source_label": SOURCE_LABELS[entry.source],
                        "year": year,
                        "proliferation_date": entry.proliferation_date.isoformat(),
                        "unit_name": entry.unit_name,
                        "simulator_name": entry.simulator_name,
                        "quantity": entry.quantity,
                        "effective_total": effective_by_key.get((project.id, entry.source, year), 0),
                        "approval_status": entry.approval_status.value,
                        "remarks": entry.remarks,
                        "row_version": entry.row_version,
                    }
                )

        rows.sort(
            key=lambda row: (
                -row["year"],
                row["project_name"].lower(),
                row["source"],
                row["data_type"],
                row["proliferation_date"] or "",
            )
        )
        listed_combos = [combo for combo in combos if combo.key in listed_keys]
        start = (page - 1) * page_size
        recent_from = datetime.utcnow().year - 1
        return {
            "items": rows[start : start + page_size],
            "total": len(rows),
            "page": page,
            "page_size": page_size,
            "kpis": {
                "all_time": self._kpis(listed_combos),
                "recent": {"from_year": recent_from, **self._kpis(listed_combos, min_year=recent_from)},
            },
        }

    # ---------- Reports ----------
    @staticmethod
    def _status_filter(value: str | None) -> ApprovalStatus | None:
        normalized = (value or "").strip().lower()
        if normalized == "all":
            return None
        if normalized == ApprovalStatus.PENDING.value:
            return ApprovalStatus.PENDING
        if normalized == ApprovalStatus.REJECTED.value:
            return ApprovalStatus.REJECTED
        return ApprovalStatus.APPROVED

    def _granular_base(self, query: ReportQuery) -> list[dict[str, object]]:
        unit_filter = (query.unit_name or "").strip().lower()
        rows = []
        for entry, project in self.repo.list_granular(
            project_id=query.project_id,
            approval_status=self._status_filter(query.approval_status),
            from_date=query.from_date,
            to_date=query.to_date,
        ):
            if not _is_eligible(project):
                continue
            if query.source is not None and entry.source is not query.source:
                continue
            if unit_filter and unit_filter not in entry.unit_name.lower():
                continue
            rows.append(
                {
                    "project_id": str(project.id),
                    "project_name": project.name,
                    "project_code": project.code,
                    "source": entry.source.value,
                    "source_label": SOURCE_LABELS[entry.source],
                    "unit_name": entry.unit_name,
                    "simulator_name": entry.simulator_name,
                    "proliferation_date": entry.proliferation_date,
                    "year": entry.proliferation_date.year,
                    "quantity": entry.quantity,
                    "remarks": entry.remarks,
                    "approval_status": entry.approval_status.value,
                }
            )
        return rows

    def _project_to_units(self, query: ReportQuery) -> list[dict[str, object]]:
        if query.project_id is None:
            return []
        rows = self._granular_base(query)
        rows.sort(key=lambda row: row["unit_name"])
        rows.sort(key=lambda row: row["proliferation_date"], reverse=True)
        return rows

    def _unit_to_projects(self, query: ReportQuery) -> list[dict[str, object]]:
        if not (query.unit_name or "").strip():
            return []
        rows = self._granular_base(query)
        rows.sort(key=lambda row: row["project_name"])
        rows.sort(key=lambda row: row["proliferation_date"], reverse=True)
        return rows

    def _granular_ledger(self, query: ReportQuery) -> list[dict[str, object]]:
        rows = self._granular_base(query)
        rows.sort(key=lambda row: (row["project_name"], row["unit_name"]))
        rows.sort(key=lambda row: row["proliferation_date"], reverse=True)
        return rows

    def _project_coverage_summary(self, query: ReportQuery) -> list[dict[str, object]]:
        groups: dict[tuple[str, str], list[dict[str, object]]] = defaultdict(list)
        for row in self._granular_base(query):
            groups[(row["project_id"], row["source"])].append(row)

        summary_rows = []
        for items in groups.values():
            first = items[0]
            dates = [item["proliferation_date"] for item in items]
            summary_rows.append(
                {
                    "project_id": first["project_id"],
                    "project_name": first["project_name"],
                    "project_code": first["project_code"],
                    "source": first["source"],
                    "source_label": first["source_label"],
                    "total_quantity": sum(int(item["quantity"]) for item in items),
                    "unique_units": len({str(item["unit_name"]).lower() for item in items}),
                    "first_date": min(dates),
                    "last_date": max(dates),
                }
            )
        summary_rows.sort(key=lambda row: (row["project_name"], row["source"]))
        return summary_rows

    def _yearly_reconciliation(self, query: ReportQuery) -> list[dict[str, object]]:
        combos = self._combos(query.project_id)
        projects = self.repo.projects_by_ids({combo.project_id for combo in combos})
        rows = []
        for combo in combos:
            project = projects.get(combo.project_id)
            if project is None or not _is_eligible(project):
                continue
            if query.source is not None and combo.source is not query.source:
                continue
            rows.append(
                {
                    "project_id": str(project.id),
                    "project_name": project.name,
                    "project_code": project.code,
                    "source": combo.source.value,
                    "source_label": SOURCE_LABELS[combo.source],
                    "year": combo.year,
                    "yearly_approved_total": combo.yearly,
                    "granular_approved_total": combo.granular,
                    "preference_mode": combo.mode.value if combo.mode else "use_yearly_and_granular",
                    "effective_total": combo.effective,
                    "variance": combo.variance,
                }
            )
        rows.sort(key=lambda row: row["project_name"])
        rows.sort(key=lambda row: row["year"], reverse=True)
        return rows

    def _report_rows(self, query: ReportQuery) -> list[dict[str, object]]:
        if (
            query.kind is not ProliferationReportKind.YEARLY_RECONCILIATION
            and query.from_date
            and query.to_date
            and query.from_date > query.to_date
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="From date must be on or before To date.",
            )

        report_dispatch = {
            ProliferationReportKind.PROJECT_TO_UNITS: self._project_to_units,
            ProliferationReportKind.UNIT_TO_PROJECTS: self._unit_to_projects,
            ProliferationReportKind.PROJECT_COVERAGE_SUMMARY: self._project_coverage_summary,
            ProliferationReportKind.GRANULAR_LEDGER: self._granular_ledger,
            ProliferationReportKind.YEARLY_RECONCILIATION: self._yearly_reconciliation,
        }
        return report_dispatch[query.kind](query)

    def run_report(self, query: ReportQuery) -> ReportPage:
        page = max(query.page, 1)
        page_size = query.page_size if query.page_size >= 1 else DEFAULT_REPORT_PAGE_SIZE
        page_size = min(page_size, MAX_REPORT_PAGE_SIZE)

        rows = self._report_rows(query)
        start = (page - 1) * page_size
        return ReportPage(
            kind=query.kind,
            columns=REPORT_COLUMNS[query.kind],
            rows=rows[start : start + page_size],
            total=len(rows),
            page=page,
            page_size=page_size,
        )

    @staticmethod
    def serialize_report(report: ReportPage) -> dict[str, object]:
        def _json_value(value: object) -> object:
            if isinstance(value, date):
                return value.isoformat()
            return value

        return {
            "report": report.kind.value,
            "columns": [{"key": key, "label": label} for key, label in report.columns],
            "rows": [{key: _json_value(value) for key, value in row.items()} for row in report.rows],
            "total": report.total,
            "page": report.page,
            "page_size": report.page_size,
        }

    def export_report(self, query: ReportQuery) -> ExportFilePayload:
        rows = self._report_rows(query)[:MAX_EXPORT_ROWS]
        columns = REPORT_COLUMNS[query.kind]
        generated_at = datetime.utcnow()

        project_label = ""
        if query.project_id is not None:
            project = self.repo.get_project(query.project_id)
            if project is not None:
                project_label = f"{project.name} ({project.code})"
        status_filter = self._status_filter(query.approval_status)
        filters = {
            "Report": query.kind.value,
            "Source": SOURCE_LABELS[query.source] if query.source else "All",
            "Approval status": status_filter.value if status_filter else "All",
            "Project": project_label,
            "Unit name": (query.unit_name or "").strip(),
            "From": iso_or_none(query.from_date) or "",
            "To": iso_or_none(query.to_date) or "",
        }

        content = build_workbook(
            [
                SheetSpec(
                    title="Report",
                    headers=[label for _, label in columns],
                    rows=[[row.get(key) for key, _ in columns] for row in rows],
                ),
                filters_sheet(filters, generated_at=generated_at),
            ]
        )
        LOGGER.info("proliferation_report_exported kind=%s rows=%s", query.kind.value, len(rows))
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=f"proliferation-report-{query.kind.value.lower()}-{export_stamp(generated_at)}.xlsx",
            content=content,
        )


    # ---------- Project export ----------
    def export_projects(self, query: ProjectExportQuery, *, requested_by: str) -> ExportFilePayload:
        """Approved quantities per project, project-year and unit as a four-sheet workbook."""

        years = sorted({year for year in query.years if year > 0}, reverse=True)
        if years and (query.from_date or query.to_date):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Choose either specific years or a date range, not both.",
            )
        if query.from_date and query.to_date and query.from_date > query.to_date:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The date range is invalid.")
        search = (query.search or "").strip() or None

        by_project: dict[UUID, dict[str, int]] = defaultdict(lambda: {"sdd": 0, "abw515": 0})
        by_project_year: dict[tuple[UUID, int], dict[str, int]] = defaultdict(lambda: {"sdd": 0, "abw515": 0})
        by_project_unit: dict[tuple[UUID, str], dict[str, int]] = defaultdict(lambda: {"sdd": 0, "abw515": 0})
        unit_projects: dict[str, dict[UUID, Project]] = defaultdict(dict)
        unit_names: dict[str, str] = {}
        projects: dict[UUID, Project] = {}

        def _add(totals: dict[str, int], source: ProliferationSource, quantity: int) -> None:
            totals["sdd" if source is ProliferationSource.SDD else "abw515"] += quantity

        for entry, project in self.repo.list_yearly(
            source=query.source,
            approval_status=ApprovalStatus.APPROVED,
            years=years or None,
            year_from=query.from_date.year if query.from_date else None,
            year_to=query.to_date.year if query.to_date else None,
            search=search,
        ):
            if not _is_eligible(project):
                continue
            projects[project.id] = project
            _add(by_project[project.id], entry.source, entry.total_quantity)
            _add(by_project_year[(project.id, entry.year)], entry.source, entry.total_quantity)

        for entry, project in self.repo.list_granular(
            approval_status=ApprovalStatus.APPROVED,
            from_date=query.from_date,
            to_date=query.to_date,
            search=search,
        ):
            year = entry.proliferation_date.year
            if not _is_eligible(project) or (query.source and entry.source is not query.source):
                continue
            if years and year not in years:
                continue
            projects[project.id] = project
            unit_key = entry.unit_name.strip().lower()
            unit_names.setdefault(unit_key, entry.unit_name.strip())
            _add(by_project[project.id], entry.source, entry.quantity)
            _add(by_project_year[(project.id, year)], entry.source, entry.quantity)
            _add(by_project_unit[(project.id, unit_key)], entry.source, entry.quantity)
            unit_projects[unit_key][project.id] = project

        def _totals(values: dict[str, int]) -> list[int]:
            return [values["sdd"] + values["abw515"], values["sdd"], values["abw515"]]

        def _name_key(project: Project) -> tuple[str, str]:
            return project.name.lower(), (project.code or "").lower()

        project_rows = sorted(
            by_project.items(),
            key=lambda item: (-sum(item[1].values()), *_name_key(projects[item[0]])),
        )
        year_rows = sorted(
            by_project_year.items(),
            key=lambda item: (-item[0][1], *_name_key(projects[item[0][0]])),
        )
        unit_rows = sorted(
            by_project_unit.items(),
            key=lambda item: (projects[item[0][0]].name.lower(), item[0][1], (projects[item[0][0]].code or "").lower()),
        )
        mapping_rows = [
            [unit_names[unit_key], project.name, project.code]
            for unit_key in sorted(unit_projects)
            for project in sorted(unit_projects[unit_key].values(), key=_name_key)
        ]

        generated_at = datetime.utcnow()
        filters = {
            "Requested by": requested_by,
            "Years": years,
            "Date range": (
                f"{iso_or_none(query.from_date) or 'start'} to {iso_or_none(query.to_date) or 'end'}"
                if query.from_date or query.to_date
                else ""
            ),
            "Source": SOURCE_LABELS[query.source] if query.source else "All sources",
            "Search": search or "",
        }
        content = build_workbook(
            [
                SheetSpec(
                    title="All Projects",
                    headers=["Project", "Project code", "Total", "SDD", "ABW 515"],
                    rows=[[projects[pid].name, projects[pid].code, *_totals(values)] for pid, values in project_rows],
                ),
                SheetSpec(
                    title="Project By Year",
                    headers=["Project", "Project code", "Year", "Total", "SDD", "ABW 515"],
                    rows=[
                        [projects[pid].name, projects[pid].code, year, *_totals(values)]
                        for (pid, year), values in year_rows
                    ],
                ),
                SheetSpec(
                    title="Project By Unit",
                    headers=["Project", "Project code", "Unit", "Total", "SDD", "ABW 515"],
                    rows=[
                        [projects[pid].name, projects[pid].code, unit_names[unit_key], *_totals(values)]
                        for (pid, unit_key), values in unit_rows
                    ],
                ),
                SheetSpec(title="Unit Projects", headers=["Unit", "Project", "Project code"], rows=mapping_rows),
                filters_sheet(filters, generated_at=generated_at),
            ]
        )

        if years:
            range_segment = "years-" + "-".join(str(year) for year in years)
        elif query.from_date or query.to_date:
            from_segment = query.from_date.strftime("%Y%m%d") if query.from_date else "start"
            to_segment = query.to_date.strftime("%Y%m%d") if query.to_date else "end"
            range_segment = f"range-{from_segment}-to-{to_segment}"
        else:
            range_segment = "all"
        source_segment = _file_segment(SOURCE_LABELS[query.source] if query.source else None, "all-sources")
        LOGGER.info("proliferation_projects_exported projects=%s requested_by=%s", len(project_rows), requested_by)
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=f"proliferation-projects-{source_segment}-{range_segment}-{export_stamp(generated_at)}.xlsx",
            content=content,
        )
