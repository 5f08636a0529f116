"""Read-side training tracker: search, KPIs, details and workbook export."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.entities import TraineeCategory, Training
from app.repositories.training_repository import TrainingRepository, TrainingSearchFilters
from app.services.common import XLSX_MEDIA_TYPE, ExportFilePayload, export_stamp, iso_or_none
from app.services.exports import SheetSpec, build_workbook, filters_sheet
from app.services.training_service import TrainingService

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100

CATEGORY_LABELS = {
    TraineeCategory.OFFICER: "Officer",
    TraineeCategory.JCO: "JCO",
    TraineeCategory.OTHER_RANK: "OR",
}

SUMMARY_HEADERS = [
    "Training type",
    "Start date",
    "End date",
    "Month",
    "Year",
    "Projects",
    "Officers",
    "JCOs",
    "ORs",
    "Total",
    "Counter source",
    "Notes",
]
ROSTER_HEADERS = ["Training type", "Period", "Army number", "Rank", "Name", "Unit", "Category"]


@dataclass(slots=True)
class TrainingQuery:
    training_type_ids: list[UUID] = field(default_factory=list)
    project_id: UUID | None = None
    category: int | None = None
    from_date: date | None = None
    to_date: date | None = None
    search: str | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def training_period(training: Training) -> tuple[date | None, date | None]:
    """Return the date window a training covers; month/year maps to month bounds."""

    if training.start_date is not None:
        return training.start_date, training.end_date or training.start_date
    if training.training_month and training.training_year:
        last_day = calendar.monthrange(training.training_year, training.training_month)[1]
        return (
            date(training.training_year, training.training_month, 1),
            date(training.training_year, training.training_month, last_day),
        )
    return None, None


def _overlaps(training: Training, from_date: date | None, to_date: date | None) -> bool:
    if from_date is None and to_date is None:
        return True
    start, end = training_period(training)
    if start is None or end is None:
        return False
    if from_date is not None and end < from_date:
        return False
    if to_date is not None and start > to_date:
        return False
    return True


class TrainingReportingService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrainingRepository(db)

    def _matching(self, query: TrainingQuery) -> list[tuple[Training, str]]:
        if query.from_date and query.to_date and query.from_date > query.to_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The start date must be on or before the end date.",
            )
        rows = self.repo.search(
            TrainingSearchFilters(
                training_type_ids=query.training_type_ids,
                project_id=query.project_id,
                category=query.category,
                search=query.search,
            )
        )
        matching = [row for row in rows if _overlaps(row[0], query.from_date, query.to_date)]
        matching.sort(key=lambda row: training_period(row[0])[0] or date.min, reverse=True)
        return matching

    @staticmethod
    def _kpis(rows: list[tuple[Training, str]]) -> dict[str, object]:
        by_type: dict[str, dict[str, object]] = {}
        for training, type_name in rows:
            bucket = by_type.setdefault(
                str(training.training_type_id),
                {"training_type_id": str(training.training_type_id), "name": type_name, "trainings": 0, "total": 0},
            )
            bucket["trainings"] += 1
            bucket["total"] += training.total
        return {
            "trainings": len(rows),
            "officers": sum(training.officers for training, _ in rows),
            "jcos": sum(training.jcos for training, _ in rows),
            "ors": sum(training.ors for training, _ in rows),
            "total": sum(training.total for training, _ in rows),
            "by_type": sorted(by_type.values(), key=lambda item: (-int(item["total"]), str(item["name"]))),
        }

    def search(self, query: TrainingQuery) -> dict[str, object]:
        page = max(query.page, 1)
        page_size = query.page_size if query.page_size >= 1 else DEFAULT_PAGE_SIZE
        page_size = min(page_size, MAX_PAGE_SIZE)

        rows = self._matching(query)
        start = (page - 1) * page_size
        page_rows = rows[start : start + page_size]
        links = self.repo.project_links([training.id for training, _ in page_rows])
        return {
            "items": [
                TrainingService.serialize_training(training, type_name=type_name, projects=links.get(training.id, []))
                for training, type_name in page_rows
            ],
            "total": len(rows),
            "page": page,
            "page_size": page_size,
            "kpis": self._kpis(rows),
        }

    def details(self, *, training_id: UUID) -> dict[str, object]:
        training = self.repo.get(training_id)
        if training is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training not found.")
        training_type = self.repo.get_type(training.training_type_id)
        payload = TrainingService.serialize_training(
            training,
            type_name=training_type.name if training_type else None,
            projects=self.repo.project_links([training.id]).get(training.id, []),
        )
        payload["roster"] = [TrainingService.serialize_trainee(trainee) for trainee in self.repo.list_trainees(training.id)]
        pending = self.repo.pending_delete_request(training.id)
        payload["pending_delete_request"] = TrainingService.serialize_delete_request(pending) if pending else None
        return payload

    def pending_delete_requests(self) -> list[dict[str, object]]:
        return [TrainingService.serialize_delete_request(row) for row in self.repo.list_pending_delete_requests()]

    def export(self, query: TrainingQuery, *, include_roster: bool = False) -> ExportFilePayload:
        rows = self._matching(query)
        training_ids = [training.id for training, _ in rows]
        links = self.repo.project_links(training_ids)

        summary_rows = []
        for training, type_name in rows:
            summary_rows.append(
                [
                    type_name,
                    training.start_date,
                    training.end_date,
                    training.training_month,
                    training.training_year,
                    ", ".join(project.name for project in links.get(training.id, [])),
                    training.officers,
                    training.jcos,
                    training.ors,
                    training.total,
                    training.counter_source.value,
                    training.notes,
                ]
            )
        sheets = [SheetSpec(title="Trainings", headers=SUMMARY_HEADERS, rows=summary_rows)]

        if include_roster:
            roster = self.repo.trainees_for(training_ids)
            roster_rows = []
            for training, type_name in rows:
                start, end = training_period(training)
                period = f"{iso_or_none(start) or ''} to {iso_or_none(end) or ''}"
                for trainee in roster.get(training.id, []):
                    roster_rows.append(
                        [
                            type_name,
                            period,
                            trainee.army_number,
                            trainee.rank,
                            trainee.name,
                            trainee.unit_name,
                            CATEGORY_LABELS[TraineeCategory(trainee.category)],
                        ]
                    )
            sheets.append(SheetSpec(title="Roster", headers=ROSTER_HEADERS, rows=roster_rows))

        generated_at = datetime.utcnow()
        type_names = sorted({type_name for _, type_name in rows}) if query.training_type_ids else []
        sheets.append(
            filters_sheet(
                {
                    "Training types": ", ".join(type_names) or "All",
                    "Project": str(query.project_id) if query.project_id else "All",
                    "Category": CATEGORY_LABELS[TraineeCategory(query.category)] if query.category is not None else "All",
                    "From": iso_or_none(query.from_date) or "",
                    "To": iso_or_none(query.to_date) or "",
                    "Search": (query.search or "").strip(),
                    "Include roster": "Yes" if include_roster else "No",
                },
                generated_at=generated_at,
            )
        )
        LOGGER.info("training_export_generated trainings=%s include_roster=%s", len(rows), include_roster)
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=f"training-tracker-{export_stamp(generated_at)}.xlsx",
            content=build_workbook(sheets),
        )
