"""CSV import for yearly and granular proliferation submissions."""

from __future__ import annotations

import base64
import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import SUBMIT_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.services.common import record_audit
from app.services.proliferation_service import (
    EntryKind,
    GranularEntryData,
    ProliferationService,
    ProliferationValidationError,
    YearlyEntryData,
    parse_source,
)

LOGGER = logging.getLogger(__name__)

YEARLY_HEADER = ["ProjectCode", "Source", "Year", "TotalQuantity", "Remarks"]
GRANULAR_HEADER = ["ProjectCode", "SimulatorName", "UnitName", "ProliferationDate", "Quantity", "Remarks"]


@dataclass(slots=True)
class ImportRowError:
    row_number: int
    message: str


@dataclass(slots=True)
class ImportResult:
    kind: EntryKind
    accepted: int = 0
    errors: list[ImportRowError] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return len(self.errors)

    def error_csv_base64(self) -> str | None:
        if not self.errors:
            return None
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["RowNumber", "Error"])
        for error in self.errors:
            writer.writerow([error.row_number, error.message])
        return base64.b64encode(buffer.getvalue().encode("utf-8")).decode("ascii")


class ProliferationImportService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()
        self.proliferation = ProliferationService(db)

    @staticmethod
    def serialize_result(result: ImportResult) -> dict[str, object]:
        return {
            "kind": result.kind.value,
            "accepted": result.accepted,
            "rejected": result.rejected,
            "errors": [{"row_number": error.row_number, "message": error.message} for error in result.errors],
            "error_csv_base64": result.error_csv_base64(),
        }

    def _read_rows(self, content: bytes, expected_header: list[str]) -> list[tuple[int, list[str]]]:
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The uploaded file is empty.")
        if len(content) > self.settings.proliferation_import_max_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="The uploaded file exceeds the maximum allowed size.",
            )
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The uploaded file must be UTF-8 encoded CSV.",
            ) from exc

        records = list(csv.reader(io.StringIO(text)))
        if not records or not any(cell.strip() for cell in records[0]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The uploaded file is empty.")

        header = [cell.strip().lower() for cell in records[0]]
        if header[: len(expected_header)] != [name.lower() for name in expected_header]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unexpected header. Expected: {','.join(expected_header)}",
            )

        rows = []
        for index, record in enumerate(records[1:], start=2):
            if not any(cell.strip() for cell in record):
                continue
            padded = [cell.strip() for cell in record] + [""] * (len(expected_header) - len(record))
            rows.append((index, padded))
        return rows

    def _import(
        self,
        *,
        context: RequestUserContext,
        kind: EntryKind,
        rows: list[tuple[int, list[str]]],
        stage,
    ) -> ImportResult:
        result = ImportResult(kind=kind)
        for row_number, cells in rows:
            try:
                stage(cells)
            except ProliferationValidationError as error:
                result.errors.append(ImportRowError(row_number=row_number, message=error.message))
                continue
            result.accepted += 1

        record_audit(
            self.db,
            context=context,
            entity_name=f"Proliferation{kind.value.capitalize()}",
            entity_id="import",
            action_type="imported",
            payload={"accepted": result.accepted, "rejected": result.rejected},
        )
        self.db.commit()
        LOGGER.info(
            "proliferation_import_completed kind=%s accepted=%s rejected=%s",
            kind.value,
            result.accepted,
            result.rejected,
        )
        return result

    def _project_id(self, code: str):
        if not code:
            raise ProliferationValidationError("ProjectCode is required.")
        project = self.proliferation.repo.get_project_by_code(code)
        if project is None:
            raise ProliferationValidationError(f'Project "{code}" was not found.')
        return project.id

    @staticmethod
    def _parse_int(value: str, column: str) -> int:
        try:
            return int(value)
        except ValueError as exc:
            raise ProliferationValidationError(f"{column} must be a whole number.") from exc

    def import_yearly(self, *, context: RequestUserContext, content: bytes) -> ImportResult:
        ensure_role(context, SUBMIT_ROLES)
        rows = self._read_rows(content, YEARLY_HEADER)

        def stage(cells: list[str]) -> None:
            project_code, source_value, year_value, quantity_value, remarks = cells[:5]
            project_id = self._project_id(project_code)
            source = parse_source(source_value)
            if source is None:
                raise ProliferationValidationError(f'Unknown source "{source_value}".')
            self.proliferation.stage_yearly(
                context=context,
                data=YearlyEntryData(
                    project_id=project_id,
                    source=source,
                    year=self._parse_int(year_value, "Year"),
                    total_quantity=self._parse_int(quantity_value, "TotalQuantity"),
                    remarks=remarks or None,
                ),
            )

        return self._import(context=context, kind=EntryKind.YEARLY, rows=rows, stage=stage)

    def import_granular(self, *, context: RequestUserContext, content: bytes) -> ImportResult:
        ensure_role(context, SUBMIT_ROLES)
        rows = self._read_rows(content, GRANULAR_HEADER)

        def stage(cells: list[str]) -> None:
            project_code, simulator_name, unit_name, date_value, quantity_value, remarks = cells[:6]
            project_id = self._project_id(project_code)
            try:
                proliferation_date = date.fromisoformat(date_value)
            except ValueError as exc:
                raise ProliferationValidationError("ProliferationDate must be in YYYY-MM-DD format.") from exc
            self.proliferation.stage_granular(
                context=context,
                data=GranularEntryData(
                    project_id=project_id,
                    simulator_name=simulator_name,
                    unit_name=unit_name,
                    proliferation_date=proliferation_date,
                    quantity=self._parse_int(quantity_value, "Quantity"),
                    remarks=remarks or None,
                ),
            )

        return self._import(context=context, kind=EntryKind.GRANULAR, rows=rows, stage=stage)
