"""Application service for proliferation submissions, approvals and preferences.

Yearly entries record a total per project, source and calendar year; granular
entries record individual SDD deployments to a unit on a date. Only approved
entries contribute to totals, and the per-year preference decides how yearly
and granular figures combine into the effective total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import SUBMIT_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.models.entities import (
    ApprovalStatus,
    Project,
    ProjectLifecycleStatus,
    ProliferationGranular,
    ProliferationPreferenceMode,
    ProliferationSource,
    ProliferationYearly,
    ProliferationYearPreference,
)
from app.repositories.proliferation_repository import ComboKey, ProliferationRepository
from app.services.common import bump_row_version, ensure_row_version, iso_or_none, normalize_optional, record_audit

LOGGER = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 3000
MAX_REMARKS_LENGTH = 500
MAX_NAME_LENGTH = 200
MAX_DECISION_NOTES_LENGTH = 1000

ENTRY_CONCURRENCY_MESSAGE = "The entry was modified by another user. Please reload and try again."
PREFERENCE_CONCURRENCY_MESSAGE = "The preference was updated by another user. Please refresh the page and try again."
ABW515_OVERRIDE_MESSAGE = "ABW 515 uses Yearly totals and cannot be overridden."
DUPLICATE_YEARLY_MESSAGE = "An approved yearly total already exists for this project, source and year."

_SOURCE_ALIASES = {
    "sdd": ProliferationSource.SDD,
    "abw515": ProliferationSource.ABW515,
    "515abw": ProliferationSource.ABW515,
}


class EntryKind(str, Enum):
    YEARLY = "yearly"
    GRANULAR = "granular"


class PreferenceOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    CLEARED = "cleared"
    NO_CHANGE = "no_change"


def parse_source(value: str | ProliferationSource | None) -> ProliferationSource | None:
    """Parse a source label, accepting ``515ABW`` and ``ABW 515`` spellings."""

    if value is None:
        return None
    if isinstance(value, ProliferationSource):
        return value
    compact = "".join(value.split()).replace("-", "").replace("_", "").lower()
    return _SOURCE_ALIASES.get(compact)


def effective_total(
    source: ProliferationSource,
    mode: ProliferationPreferenceMode | None,
    *,
    yearly: int,
    granular: int,
) -> int:
    if source is ProliferationSource.ABW515:
        return yearly
    if mode is ProliferationPreferenceMode.USE_YEARLY:
        return yearly
    if mode is ProliferationPreferenceMode.USE_GRANULAR:
        return granular
    if mode is ProliferationPreferenceMode.AUTO:
        return granular if granular > 0 else yearly
    return yearly + granular


@dataclass(slots=True)
class EffectiveCombo:
    project_id: UUID
    source: ProliferationSource
    year: int
    yearly: int
    granular: int
    mode: ProliferationPreferenceMode | None
    effective: int

    @property
    def key(self) -> ComboKey:
        return (self.project_id, self.source, self.year)

    @property
    def variance(self) -> int:
        return self.yearly - self.granular


def build_effective_combos(
    yearly_totals: dict[ComboKey, int],
    granular_totals: dict[ComboKey, int],
    preferences: dict[ComboKey, ProliferationYearPreference],
) -> list[EffectiveCombo]:
    combos: list[EffectiveCombo] = []
    for key in sorted(set(yearly_totals) | set(granular_totals), key=lambda k: (str(k[0]), k[1].value, k[2])):
        project_id, source, year = key
        preference = preferences.get(key)
        mode = preference.mode if preference is not None else None
        yearly = yearly_totals.get(key, 0)
        granular = granular_totals.get(key, 0)
        combos.append(
            EffectiveCombo(
                project_id=project_id,
                source=source,
                year=year,
                yearly=yearly,
                granular=granular,
                mode=mode,
                effective=effective_total(source, mode, yearly=yearly, granular=granular),
            )
        )
    return combos


@dataclass(slots=True)
class YearlyEntryData:
    project_id: UUID
    source: ProliferationSource
    year: int
    total_quantity: int
    remarks: str | None = None
    row_version: str | None = None


@dataclass(slots=True)
class GranularEntryData:
    project_id: UUID
    simulator_name: str
    unit_name: str
    proliferation_date: date
    quantity: int
    remarks: str | None = None
    row_version: str | None = None


@dataclass(slots=True)
class DecisionData:
    approve: bool
    row_version: str
    notes: str | None = None


@dataclass(slots=True)
class PreferenceResult:
    outcome: PreferenceOutcome
    preference: ProliferationYearPreference | None


class ProliferationValidationError(ValueError):
    """Raised for a rejected submission; carries the HTTP status to report."""

    def __init__(self, message: str, *, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProliferationService:
    """Service implementing proliferation submission and reconciliation rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ProliferationRepository(db)
        self.settings = get_settings()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_yearly(entry: ProliferationYearly, project: Project | None = None) -> dict[str, object]:
        return {
            "id": str(entry.id),
            "kind": EntryKind.YEARLY.value,
            "project_id": str(entry.project_id),
            "project_code": project.code if project else None,
            "project_name": project.name if project else None,
            "source": entry.source.value,
            "year": entry.year,
            "total_quantity": entry.total_quantity,
            "remarks": entry.remarks,
            "approval_status": entry.approval_status.value,
            "submitted_by_user_id": str(entry.submitted_by_user_id),
            "approved_by_user_id": str(entry.approved_by_user_id) if entry.approved_by_user_id else None,
            "approved_at": iso_or_none(entry.approved_at),
            "decision_notes": entry.decision_notes,
            "created_at": entry.created_at.isoformat(),
            "updated_at": entry.updated_at.isoformat(),
            "row_version": entry.row_version,
        }

    @staticmethod
    def serialize_granular(entry: ProliferationGranular, project: Project | None = None) -> dict[str, object]:
        return {
            "id": str(entry.id),
            "kind": EntryKind.GRANULAR.value,
            "project_id": str(entry.project_id),
            "project_code": project.code if project else None,
            "project_name": project.name if project else None,
            "source": entry.source.value,
            "simulator_name": entry.simulator_name,
            "unit_name": entry.unit_name,
            "proliferation_date": entry.proliferation_date.isoformat(),
            "quantity": entry.quantity,
            "remarks": entry.remarks,
            "approval_status": entry.approval_status.value,
            "submitted_by_user_id": str(entry.submitted_by_user_id),
            "approved_by_user_id": str(entry.approved_by_user_id) if entry.approved_by_user_id else None,
            "approved_at": iso_or_none(entry.approved_at),
            "decision_notes": entry.decision_notes,
            "created_at": entry.created_at.isoformat(),
            "updated_at": entry.updated_at.isoformat(),
            "row_version": entry.row_version,
        }

    @staticmethod
    def serialize_preference(preference: ProliferationYearPreference) -> dict[str, object]:
        return {
            "id": str(preference.id),
            "project_id": str(preference.project_id),
            "source": preference.source.value,
            "year": preference.year,
            "mode": preference.mode.value,
            "set_by_user_id": str(preference.set_by_user_id),
            "set_at": preference.set_at.isoformat(),
            "row_version": preference.row_version,
        }

    @staticmethod
    def serialize_combo(combo: EffectiveCombo) -> dict[str, object]:
        return {
            "project_id": str(combo.project_id),
            "source": combo.source.value,
            "year": combo.year,
            "yearly_total": combo.yearly,
            "granular_total": combo.granular,
            "preference_mode": combo.mode.value if combo.mode else None,
            "effective_total": combo.effective,
            "variance": combo.variance,
        }

    # ---------- Validation ----------
    def ensure_eligible_project(self, project: Project | None) -> Project:
        if project is None:
            raise ProliferationValidationError("Project not found.", status_code=status.HTTP_404_NOT_FOUND)
        if project.is_deleted or project.is_archived or project.lifecycle_status is not ProjectLifecycleStatus.COMPLETED:
            raise ProliferationValidationError("Proliferation data can only be recorded for completed projects.")
        return project

    @staticmethod
    def _validate_year(year: int) -> None:
        if year < MIN_YEAR or year > MAX_YEAR:
            raise ProliferationValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}.")

    @staticmethod
    def _validate_remarks(remarks: str | None) -> str | None:
        normalized = normalize_optional(remarks)
        if normalized is not None and len(normalized) > MAX_REMARKS_LENGTH:
            raise ProliferationValidationError(f"Remarks cannot exceed {MAX_REMARKS_LENGTH} characters.")
        return normalized

    def validate_yearly(self, data: YearlyEntryData) -> str | None:
        self.ensure_eligible_project(self.repo.get_project(data.project_id))
        self._validate_year(data.year)
        if data.total_quantity < 0:
            raise ProliferationValidationError("Total quantity cannot be negative.")
        return self._validate_remarks(data.remarks)

    def validate_granular(self, data: GranularEntryData) -> tuple[str, str, str | None]:
        self.ensure_eligible_project(self.repo.get_project(data.project_id))
        simulator_name = (data.simulator_name or "").strip()
        unit_name = (data.unit_name or "").strip()
        if not simulator_name:
            raise ProliferationValidationError("Simulator name is required.")
        if len(simulator_name) > MAX_NAME_LENGTH:
            raise ProliferationValidationError(f"Simulator name cannot exceed {MAX_NAME_LENGTH} characters.")
        if not unit_name:
            raise ProliferationValidationError("Unit name is required.")
        if len(unit_name) > MAX_NAME_LENGTH:
            raise ProliferationValidationError(f"Unit name cannot exceed {MAX_NAME_LENGTH} characters.")
        if data.quantity <= 0:
            raise ProliferationValidationError("Quantity must be greater than zero.")

        tolerance = self.settings.proliferation_future_date_tolerance_days
        if data.proliferation_date > datetime.utcnow().date() + timedelta(days=tolerance):
            raise ProliferationValidationError(
                f"Proliferation date cannot be more than {tolerance} days in the future."
            )
        self._validate_year(data.proliferation_date.year)
        return simulator_name, unit_name, self._validate_remarks(data.remarks)

    @staticmethod
    def _raise(error: ProliferationValidationError) -> None:
        raise HTTPException(status_code=error.status_code, detail=error.message) from error

    def _apply_submission_status(self, entry: object, context: RequestUserContext, now: datetime) -> None:
        if context.is_approver:
            entry.approval_status = ApprovalStatus.APPROVED
            entry.approved_by_user_id = context.user_id
            entry.approved_at = now
        else:
            entry.approval_status = ApprovalStatus.PENDING
            entry.approved_by_user_id = None
            entry.approved_at = None
        entry.decision_notes = None

    def _ensure_can_modify(self, entry: object, context: RequestUserContext) -> None:
        if context.is_approver:
            return
        if entry.submitted_by_user_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the submitter or an approver can change this entry.",
            )
        if entry.approval_status is ApprovalStatus.APPROVED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Approved entries can only be changed by an approver.",
            )

    # ---------- Staging (shared with CSV import) ----------
    def stage_yearly(self, *, context: RequestUserContext, data: YearlyEntryData) -> ProliferationYearly:
        """Validate and add a yearly entry without committing."""

        remarks = self.validate_yearly(data)
        if context.is_approver and self.repo.approved_yearly_exists(
            project_id=data.project_id, source=data.source, year=data.year
        ):
            raise ProliferationValidationError(DUPLICATE_YEARLY_MESSAGE, status_code=status.HTTP_409_CONFLICT)

        now = datetime.utcnow()
        entry = ProliferationYearly(
            project_id=data.project_id,
            source=data.source,
            year=data.year,
            total_quantity=data.total_quantity,
            remarks=remarks,
            submitted_by_user_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        self._apply_submission_status(entry, context, now)
        bump_row_version(entry)
        self.repo.add(entry)
        return entry

    def stage_granular(self, *, context: RequestUserContext, data: GranularEntryData) -> ProliferationGranular:
        """Validate and add a granular entry without committing."""

        simulator_name, unit_name, remarks = self.validate_granular(data)
        now = datetime.utcnow()
        entry = ProliferationGranular(
            project_id=data.project_id,
            source=ProliferationSource.SDD,
            simulator_name=simulator_name,
            unit_name=unit_name,
            proliferation_date=data.proliferation_date,
            quantity=data.quantity,
            remarks=remarks,
            submitted_by_user_id=context.user_id,
            created_at=now,
            updated_at=now,
        )
        self._apply_submission_status(entry, context, now)
        bump_row_version(entry)
        self.repo.add(entry)
        return entry

    # ---------- Submissions ----------
    def create_yearly(self, *, context: RequestUserContext, data: YearlyEntryData) -> ProliferationYearly:
        ensure_role(context, SUBMIT_ROLES)
        try:
            entry = self.stage_yearly(context=context, data=data)
        except ProliferationValidationError as error:
            self.db.rollback()
            self._raise(error)
        record_audit(
            self.db,
            context=context,
            entity_name="ProliferationYearly",
            entity_id=entry.id,
            action_type="submitted",
            payload={"approval_status": entry.approval_status.value},
        )
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def create_granular(self, *, context: RequestUserContext, data: GranularEntryData) -> ProliferationGranular:
        ensure_role(context, SUBMIT_ROLES)
        try:
            entry = self.stage_granular(context=context, data=data)
        except ProliferationValidationError as error:
            self.db.rollback()
            self._raise(error)
        record_audit(
            self.db,
            context=context,
            entity_name="ProliferationGranular",
            entity_id=entry.id,
            action_type="submitted",
            payload={"approval_status": entry.approval_status.value},
        )
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def _get_entry(self, kind: EntryKind, entry_id: UUID) -> ProliferationYearly | ProliferationGranular:
        entry = self.repo.get_yearly(entry_id) if kind is EntryKind.YEARLY else self.repo.get_granular(entry_id)
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proliferation entry not found.")
        return entry

    def get_entry(self, *, kind: EntryKind, entry_id: UUID) -> ProliferationYearly | ProliferationGranular:
        return self._get_entry(kind, entry_id)

    def update_yearly(
        self,
        *,
        context: RequestUserContext,
        entry_id: UUID,
        data: YearlyEntryData,
    ) -> ProliferationYearly:
        ensure_role(context, SUBMIT_ROLES)
        entry = self._get_entry(EntryKind.YEARLY, entry_id)
        self._ensure_can_modify(entry, context)
        ensure_row_version(entry.row_version, data.row_version, detail=ENTRY_CONCURRENCY_MESSAGE)
        try:
            remarks = self.validate_yearly(data)
            if context.is_approver and self.repo.approved_yearly_exists(
                project_id=data.project_id, source=data.source, year=data.year, exclude_id=entry.id
            ):
                raise ProliferationValidationError(DUPLICATE_YEARLY_MESSAGE, status_code=status.HTTP_409_CONFLICT)
        except ProliferationValidationError as error:
            self._raise(error)

        now = datetime.utcnow()
        entry.project_id = data.project_id
        entry.source = data.source
        entry.year = data.year
        entry.total_quantity = data.total_quantity
        entry.remarks = remarks
        entry.updated_at = now
        self._apply_submission_status(entry, context, now)
        bump_row_version(entry)
        record_audit(
            self.db,
            context=context,
            entity_name="ProliferationYearly",
            entity_id=entry.id,
            action_type="updated",
            payload={"approval_status": entry.approval_status.value},
        )
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def update_granular(
        self,
        *,
        context: RequestUserContext,
        entry_id: UUID,
        data: GranularEntryData,
    ) -> ProliferationGranular:
        ensure_role(context, SUBMIT_ROLES)
        entry = self._get_entry(EntryKind.GRANULAR, entry_id)
        self._ensure_can_modify(entry, context)
        ensure_row_version(entry.row_version, data.row_version, detail=ENTRY_CONCURRENCY_MESSAGE)
        try:
            simulator_name, unit_name, remarks = self.validate_granular(data)
        except ProliferationValidationError as error:
            self._raise(error)

        now = datetime.utcnow()
        entry.project_id = data.project_id
        entry.simulator_name = simulator_name
        entry.unit_name = unit_name
        entry.proliferation_date = data.proliferation_date
        entry.quantity = data.quantity
        entry.remarks = remarks
        entry.updated_at = now
        self._apply_submission_status(entry, context, now)
        bump_row_version(entry)
        record_audit(
            self.db,
            context=context,
            entity_name="ProliferationGranular",
            entity_id=entry.id,
            action_type="updated",
            payload={"approval_status": entry.approval_status.value},
        )
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def delete_entry(
        self,
        *,
        context: RequestUserContext,
        kind: EntryKind,
        entry_id: UUID,
        row_version: str | None,
    ) -> None:
        ensure_role(context, SUBMIT_ROLES)
        entry = self._get_entry(kind, entry_id)
        self._ensure_can_modify(entry, context)
        ensure_row_version(entry.row_version, row_version, detail=ENTRY_CONCURRENCY_MESSAGE)

        record_audit(
            self.db,
            context=context,
            entity_name=type(entry).__name__,
            entity_id=entry.id,
            action_type="deleted",
        )
        self.repo.delete(entry)
        self.db.commit()
        LOGGER.info("proliferation_entry_deleted kind=%s id=%s", kind.value, entry_id)

    # ---------- Approval ----------
    def decide_entry(
        self,
        *,
        context: RequestUserContext,
        kind: EntryKind,
        entry_id: UUID,
        data: DecisionData,
    ) -> ProliferationYearly | ProliferationGranular:
        if not context.is_approver:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only approvers can decide proliferation entries.",
            )
        entry = self._get_entry(kind, entry_id)
        ensure_row_version(entry.row_version, data.row_version, detail=ENTRY_CONCURRENCY_MESSAGE)
        if entry.approval_status is not ApprovalStatus.PENDING:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The entry is no longer pending.")

        notes = normalize_optional(data.notes)
        if notes is not None and len(notes) > MAX_DECISION_NOTES_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Decision notes cannot exceed {MAX_DECISION_NOTES_LENGTH} characters.",
            )
        if not data.approve and notes is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Provide a reason for rejecting the entry.",
            )

        if (
            data.approve
            and kind is EntryKind.YEARLY
            and self.repo.approved_yearly_exists(
                project_id=entry.project_id,
                source=entry.source,
                year=entry.year,
                exclude_id=entry.id,
            )
        ):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_YEARLY_MESSAGE)

        now = datetime.utcnow()
        entry.approval_status = ApprovalStatus.APPROVED if data.approve else ApprovalStatus.REJECTED
        entry.approved_by_user_id = context.user_id
        entry.approved_at = now
        entry.decision_notes = notes
        entry.updated_at = now
        bump_row_version(entry)
        record_audit(
            self.db,
            context=context,
            entity_name=type(entry).__name__,
            entity_id=entry.id,
            action_type="approved" if data.approve else "rejected",
            payload={"notes": notes},
        )
        self.db.commit()
        self.db.refresh(entry)
        LOGGER.info(
            "proliferation_entry_decided kind=%s id=%s status=%s",
            kind.value,
            entry_id,
            entry.approval_status.value,
        )
        return entry

    def list_entries(
        self,
        *,
        kind: EntryKind,
        project_id: UUID | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> list[dict[str, object]]:
        if kind is EntryKind.YEARLY:
            return [
                self.serialize_yearly(entry, project)
                for entry, project in self.repo.list_yearly(project_id=project_id, approval_status=approval_status)
            ]
        return [
            self.serialize_granular(entry, project)
            for entry, project in self.repo.list_granular(project_id=project_id, approval_status=approval_status)
        ]

    # ---------- Preferences ----------
    def set_preference(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        source: ProliferationSource,
        year: int,
        mode: ProliferationPreferenceMode | None,
        expected_row_version: str | None = None,
    ) -> PreferenceResult:
        """Create, change or clear the preference for one project/source/year.

        ``mode=None`` clears the preference. When a row version is supplied it
        must match the stored preference, or the stored preference must still
        be absent when none is supplied.
        """

        ensure_role(context, SUBMIT_ROLES)
        if self.repo.get_project(project_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        if year < MIN_YEAR or year > MAX_YEAR:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Year must be between {MIN_YEAR} and {MAX_YEAR}.",
            )
        if source is ProliferationSource.ABW515 and mode not in (None, ProliferationPreferenceMode.AUTO):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ABW515_OVERRIDE_MESSAGE)

        expected = normalize_optional(expected_row_version)
        existing = self.repo.get_preference(project_id=project_id, source=source, year=year)

        if existing is None:
            if expected is not None:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PREFERENCE_CONCURRENCY_MESSAGE)
            if mode is None:
                return PreferenceResult(outcome=PreferenceOutcome.NO_CHANGE, preference=None)

            preference = ProliferationYearPreference(
                project_id=project_id,
                source=source,
                year=year,
                mode=mode,
                set_by_user_id=context.user_id,
                set_at=datetime.utcnow(),
            )
            bump_row_version(preference)
            self.repo.add(preference)
            self._audit_preference(context, preference, PreferenceOutcome.CREATED)
            self.db.commit()
            self.db.refresh(preference)
            return PreferenceResult(outcome=PreferenceOutcome.CREATED, preference=preference)

        if expected is not None and expected != existing.row_version:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=PREFERENCE_CONCURRENCY_MESSAGE)

        if mode is None:
            self._audit_preference(context, existing, PreferenceOutcome.CLEARED)
            self.repo.delete(existing)
            self.db.commit()
            return PreferenceResult(outcome=PreferenceOutcome.CLEARED, preference=None)

        if existing.mode is mode:
            return PreferenceResult(outcome=PreferenceOutcome.NO_CHANGE, preference=existing)

        existing.mode = mode
        existing.set_by_user_id = context.user_id
        existing.set_at = datetime.utcnow()
        bump_row_version(existing)
        self._audit_preference(context, existing, PreferenceOutcome.UPDATED)
        self.db.commit()
        self.db.refresh(existing)
        return PreferenceResult(outcome=PreferenceOutcome.UPDATED, preference=existing)

    def _audit_preference(
        self,
        context: RequestUserContext,
        preference: ProliferationYearPreference,
        outcome: PreferenceOutcome,
    ) -> None:
        record_audit(
            self.db,
            context=context,
            entity_name="ProliferationYearPreference",
            entity_id=preference.id,
            action_type="preference_saved",
            payload={
                "outcome": outcome.value,
                "project_id": str(preference.project_id),
                "source": preference.source.value,
                "year": preference.year,
                "mode": preference.mode.value if outcome is not PreferenceOutcome.CLEARED else None,
            },
        )
        LOGGER.info(
            "proliferation_preference_saved project_id=%s source=%s year=%s outcome=%s",
            preference.project_id,
            preference.source.value,
            preference.year,
            outcome.value,
        )

    # ---------- Reconciliation ----------
    def effective_combos(self, *, project_id: UUID | None = None) -> list[EffectiveCombo]:
        return build_effective_combos(
            self.repo.approved_yearly_totals(project_id),
            self.repo.approved_granular_totals(project_id),
            self.repo.preferences_by_combo(project_id),
        )

    def get_effective_total(self, *, project_id: UUID, source: ProliferationSource, year: int) -> int:
        for combo in self.effective_combos(project_id=project_id):
            if combo.source is source and combo.year == year:
                return combo.effective
        return 0

    def project_detail(self, *, project_id: UUID) -> dict[str, object]:
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")

        combos = sorted(self.effective_combos(project_id=project_id), key=lambda c: (-c.year, c.source.value))
        pending_yearly = self.repo.list_yearly(project_id=project_id, approval_status=ApprovalStatus.PENDING)
        pending_granular = self.repo.list_granular(project_id=project_id, approval_status=ApprovalStatus.PENDING)
        return {
            "project_id": str(project.id),
            "project_code": project.code,
            "project_name": project.name,
            "eligible": (
                project.lifecycle_status is ProjectLifecycleStatus.COMPLETED
                and not project.is_archived
                and not project.is_deleted
            ),
            "years": [self.serialize_combo(combo) for combo in combos],
            "total_effective": sum(combo.effective for combo in combos),
            "pending_yearly": len(pending_yearly),
            "pending_granular": len(pending_granular),
        }

    def unit_suggestions(self, *, term: str | None, take: int = 10) -> list[str]:
        normalized = (term or "").strip()
        if len(normalized) < 2:
            return []
        return self.repo.unit_name_suggestions(normalized, max(1, min(take, 50)))
