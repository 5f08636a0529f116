"""Application service for training records, rosters and delete requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.auth import MANAGE_ROLES, RequestUserContext, ensure_role
from app.core.config import get_settings
from app.models.entities import (
    ApprovalStatus,
    Project,
    TraineeCategory,
    Training,
    TrainingCounterSource,
    TrainingDeleteRequest,
    TrainingTrainee,
)
from app.repositories.training_repository import TrainingRepository
from app.services.common import bump_row_version, ensure_row_version, iso_or_none, normalize_optional, record_audit

LOGGER = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 1000
MIN_TRAINING_YEAR = 2000
MAX_TRAINING_YEAR = 3000

UPDATE_CONCURRENCY_MESSAGE = "The training was updated by another user."
ROSTER_CONCURRENCY_MESSAGE = "Another user has updated this training. Reload and try again."
DELETE_CONCURRENCY_MESSAGE = "The training was updated by another user. Reload and try again."
PROJECTS_UNAVAILABLE_MESSAGE = "One or more selected projects are not available."

_OFFICER_RANK_TOKENS = ("gen", "brig", "col", "maj", "lt", "capt")
_JCO_RANK_TOKENS = ("subedar", "sub maj", "naib", "jco")


def infer_category_from_rank(rank: str) -> TraineeCategory:
    """Best-effort category from a free-text rank."""

    normalized = rank.strip().lower().replace(".", "")
    words = normalized.replace("-", " ").split()
    if any(token in normalized for token in _JCO_RANK_TOKENS) or {"sub", "nb"} & set(words):
        return TraineeCategory.JCO
    if any(word.startswith(token) for word in words for token in _OFFICER_RANK_TOKENS):
        return TraineeCategory.OFFICER
    return TraineeCategory.OTHER_RANK


def resolve_category(category: int | None, rank: str) -> TraineeCategory:
    if category is not None and category in {item.value for item in TraineeCategory}:
        return TraineeCategory(category)
    return infer_category_from_rank(rank)


@dataclass(slots=True)
class TrainingWriteData:
    training_type_id: UUID
    start_date: date | None = None
    end_date: date | None = None
    training_month: int | None = None
    training_year: int | None = None
    legacy_officer_count: int = 0
    legacy_jco_count: int = 0
    legacy_or_count: int = 0
    notes: str | None = None
    project_ids: list[UUID] = field(default_factory=list)
    row_version: str | None = None


@dataclass(slots=True)
class RosterRowData:
    rank: str | None = None
    name: str | None = None
    unit_name: str | None = None
    army_number: str | None = None
    category: int | None = None

    def is_blank(self) -> bool:
        return not any(
            (value or "").strip() for value in (self.rank, self.name, self.unit_name, self.army_number)
        )


class TrainingService:
    """Service implementing training write rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TrainingRepository(db)
        self.settings = get_settings()

    # ---------- Serialization ----------
    @staticmethod
    def training_label(training: Training, type_name: str | None) -> str:
        if training.start_date is not None:
            end = training.end_date or training.start_date
            period = f"{training.start_date.isoformat()} to {end.isoformat()}"
        elif training.training_month and training.training_year:
            period = f"{training.training_year}-{training.training_month:02d}"
        else:
            period = "undated"
        return f"{type_name or 'Training'} ({period})"[:512]

    @staticmethod
    def serialize_trainee(trainee: TrainingTrainee) -> dict[str, object]:
        return {
            "id": str(trainee.id),
            "army_number": trainee.army_number,
            "rank": trainee.rank,
            "name": trainee.name,
            "unit_name": trainee.unit_name,
            "category": trainee.category,
        }

    @staticmethod
    def serialize_training(
        training: Training,
        *,
        type_name: str | None,
        projects: list[Project],
    ) -> dict[str, object]:
        return {
            "id": str(training.id),
            "training_type_id": str(training.training_type_id),
            "training_type_name": type_name,
            "start_date": iso_or_none(training.start_date),
            "end_date": iso_or_none(training.end_date),
            "training_month": training.training_month,
            "training_year": training.training_year,
            "legacy_officer_count": training.legacy_officer_count,
            "legacy_jco_count": training.legacy_jco_count,
            "legacy_or_count": training.legacy_or_count,
            "officers": training.officers,
            "jcos": training.jcos,
            "ors": training.ors,
            "total": training.total,
            "counter_source": training.counter_source.value,
            "counters_updated_at": iso_or_none(training.counters_updated_at),
            "notes": training.notes,
            "projects": [{"id": str(project.id), "code": project.code, "name": project.name} for project in projects],
            "created_by_user_id": str(training.created_by_user_id),
            "created_at": training.created_at.isoformat(),
            "updated_by_user_id": str(training.updated_by_user_id) if training.updated_by_user_id else None,
            "updated_at": iso_or_none(training.updated_at),
            "row_version": training.row_version,
        }

    @staticmethod
    def serialize_delete_request(row: TrainingDeleteRequest) -> dict[str, object]:
        return {
            "id": str(row.id),
            "training_id": str(row.training_id),
            "training_label": row.training_label,
            "reason": row.reason,
            "status": row.status.value,
            "requested_by_user_id": str(row.requested_by_user_id),
            "requested_at": row.requested_at.isoformat(),
            "decided_by_user_id": str(row.decided_by_user_id) if row.decided_by_user_id else None,
            "decided_at": iso_or_none(row.decided_at),
            "decision_notes": row.decision_notes,
            "row_version": row.row_version,
        }

    def _serialize(self, training: Training) -> dict[str, object]:
        training_type = self.repo.get_type(training.training_type_id)
        projects = self.repo.project_links([training.id]).get(training.id, [])
        return self.serialize_training(
            training,
            type_name=training_type.name if training_type else None,
            projects=projects,
        )

    def get_training(self, training_id: UUID) -> Training:
        training = self.repo.get(training_id)
        if training is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training not found.")
        return training

    # ---------- Validation ----------
    def _validate(self, data: TrainingWriteData) -> tuple[str | None, list[UUID]]:
        training_type = self.repo.get_type(data.training_type_id)
        if training_type is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Training type not found.")
        if not training_type.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Training type is inactive.")

        has_range = data.start_date is not None or data.end_date is not None
        has_month = data.training_month is not None or data.training_year is not None
        if has_range:
            if data.start_date is None or data.end_date is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Provide both a start date and an end date.",
                )
            if data.start_date > data.end_date:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="The start date must be on or before the end date.",
                )
        elif has_month:
            if data.training_month is None or data.training_year is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Provide both a training month and a training year.",
                )
            if not 1 <= data.training_month <= 12:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Training month must be between 1 and 12.",
                )
            if not MIN_TRAINING_YEAR <= data.training_year <= MAX_TRAINING_YEAR:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Training year must be between {MIN_TRAINING_YEAR} and {MAX_TRAINING_YEAR}.",
                )
        else:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Provide either a start and end date or a training month and year.",
            )

        if min(data.legacy_officer_count, data.legacy_jco_count, data.legacy_or_count) < 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Counts cannot be negative.",
            )

        notes = normalize_optional(data.notes)
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Notes cannot exceed {MAX_NOTES_LENGTH} characters.",
            )

        project_ids = list(dict.fromkeys(data.project_ids))
        if training_type.requires_project_selection and not project_ids:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Select at least one project for this training type.",
            )
        if project_ids:
            projects = self.repo.projects_by_ids(set(project_ids))
            if len(projects) != len(project_ids) or any(
                project.is_archived or project.is_deleted for project in projects.values()
            ):
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=PROJECTS_UNAVAILABLE_MESSAGE)
        return notes, project_ids

    # ---------- Counters ----------
    def recompute_counters(self, training: Training) -> None:
        trainees = self.repo.list_trainees(training.id)
        if trainees:
            training.officers = sum(1 for trainee in trainees if trainee.category == TraineeCategory.OFFICER)
            training.jcos = sum(1 for trainee in trainees if trainee.category == TraineeCategory.JCO)
            training.ors = sum(1 for trainee in trainees if trainee.category == TraineeCategory.OTHER_RANK)
            training.counter_source = TrainingCounterSource.ROSTER
        else:
            training.officers = training.legacy_officer_count
            training.jcos = training.legacy_jco_count
            training.ors = training.legacy_or_count
            training.counter_source = TrainingCounterSource.LEGACY
        training.total = training.officers + training.jcos + training.ors
        training.counters_updated_at = datetime.utcnow()

    # ---------- Create/update ----------
    def create_training(self, *, context: RequestUserContext, data: TrainingWriteData) -> dict[str, object]:
        ensure_role(context, MANAGE_ROLES)
        notes, project_ids = self._validate(data)

        training = Training(
            training_type_id=data.training_type_id,
            start_date=data.start_date if data.start_date else None,
            end_date=data.end_date if data.start_date else None,
            training_month=None if data.start_date else data.training_month,
            training_year=None if data.start_date else data.training_year,
            legacy_officer_count=data.legacy_officer_count,
            legacy_jco_count=data.legacy_jco_count,
            legacy_or_count=data.legacy_or_count,
            notes=notes,
            created_by_user_id=context.user_id,
            created_at=datetime.utcnow(),
        )
        bump_row_version(training)
        self.repo.add(training)
        self.repo.replace_project_links(training.id, project_ids)
        self.recompute_counters(training)
        record_audit(self.db, context=context, entity_name="Training", entity_id=training.id, action_type="created")
        self.db.commit()
        self.db.refresh(training)
        return self._serialize(training)

    def update_training(
        self,
        *,
        context: RequestUserContext,
        training_id: UUID,
        data: TrainingWriteData,
    ) -> dict[str, object]:
        ensure_role(context, MANAGE_ROLES)
        training = self.get_training(training_id)
        ensure_row_version(training.row_version, data.row_version, detail=UPDATE_CONCURRENCY_MESSAGE)
        notes, project_ids = self._validate(data)

        training.training_type_id = data.training_type_id
        training.start_date = data.start_date if data.start_date else None
        training.end_date = data.end_date if data.start_date else None
        training.training_month = None if data.start_date else data.training_month
        training.training_year = None if data.start_date else data.training_year
        training.legacy_officer_count = data.legacy_officer_count
        training.legacy_jco_count = data.legacy_jco_count
        training.legacy_or_count = data.legacy_or_count
        training.notes = notes
        training.updated_by_user_id = context.user_id
        training.updated_at = datetime.utcnow()
        self.repo.replace_project_links(training.id, project_ids)
        self.recompute_counters(training)
        bump_row_version(training)
        record_audit(self.db, context=context, entity_name="Training", entity_id=training.id, action_type="updated")
        self.db.commit()
        self.db.refresh(training)
        return self._serialize(training)

    # ---------- Roster ----------
    def upsert_roster(
        self,
        *,
        context: RequestUserContext,
        training_id: UUID,
        row_version: str | None,
        rows: list[RosterRowData],
    ) -> dict[str, object]:
        """Replace the roster of a training and recompute its counters."""

        ensure_role(context, MANAGE_ROLES)
        training = self.get_training(training_id)
        ensure_row_version(training.row_version, row_version, detail=ROSTER_CONCURRENCY_MESSAGE)

        trainees: list[TrainingTrainee] = []
        seen_numbers: set[str] = set()
        for index, row in enumerate(rows, start=1):
            if row.is_blank():
                continue
            rank = (row.rank or "").strip()
            name = (row.name or "").strip()
            unit_name = (row.unit_name or "").strip()
            if not rank or not name or not unit_name:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=(
                        f"Row {index} is missing required information. "
                        "Each roster row must include a Rank, Name, and Unit."
                    ),
                )
            army_number = normalize_optional(row.army_number)
            if army_number is not None:
                key = army_number.lower()
                if key in seen_numbers:
                    raise HTTPException(
                        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                        detail=f'The Army number "{army_number}" is already listed.',
                    )
                seen_numbers.add(key)
            trainees.append(
                TrainingTrainee(
                    training_id=training.id,
                    army_number=army_number,
                    rank=rank[:128],
                    name=name[:200],
                    unit_name=unit_name[:200],
                    category=int(resolve_category(row.category, rank)),
                )
            )

        try:
            self.repo.replace_trainees(training.id, trainees)
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The roster could not be saved because of a duplicate entry.",
            ) from exc

        self.recompute_counters(training)
        training.updated_by_user_id = context.user_id
        training.updated_at = datetime.utcnow()
        bump_row_version(training)
        record_audit(
            self.db,
            context=context,
            entity_name="Training",
            entity_id=training.id,
            action_type="roster_updated",
            payload={"trainees": len(trainees)},
        )
        self.db.commit()
        self.db.refresh(training)

        payload = self._serialize(training)
        payload["roster"] = [self.serialize_trainee(trainee) for trainee in self.repo.list_trainees(training.id)]
        return payload

    # ---------- Delete requests ----------
    def request_delete(
        self,
        *,
        context: RequestUserContext,
        training_id: UUID,
        row_version: str | None,
        reason: str | None,
    ) -> TrainingDeleteRequest:
        ensure_role(context, MANAGE_ROLES)
        normalized_reason = normalize_optional(reason)
        if normalized_reason is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Provide a reason for the deletion request.",
            )
        training = self.get_training(training_id)
        ensure_row_version(training.row_version, row_version, detail=DELETE_CONCURRENCY_MESSAGE)
        if self.repo.pending_delete_request(training.id) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A delete request is already pending for this training.",
            )

        training_type = self.repo.get_type(training.training_type_id)
        request = TrainingDeleteRequest(
            training_id=training.id,
            training_label=self.training_label(training, training_type.name if training_type else None),
            reason=normalized_reason[:MAX_REASON_LENGTH],
            status=ApprovalStatus.PENDING,
            requested_by_user_id=context.user_id,
            requested_at=datetime.utcnow(),
        )
        bump_row_version(request)
        self.repo.add(request)
        record_audit(
            self.db,
            context=context,
            entity_name="Training",
            entity_id=training.id,
            action_type="delete_requested",
            payload={"request_id": str(request.id)},
        )
        self.db.commit()
        self.db.refresh(request)
        LOGGER.info("training_delete_requested training_id=%s request_id=%s", training.id, request.id)
        return request

    def _pending_request(self, context: RequestUserContext, request_id: UUID) -> TrainingDeleteRequest:
        if not context.is_approver:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only approvers can decide delete requests.",
            )
        request = self.repo.get_delete_request(request_id)
        if request is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="The delete request could not be found.",
            )
        if request.status is not ApprovalStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The delete request is no longer pending.",
            )
        return request

    def approve_delete(self, *, context: RequestUserContext, request_id: UUID) -> TrainingDeleteRequest:
        request = self._pending_request(context, request_id)
        training = self.repo.get(request.training_id)
        if training is not None:
            self.repo.delete_training_graph(training)

        request.status = ApprovalStatus.APPROVED
        request.decided_by_user_id = context.user_id
        request.decided_at = datetime.utcnow()
        bump_row_version(request)
        record_audit(
            self.db,
            context=context,
            entity_name="Training",
            entity_id=request.training_id,
            action_type="deleted",
            payload={"request_id": str(request.id)},
        )
        self.db.commit()
        self.db.refresh(request)
        LOGGER.info(
            "training_delete_approved training_id=%s request_id=%s requested_by=%s",
            request.training_id,
            request.id,
            request.requested_by_user_id,
        )
        return request

    def reject_delete(
        self,
        *,
        context: RequestUserContext,
        request_id: UUID,
        notes: str | None,
    ) -> TrainingDeleteRequest:
        request = self._pending_request(context, request_id)
        normalized_notes = normalize_optional(notes)
        if normalized_notes is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Provide a reason for rejecting the delete request.",
            )

        request.status = ApprovalStatus.REJECTED
        request.decided_by_user_id = context.user_id
        request.decided_at = datetime.utcnow()
        request.decision_notes = normalized_notes[:MAX_REASON_LENGTH]
        bump_row_version(request)
        record_audit(
            self.db,
            context=context,
            entity_name="Training",
            entity_id=request.training_id,
            action_type="delete_rejected",
            payload={"request_id": str(request.id)},
        )
        self.db.commit()
        self.db.refresh(request)
        LOGGER.info(
            "training_delete_rejected training_id=%s request_id=%s requested_by=%s",
            request.training_id,
            request.id,
            request.requested_by_user_id,
        )
        return request
