"""Repository helpers for the training tracker."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import delete, exists, or_, select
from sqlalchemy.orm import Session

from app.models.entities import (
    ApprovalStatus,
    Project,
    Training,
    TrainingDeleteRequest,
    TrainingProject,
    TrainingTrainee,
    TrainingType,
)


@dataclass(slots=True)
class TrainingSearchFilters:
    training_type_ids: list[UUID] = field(default_factory=list)
    project_id: UUID | None = None
    category: int | None = None
    search: str | None = None


class TrainingRepository:
    """Persistence operations used by training services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Trainings ----------
    def get(self, training_id: UUID) -> Training | None:
        return self.db.scalar(select(Training).where(Training.id == training_id))

    def get_type(self, training_type_id: UUID) -> TrainingType | None:
        return self.db.scalar(select(TrainingType).where(TrainingType.id == training_type_id))

    def types_by_ids(self, type_ids: set[UUID]) -> dict[UUID, TrainingType]:
        if not type_ids:
            return {}
        rows = self.db.scalars(select(TrainingType).where(TrainingType.id.in_(type_ids))).all()
        return {row.id: row for row in rows}

    def search(self, filters: TrainingSearchFilters) -> list[tuple[Training, str]]:
        stmt = select(Training, TrainingType.name).join(TrainingType, TrainingType.id == Training.training_type_id)

        if filters.training_type_ids:
            stmt = stmt.where(Training.training_type_id.in_(filters.training_type_ids))
        if filters.project_id is not None:
            stmt = stmt.where(
                exists().where(
                    TrainingProject.training_id == Training.id,
                    TrainingProject.project_id == filters.project_id,
                )
            )
        if filters.category is not None:
            stmt = stmt.where(
                exists().where(
                    TrainingTrainee.training_id == Training.id,
                    TrainingTrainee.category == filters.category,
                )
            )
        if filters.search and filters.search.strip():
            pattern = f"%{filters.search.strip()}%"
            project_match = (
                exists()
                .where(TrainingProject.training_id == Training.id)
                .where(Project.id == TrainingProject.project_id)
                .where(or_(Project.name.ilike(pattern), Project.code.ilike(pattern)))
            )
            stmt = stmt.where(or_(TrainingType.name.ilike(pattern), Training.notes.ilike(pattern), project_match))

        stmt = stmt.order_by(Training.created_at.desc())
        return [(row[0], row[1]) for row in self.db.execute(stmt).all()]

    def add(self, row: object) -> object:
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: object) -> None:
        self.db.delete(row)
        self.db.flush()

    # ---------- Projects ----------
    def projects_by_ids(self, project_ids: set[UUID]) -> dict[UUID, Project]:
        if not project_ids:
            return {}
        rows = self.db.scalars(select(Project).where(Project.id.in_(project_ids))).all()
        return {row.id: row for row in rows}

    def project_links(self, training_ids: list[UUID]) -> dict[UUID, list[Project]]:
        if not training_ids:
            return {}
        rows = self.db.execute(
            select(TrainingProject.training_id, Project)
            .join(Project, Project.id == TrainingProject.project_id)
            .where(TrainingProject.training_id.in_(training_ids))
            .order_by(Project.name.asc())
        ).all()
        links: dict[UUID, list[Project]] = defaultdict(list)
        for training_id, project in rows:
            links[training_id].append(project)
        return dict(links)

    def replace_project_links(self, training_id: UUID, project_ids: list[UUID]) -> None:
        self.db.execute(delete(TrainingProject).where(TrainingProject.training_id == training_id))
        for project_id in project_ids:
            self.db.add(TrainingProject(training_id=training_id, project_id=project_id))
        self.db.flush()

    # ---------- Roster ----------
    def list_trainees(self, training_id: UUID) -> list[TrainingTrainee]:
        return self.db.scalars(
            select(TrainingTrainee)
            .where(TrainingTrainee.training_id == training_id)
            .order_by(TrainingTrainee.category.asc(), TrainingTrainee.name.asc())
        ).all()

    def trainees_for(self, training_ids: list[UUID]) -> dict[UUID, list[TrainingTrainee]]:
        if not training_ids:
            return {}
        rows = self.db.scalars(
            select(TrainingTrainee)
            .where(TrainingTrainee.training_id.in_(training_ids))
            .order_by(TrainingTrainee.category.asc(), TrainingTrainee.name.asc())
        ).all()
        roster: dict[UUID, list[TrainingTrainee]] = defaultdict(list)
        for row in rows:
            roster[row.training_id].append(row)
        return dict(roster)

    def replace_trainees(self, training_id: UUID, trainees: list[TrainingTrainee]) -> None:
        self.db.execute(delete(TrainingTrainee).where(TrainingTrainee.training_id == training_id))
        self.db.add_all(trainees)
        self.db.flush()

    def delete_training_graph(self, training: Training) -> None:
        self.db.execute(delete(TrainingTrainee).where(TrainingTrainee.training_id == training.id))
        self.db.execute(delete(TrainingProject).where(TrainingProject.training_id == training.id))
        self.db.delete(training)
        self.db.flush()

    # ---------- Delete requests ----------
    def get_delete_request(self, request_id: UUID) -> TrainingDeleteRequest | None:
        return self.db.scalar(select(TrainingDeleteRequest).where(TrainingDeleteRequest.id == request_id))

    def pending_delete_request(self, training_id: UUID) -> TrainingDeleteRequest | None:
        return self.db.scalar(
            select(TrainingDeleteRequest).where(
                TrainingDeleteRequest.training_id == training_id,
                TrainingDeleteRequest.status == ApprovalStatus.PENDING,
            )
        )

    def list_pending_delete_requests(self) -> list[TrainingDeleteRequest]:
        return self.db.scalars(
            select(TrainingDeleteRequest)
            .where(TrainingDeleteRequest.status == ApprovalStatus.PENDING)
            .order_by(TrainingDeleteRequest.requested_at.asc())
        ).all()
