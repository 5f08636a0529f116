"""ORM model package."""

from app.models.entities import (
    ActivityMedia,
    ActivityType,
    AuditEvent,
    MiscActivity,
    Project,
    ProliferationGranular,
    ProliferationYearly,
    ProliferationYearPreference,
    RoleAssignment,
    SocialMediaEvent,
    SocialMediaEventPhoto,
    SocialMediaEventType,
    SocialMediaPlatform,
    Training,
    TrainingDeleteRequest,
    TrainingProject,
    TrainingTrainee,
    TrainingType,
    User,
    Visit,
    VisitPhoto,
    VisitType,
)

__all__ = [
    "ActivityMedia",
    "ActivityType",
    "AuditEvent",
    "MiscActivity",
    "Project",
    "ProliferationGranular",
    "ProliferationYearly",
    "ProliferationYearPreference",
    "RoleAssignment",
    "SocialMediaEvent",
    "SocialMediaEventPhoto",
    "SocialMediaEventType",
    "SocialMediaPlatform",
    "Training",
    "TrainingDeleteRequest",
    "TrainingProject",
    "TrainingTrainee",
    "TrainingType",
    "User",
    "Visit",
    "VisitPhoto",
    "VisitType",
]
