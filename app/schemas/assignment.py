from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional
from pydantic import AfterValidator, BaseModel


class AssignmentStatus(str, Enum):
    draft = "draft"
    published = "published"
    completed = "completed"


def _as_utc(value: datetime) -> datetime:
    # date naive (input client o Mongo senza tz_aware) trattate come UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class AssignmentCreate(BaseModel):
    title: str
    description: str
    dueDate: UtcDatetime


class AssignmentUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    dueDate: Optional[UtcDatetime] = None
    status: Optional[AssignmentStatus] = None


class StatusChange(BaseModel):
    status: AssignmentStatus


class Assignment(AssignmentCreate):
    assignmentId: str
    createdBy: str
    createdAt: UtcDatetime
    status: AssignmentStatus = AssignmentStatus.draft
    publishedAt: Optional[UtcDatetime] = None
    completedAt: Optional[UtcDatetime] = None
    version: int = 0


class AssignmentSummary(BaseModel):
    assignmentId: str
    title: str
    description: str
    dueDate: UtcDatetime
    status: AssignmentStatus
    createdBy: str

    @classmethod
    def of(cls, a: Assignment) -> "AssignmentSummary":
        return cls(**a.model_dump(include=set(cls.model_fields)))


class TeacherAssignment(Assignment):
    submissionCount: int = 0


class StudentAssignment(Assignment):
    hasSubmitted: bool = False
    submissionId: Optional[str] = None
    canSubmit: bool = False
