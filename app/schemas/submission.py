from typing import Optional
from pydantic import BaseModel

from app.schemas.assignment import AssignmentSummary, UtcDatetime


class SubmissionCreate(BaseModel):
    assignmentId: str
    answer: str


class SubmissionReview(BaseModel):
    reviewed: Optional[bool] = None
    feedback: Optional[str] = None


class Submission(BaseModel):
    submissionId: str
    assignmentId: str
    studentId: str
    answer: str
    submittedAt: UtcDatetime
    reviewed: bool = False
    reviewedAt: Optional[UtcDatetime] = None
    feedback: Optional[str] = None


class SubmissionDetail(Submission):
    assignment: Optional[AssignmentSummary] = None
