import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.database.assignment_repo import AssignmentRepo
from app.database.errors import DuplicateSubmissionError
from app.database.submission_repo import SubmissionRepo
from app.schemas.assignment import AssignmentStatus, AssignmentSummary
from app.schemas.context import UserContext
from app.schemas.submission import Submission, SubmissionCreate, SubmissionDetail, SubmissionReview
from app.services.errors import AlreadySubmitted, DeadlinePassed, Forbidden, InvalidState, NotFound
from app.services.policy import (
    ANSWER_MAX_LENGTH,
    FEEDBACK_MAX_LENGTH,
    call_store,
    check_length,
    require_owner,
    require_student,
    require_teacher,
    require_text,
    utcnow,
)

log = logging.getLogger(__name__)


def create_submission_id() -> str:
    return f"sub-{uuid.uuid4().hex}"


class SubmissionService:
    """
    Ammissione, unicità e revisione delle submission.

    L'unicità (assignment, studente) è affidata all'indice unico dello store:
    nessun controllo preventivo, la violazione diventa AlreadySubmitted.
    """

    def __init__(
        self,
        repo: SubmissionRepo,
        assignments: AssignmentRepo,
        store_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.assignments = assignments
        self.store_timeout = store_timeout
        self.clock = clock

    async def _store(self, op):
        return await call_store(op, self.store_timeout)

    async def _load(self, submission_id: str) -> Submission:
        doc = await self._store(self.repo.find_one(submission_id))
        if doc is None:
            raise NotFound("Submission not found")
        return doc

    async def _summaries(self, assignment_ids: Iterable[str]) -> Dict[str, AssignmentSummary]:
        ids = set(assignment_ids)
        if not ids:
            return {}
        found = await self._store(self.assignments.find_many(ids))
        return {a.assignmentId: AssignmentSummary.of(a) for a in found}

    async def submit(self, user: UserContext, data: SubmissionCreate) -> Submission:
        require_student(user, "submit answers")
        require_text("Answer", data.answer, ANSWER_MAX_LENGTH)

        assignment = await self._store(self.assignments.find_one(data.assignmentId))
        if assignment is None:
            raise NotFound("Assignment not found")
        if assignment.status != AssignmentStatus.published:
            raise InvalidState("Assignment is not published")

        now = self.clock()
        if assignment.dueDate < now:
            raise DeadlinePassed("Submission deadline has passed")

        submission = Submission(
            submissionId=create_submission_id(),
            assignmentId=assignment.assignmentId,
            studentId=str(user.user_id),
            answer=data.answer,
            submittedAt=now,
        )
        try:
            await self._store(self.repo.create(submission))
        except DuplicateSubmissionError as e:
            log.info("Duplicate submission rejected: %s / %s", assignment.assignmentId, user.user_id)
            raise AlreadySubmitted("Already submitted to this assignment") from e

        log.info("Submission %s for assignment %s", submission.submissionId, assignment.assignmentId)
        return submission

    async def review(
        self, user: UserContext, submission_id: str, data: SubmissionReview
    ) -> Submission:
        submission = await self._load(submission_id)
        assignment = await self._store(self.assignments.find_one(submission.assignmentId))
        if assignment is None:
            raise NotFound("Assignment not found")
        require_owner(user, assignment)

        sent = data.model_fields_set
        changes: Dict[str, Any] = {}
        if "feedback" in sent:
            changes["feedback"] = check_length("Feedback", data.feedback, FEEDBACK_MAX_LENGTH)
        if "reviewed" in sent and data.reviewed is not None:
            changes["reviewed"] = data.reviewed
            if not data.reviewed:
                changes["reviewedAt"] = None
            elif not submission.reviewed or submission.reviewedAt is None:
                changes["reviewedAt"] = self.clock()

        if not changes:
            return submission

        updated = await self._store(self.repo.update_review(submission_id, changes))
        if updated is None:
            raise NotFound("Submission not found")
        log.info("Submission %s reviewed by %s (%s)", submission_id, user.user_id, ", ".join(sorted(changes)))
        return updated

    async def get(self, user: UserContext, submission_id: str) -> SubmissionDetail:
        submission = await self._load(submission_id)
        assignment = await self._store(self.assignments.find_one(submission.assignmentId))

        if user.role == "student":
            if submission.studentId != user.user_id:
                raise Forbidden("Access denied")
        elif assignment is None or assignment.createdBy != user.user_id:
            raise Forbidden("Access denied")

        return SubmissionDetail(
            **submission.model_dump(),
            assignment=AssignmentSummary.of(assignment) if assignment else None,
        )

    async def list_mine(self, user: UserContext) -> List[SubmissionDetail]:
        require_student(user, "list their submissions")
        items = await self._store(self.repo.find_for_student(user.user_id))
        summaries = await self._summaries(s.assignmentId for s in items)
        items = sorted(items, key=lambda s: s.submittedAt, reverse=True)
        return [
            SubmissionDetail(**s.model_dump(), assignment=summaries.get(s.assignmentId))
            for s in items
        ]

    async def list_for_assignment(self, user: UserContext, assignment_id: str) -> List[Submission]:
        require_teacher(user, "list submissions")
        assignment = await self._store(self.assignments.find_one(assignment_id))
        if assignment is None:
            raise NotFound("Assignment not found")
        require_owner(user, assignment)

        items = await self._store(self.repo.find_for_assignment(assignment_id))
        return sorted(items, key=lambda s: s.submittedAt, reverse=True)
