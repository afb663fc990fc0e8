import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.database.assignment_repo import AssignmentRepo
from app.database.submission_repo import SubmissionRepo
from app.schemas.assignment import (
    Assignment,
    AssignmentCreate,
    AssignmentStatus,
    AssignmentUpdate,
    StudentAssignment,
    TeacherAssignment,
)
from app.schemas.context import UserContext
from app.services.errors import Forbidden, InvalidState, InvalidTransition, NotFound, Transient, ValidationError
from app.services.policy import (
    call_store,
    require_owner,
    require_student,
    require_teacher,
    require_text,
    utcnow,
)

log = logging.getLogger(__name__)

# unici passaggi ammessi, con il timestamp che ciascuno valorizza
TRANSITIONS = {
    (AssignmentStatus.draft, AssignmentStatus.published): "publishedAt",
    (AssignmentStatus.published, AssignmentStatus.completed): "completedAt",
}

COMPLETED_READ_ONLY = "completed assignments cannot be modified"


def create_assignment_id() -> str:
    return f"as-{uuid.uuid4().hex}"


def as_status(value) -> AssignmentStatus:
    try:
        return AssignmentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}") from None


def transition_changes(current: AssignmentStatus, target: AssignmentStatus, now: datetime) -> Dict[str, Any]:
    current, target = as_status(current), as_status(target)
    stamp = TRANSITIONS.get((current, target))
    if stamp is None:
        raise InvalidTransition(current.value, target.value)
    return {"status": target, stamp: now}


class AssignmentService:
    """
    Ciclo di vita degli assignment: draft -> published -> completed.

    Ogni operazione controlla ruolo e proprietà prima di toccare lo store e
    scrive con un solo compare-and-swap sulla versione del documento.
    """

    def __init__(
        self,
        repo: AssignmentRepo,
        submissions: SubmissionRepo,
        store_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.submissions = submissions
        self.store_timeout = store_timeout
        self.clock = clock

    async def _store(self, op):
        return await call_store(op, self.store_timeout)

    async def _load(self, assignment_id: str) -> Assignment:
        doc = await self._store(self.repo.find_one(assignment_id))
        if doc is None:
            raise NotFound("Assignment not found")
        return doc

    async def _save(
        self,
        current: Assignment,
        changes: Dict[str, Any],
        target: Optional[AssignmentStatus] = None,
    ) -> Assignment:
        # rivalidato: changes può contenere valori grezzi (status come stringa)
        updated = Assignment.model_validate(
            {**current.model_dump(), **changes, "version": current.version + 1}
        )
        if await self._store(self.repo.replace_if_version(updated, current.version)):
            return updated

        # un'altra scrittura è arrivata prima: si rilegge una volta, niente retry automatico
        latest = await self._store(self.repo.find_one(current.assignmentId))
        log.warning(
            "Write conflict on assignment %s (read version %s, now %s)",
            current.assignmentId, current.version, latest.version if latest else None,
        )
        if latest is None:
            raise NotFound("Assignment not found")
        if target is not None and (latest.status, target) not in TRANSITIONS:
            raise InvalidTransition(latest.status.value, target.value)
        if latest.status == AssignmentStatus.completed:
            raise Forbidden(COMPLETED_READ_ONLY)
        raise Transient("Assignment was modified concurrently, retry")

    async def create(self, user: UserContext, data: AssignmentCreate) -> Assignment:
        require_teacher(user, "create assignments")
        require_text("Title", data.title)
        require_text("Description", data.description)

        assignment = Assignment(
            assignmentId=create_assignment_id(),
            createdBy=str(user.user_id),
            createdAt=self.clock(),
            status=AssignmentStatus.draft,
            **data.model_dump(),
        )
        inserted_id = await self._store(self.repo.create(assignment))
        if not inserted_id:
            raise RuntimeError("Creazione assignment fallita")

        log.info("Assignment %s created by %s", inserted_id, user.user_id)
        return assignment

    async def get(self, user: UserContext, assignment_id: str) -> Assignment:
        doc = await self._load(assignment_id)
        if user.role == "student" and doc.status != AssignmentStatus.published:
            raise Forbidden("Access denied")
        if user.role == "teacher" and doc.createdBy != user.user_id:
            raise Forbidden("Access denied")
        return doc

    async def transition_status(
        self, user: UserContext, assignment_id: str, target: AssignmentStatus
    ) -> Assignment:
        target = as_status(target)
        current = await self._load(assignment_id)
        require_owner(user, current)
        changes = transition_changes(current.status, target, self.clock())

        updated = await self._save(current, changes, target=target)
        log.info(
            "Assignment %s: %s -> %s", assignment_id, current.status.value, updated.status.value
        )
        return updated

    async def update(
        self, user: UserContext, assignment_id: str, data: AssignmentUpdate
    ) -> Assignment:
        current = await self._load(assignment_id)
        require_owner(user, current)
        if current.status == AssignmentStatus.completed:
            raise Forbidden(COMPLETED_READ_ONLY)

        sent = data.model_fields_set
        changes: Dict[str, Any] = {}
        if "title" in sent:
            changes["title"] = require_text("Title", data.title)
        if "description" in sent:
            changes["description"] = require_text("Description", data.description)
        if "dueDate" in sent:
            if data.dueDate is None:
                raise ValidationError("Valid due date is required")
            changes["dueDate"] = data.dueDate

        # tutto o niente: una transizione non valida fa fallire anche le modifiche ai campi
        target = None
        if data.status is not None and data.status != current.status:
            target = as_status(data.status)
            changes.update(transition_changes(current.status, target, self.clock()))

        if not changes:
            return current

        updated = await self._save(current, changes, target=target)
        log.info("Assignment %s updated (%s)", assignment_id, ", ".join(sorted(changes)))
        return updated

    async def delete(self, user: UserContext, assignment_id: str) -> None:
        current = await self._load(assignment_id)
        require_owner(user, current)
        if current.status != AssignmentStatus.draft:
            raise InvalidState("Only draft assignments can be deleted")

        if await self._store(self.repo.delete_draft(assignment_id, current.version)):
            log.info("Assignment %s deleted by %s", assignment_id, user.user_id)
            return

        latest = await self._store(self.repo.find_one(assignment_id))
        log.warning("Delete of assignment %s lost a race", assignment_id)
        if latest is None:
            raise NotFound("Assignment not found")
        if latest.status != AssignmentStatus.draft:
            raise InvalidState("Only draft assignments can be deleted")
        raise Transient("Assignment was modified concurrently, retry")

    async def list_for_teacher(
        self, user: UserContext, status: Optional[AssignmentStatus] = None
    ) -> List[TeacherAssignment]:
        require_teacher(user, "list their assignments")
        items = await self._store(self.repo.find_for_teacher(user.user_id, status))
        counts = await self._store(
            self.submissions.count_for_assignments([a.assignmentId for a in items])
        ) if items else {}
        return [
            TeacherAssignment(**a.model_dump(), submissionCount=counts.get(a.assignmentId, 0))
            for a in items
        ]

    async def list_for_student(self, user: UserContext) -> List[StudentAssignment]:
        require_student(user, "browse published assignments")
        items = await self._store(self.repo.find_published())
        if not items:
            return []

        mine = await self._store(
            self.submissions.find_for_student(user.user_id, [a.assignmentId for a in items])
        )
        by_assignment = {s.assignmentId: s for s in mine}
        now = self.clock()
        result = []
        for a in sorted(items, key=lambda a: a.dueDate):
            sub = by_assignment.get(a.assignmentId)
            result.append(
                StudentAssignment(
                    **a.model_dump(),
                    hasSubmitted=sub is not None,
                    submissionId=sub.submissionId if sub else None,
                    canSubmit=a.dueDate > now,
                )
            )
        return result
