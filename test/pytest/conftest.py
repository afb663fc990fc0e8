import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.database.assignment_repo import AssignmentRepo
from app.database.errors import DuplicateSubmissionError
from app.database.submission_repo import SubmissionRepo
from app.schemas.assignment import AssignmentCreate, AssignmentStatus
from app.schemas.context import UserContext
from app.services.assignment_service import AssignmentService
from app.services.submission_service import SubmissionService


# ------------------------- Fake storage -------------------------
# Ogni metodo cede il controllo (sleep(0)) prima di leggere/scrivere, così le
# chiamate concorrenti si intrecciano davvero; il check-and-set resta atomico.
class FakeDatabase:
    def __init__(self):
        self.assignments = {}
        self.submissions = {}
        self.pairs = {}


class FakeAssignmentRepo(AssignmentRepo):
    def __init__(self, db: FakeDatabase):
        self.db = db

    async def create(self, assignment):
        await asyncio.sleep(0)
        self.db.assignments[assignment.assignmentId] = assignment.model_copy()
        return assignment.assignmentId

    async def find_one(self, assignment_id):
        await asyncio.sleep(0)
        a = self.db.assignments.get(assignment_id)
        return a.model_copy() if a else None

    async def find_many(self, assignment_ids):
        await asyncio.sleep(0)
        return [self.db.assignments[i].model_copy() for i in set(assignment_ids) if i in self.db.assignments]

    async def find_for_teacher(self, teacher_id, status=None):
        await asyncio.sleep(0)
        items = [
            a for a in self.db.assignments.values()
            if a.createdBy == teacher_id and (status is None or a.status == status)
        ]
        return sorted(items, key=lambda a: a.createdAt, reverse=True)

    async def find_published(self):
        await asyncio.sleep(0)
        items = [a for a in self.db.assignments.values() if a.status == AssignmentStatus.published]
        return sorted(items, key=lambda a: a.dueDate)

    async def replace_if_version(self, assignment, expected_version):
        await asyncio.sleep(0)
        stored = self.db.assignments.get(assignment.assignmentId)
        if stored is None or stored.version != expected_version:
            return False
        self.db.assignments[assignment.assignmentId] = assignment.model_copy()
        return True

    async def delete_draft(self, assignment_id, expected_version):
        await asyncio.sleep(0)
        stored = self.db.assignments.get(assignment_id)
        if stored is None or stored.version != expected_version or stored.status != AssignmentStatus.draft:
            return False
        del self.db.assignments[assignment_id]
        for sid, s in list(self.db.submissions.items()):
            if s.assignmentId == assignment_id:
                del self.db.submissions[sid]
                self.db.pairs.pop((s.assignmentId, s.studentId), None)
        return True


class FakeSubmissionRepo(SubmissionRepo):
    def __init__(self, db: FakeDatabase):
        self.db = db

    async def create(self, submission):
        await asyncio.sleep(0)
        key = (submission.assignmentId, submission.studentId)
        if key in self.db.pairs:
            raise DuplicateSubmissionError(f"duplicate key {key}")
        self.db.pairs[key] = submission.submissionId
        self.db.submissions[submission.submissionId] = submission.model_copy()
        return submission.submissionId

    async def find_one(self, submission_id):
        await asyncio.sleep(0)
        s = self.db.submissions.get(submission_id)
        return s.model_copy() if s else None

    async def find_for_student(self, student_id, assignment_ids=None):
        await asyncio.sleep(0)
        wanted = set(assignment_ids) if assignment_ids is not None else None
        items = [
            s for s in self.db.submissions.values()
            if s.studentId == student_id and (wanted is None or s.assignmentId in wanted)
        ]
        return sorted(items, key=lambda s: s.submittedAt, reverse=True)

    async def find_for_assignment(self, assignment_id):
        await asyncio.sleep(0)
        items = [s for s in self.db.submissions.values() if s.assignmentId == assignment_id]
        return sorted(items, key=lambda s: s.submittedAt, reverse=True)

    async def count_for_assignments(self, assignment_ids):
        await asyncio.sleep(0)
        wanted = set(assignment_ids)
        counts = {}
        for s in self.db.submissions.values():
            if s.assignmentId in wanted:
                counts[s.assignmentId] = counts.get(s.assignmentId, 0) + 1
        return counts

    async def update_review(self, submission_id, changes):
        await asyncio.sleep(0)
        s = self.db.submissions.get(submission_id)
        if s is None:
            return None
        updated = s.model_copy(update=changes)
        self.db.submissions[submission_id] = updated
        return updated.model_copy()


# ------------------------------- Fixtures -------------------------------------
@pytest.fixture
def db():
    return FakeDatabase()

@pytest.fixture
def repo(db):
    return FakeAssignmentRepo(db)

@pytest.fixture
def submission_repo(db):
    return FakeSubmissionRepo(db)

@pytest.fixture
def service(repo, submission_repo):
    return AssignmentService(repo, submission_repo)

@pytest.fixture
def submissions(repo, submission_repo):
    return SubmissionService(submission_repo, repo)

@pytest.fixture
def teacher():
    return UserContext(user_id="t1", role="teacher")

@pytest.fixture
def other_teacher():
    return UserContext(user_id="t2", role="teacher")

@pytest.fixture
def student():
    return UserContext(user_id="s1", role="student")

@pytest.fixture
def student2():
    return UserContext(user_id="s2", role="student")


def make_create(**overrides):
    future = datetime.now(timezone.utc) + timedelta(days=7)
    base = dict(title="Compito", description="Desc", dueDate=future)
    base.update(overrides)
    return AssignmentCreate(**base)


@pytest.fixture
def make_assignment(service):
    """Crea un assignment e lo porta fino allo stato richiesto."""
    async def _make(owner, status=AssignmentStatus.draft, **overrides):
        a = await service.create(owner, make_create(**overrides))
        if status in (AssignmentStatus.published, AssignmentStatus.completed):
            a = await service.transition_status(owner, a.assignmentId, AssignmentStatus.published)
        if status == AssignmentStatus.completed:
            a = await service.transition_status(owner, a.assignmentId, AssignmentStatus.completed)
        return a
    return _make
