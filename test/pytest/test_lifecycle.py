import asyncio
import pytest

from app.database.errors import StoreUnavailable
from app.schemas.assignment import AssignmentStatus, AssignmentUpdate
from app.services.assignment_service import AssignmentService
from app.services.errors import Forbidden, InvalidTransition, NotFound, Transient, ValidationError

from conftest import FakeAssignmentRepo, make_create

DRAFT = AssignmentStatus.draft
PUBLISHED = AssignmentStatus.published
COMPLETED = AssignmentStatus.completed


def assert_stamps_consistent(a):
    assert (a.publishedAt is not None) == (a.status != DRAFT)
    assert (a.completedAt is not None) == (a.status == COMPLETED)
    if a.publishedAt and a.completedAt:
        assert a.publishedAt <= a.completedAt


# ------------------------------ transitions -----------------------------------
@pytest.mark.asyncio
async def test_full_lifecycle_sets_timestamps(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    assert_stamps_consistent(a)

    a = await service.transition_status(teacher, a.assignmentId, PUBLISHED)
    assert a.status == PUBLISHED
    assert_stamps_consistent(a)
    published_at = a.publishedAt

    a = await service.transition_status(teacher, a.assignmentId, COMPLETED)
    assert a.status == COMPLETED
    assert a.publishedAt == published_at
    assert_stamps_consistent(a)

    stored = await repo.find_one(a.assignmentId)
    assert stored == a
    assert stored.version == 2

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start,target",
    [
        (DRAFT, DRAFT),
        (DRAFT, COMPLETED),
        (PUBLISHED, DRAFT),
        (PUBLISHED, PUBLISHED),
        (COMPLETED, DRAFT),
        (COMPLETED, PUBLISHED),
        (COMPLETED, COMPLETED),
    ],
)
async def test_illegal_transitions(service, repo, make_assignment, teacher, start, target):
    a = await make_assignment(teacher, start)
    with pytest.raises(InvalidTransition) as exc:
        await service.transition_status(teacher, a.assignmentId, target)
    assert exc.value.current == start.value
    assert exc.value.target == target.value
    assert await repo.find_one(a.assignmentId) == a

@pytest.mark.asyncio
async def test_transition_accepts_plain_string_target(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    updated = await service.transition_status(teacher, a.assignmentId, "published")
    assert updated.status is PUBLISHED
    stored = await repo.find_one(a.assignmentId)
    assert stored.status is PUBLISHED
    assert stored.publishedAt is not None

@pytest.mark.asyncio
async def test_transition_to_unknown_status_changes_nothing(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    with pytest.raises(ValidationError):
        await service.transition_status(teacher, a.assignmentId, "archived")
    assert await repo.find_one(a.assignmentId) == a

@pytest.mark.asyncio
async def test_transition_requires_owner(service, make_assignment, teacher, other_teacher, student):
    a = await make_assignment(teacher)
    for intruder in (other_teacher, student):
        with pytest.raises(Forbidden):
            await service.transition_status(intruder, a.assignmentId, PUBLISHED)

@pytest.mark.asyncio
async def test_transition_not_found(service, teacher):
    with pytest.raises(NotFound):
        await service.transition_status(teacher, "as-missing", PUBLISHED)

@pytest.mark.asyncio
async def test_concurrent_publish_only_one_wins(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)

    results = await asyncio.gather(
        *[service.transition_status(teacher, a.assignmentId, PUBLISHED) for _ in range(5)],
        return_exceptions=True,
    )
    ok = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(ok) == 1
    assert all(isinstance(e, InvalidTransition) for e in failed)
    assert all(e.current == "published" for e in failed)

    stored = await repo.find_one(a.assignmentId)
    assert stored.version == 1
    assert stored.publishedAt == ok[0].publishedAt


# --------------------------------- update -------------------------------------
@pytest.mark.asyncio
async def test_update_fields(service, make_assignment, teacher):
    a = await make_assignment(teacher)
    updated = await service.update(teacher, a.assignmentId, AssignmentUpdate(title="Nuovo"))
    assert updated.title == "Nuovo"
    assert updated.description == a.description
    assert updated.version == a.version + 1

@pytest.mark.asyncio
async def test_update_with_status_acts_as_transition(service, make_assignment, teacher):
    a = await make_assignment(teacher)
    updated = await service.update(
        teacher, a.assignmentId, AssignmentUpdate(title="Pubblico", status=PUBLISHED)
    )
    assert updated.title == "Pubblico"
    assert updated.status == PUBLISHED
    assert_stamps_consistent(updated)

@pytest.mark.asyncio
async def test_update_same_status_is_not_a_transition(service, make_assignment, teacher):
    a = await make_assignment(teacher, PUBLISHED)
    updated = await service.update(
        teacher, a.assignmentId, AssignmentUpdate(description="Altro", status=PUBLISHED)
    )
    assert updated.status == PUBLISHED
    assert updated.publishedAt == a.publishedAt
    assert updated.description == "Altro"

@pytest.mark.asyncio
async def test_update_is_all_or_nothing(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    with pytest.raises(InvalidTransition):
        await service.update(
            teacher, a.assignmentId, AssignmentUpdate(title="Perso", status=COMPLETED)
        )
    stored = await repo.find_one(a.assignmentId)
    assert stored.title == a.title
    assert stored.status == DRAFT

@pytest.mark.asyncio
async def test_update_completed_is_forbidden(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher, COMPLETED)
    for changes in (AssignmentUpdate(title="X"), AssignmentUpdate(), AssignmentUpdate(status=PUBLISHED)):
        with pytest.raises(Forbidden) as exc:
            await service.update(teacher, a.assignmentId, changes)
        assert "completed assignments cannot be modified" in str(exc.value)
    assert await repo.find_one(a.assignmentId) == a

@pytest.mark.asyncio
async def test_update_validates_fields(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    for changes in (AssignmentUpdate(title=""), AssignmentUpdate(description=" "), AssignmentUpdate(dueDate=None)):
        with pytest.raises(ValidationError):
            await service.update(teacher, a.assignmentId, changes)
    assert await repo.find_one(a.assignmentId) == a

@pytest.mark.asyncio
async def test_update_by_other_teacher_forbidden(service, make_assignment, teacher, other_teacher):
    a = await make_assignment(teacher)
    with pytest.raises(Forbidden):
        await service.update(other_teacher, a.assignmentId, AssignmentUpdate(title="X"))

@pytest.mark.asyncio
async def test_concurrent_field_updates_loser_gets_transient(service, repo, make_assignment, teacher):
    a = await make_assignment(teacher)
    results = await asyncio.gather(
        service.update(teacher, a.assignmentId, AssignmentUpdate(title="Uno")),
        service.update(teacher, a.assignmentId, AssignmentUpdate(title="Due")),
        return_exceptions=True,
    )
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1 and isinstance(losers[0], Transient)
    assert (await repo.find_one(a.assignmentId)).title == winners[0].title


# ------------------------------ store failures --------------------------------
class SlowRepo(FakeAssignmentRepo):
    async def find_one(self, assignment_id):
        await asyncio.sleep(1)
        return await super().find_one(assignment_id)


class DownRepo(FakeAssignmentRepo):
    async def create(self, assignment):
        raise StoreUnavailable("ServerSelectionTimeoutError")


@pytest.mark.asyncio
async def test_store_timeout_is_transient(db, submission_repo, teacher):
    service = AssignmentService(SlowRepo(db), submission_repo, store_timeout=0.01)
    with pytest.raises(Transient):
        await service.get(teacher, "as-any")

@pytest.mark.asyncio
async def test_store_unavailable_is_transient(db, submission_repo, teacher):
    service = AssignmentService(DownRepo(db), submission_repo)
    with pytest.raises(Transient) as exc:
        await service.create(teacher, make_create())
    assert "Server" not in str(exc.value)
    assert db.assignments == {}
