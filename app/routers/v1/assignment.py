from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from app.schemas.assignment import (
    Assignment,
    AssignmentCreate,
    AssignmentStatus,
    AssignmentUpdate,
    StatusChange,
    StudentAssignment,
    TeacherAssignment,
)
from app.schemas.context import UserContext
from app.schemas.submission import Submission
from app.core.deps import get_assignment_service, get_current_user, get_submission_service
from app.services.assignment_service import AssignmentService
from app.services.submission_service import SubmissionService


router = APIRouter()

ServiceDep = Annotated[AssignmentService, Depends(get_assignment_service)]
SubmissionsDep = Annotated[SubmissionService, Depends(get_submission_service)]
UserDep = Annotated[UserContext, Depends(get_current_user)]


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
async def create_assignment_endpoint(
    assignment: AssignmentCreate,
    user: UserDep,
    service: ServiceDep,
):
    created = await service.create(user, assignment)
    location = f"/api/v1/assignments/{created.assignmentId}"
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"success": True, "data": created.model_dump(mode="json")},
        headers={"Location": location},
    )


@router.get("/assignments/teacher", response_model=List[TeacherAssignment])
async def list_teacher_assignments_endpoint(
    user: UserDep,
    service: ServiceDep,
    status: Optional[AssignmentStatus] = None,
):
    return await service.list_for_teacher(user, status)


@router.get("/assignments/student", response_model=List[StudentAssignment])
async def list_student_assignments_endpoint(
    user: UserDep,
    service: ServiceDep,
):
    return await service.list_for_student(user)


@router.get("/assignments/{assignment_id}", response_model=Assignment)
async def get_assignment_endpoint(
    assignment_id: str,
    user: UserDep,
    service: ServiceDep,
):
    return await service.get(user, assignment_id)


@router.put("/assignments/{assignment_id}", response_model=Assignment)
async def update_assignment_endpoint(
    assignment_id: str,
    changes: AssignmentUpdate,
    user: UserDep,
    service: ServiceDep,
):
    return await service.update(user, assignment_id, changes)


@router.put("/assignments/{assignment_id}/status", response_model=Assignment)
async def update_assignment_status_endpoint(
    assignment_id: str,
    body: StatusChange,
    user: UserDep,
    service: ServiceDep,
):
    return await service.transition_status(user, assignment_id, body.status)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment_endpoint(
    assignment_id: str,
    user: UserDep,
    service: ServiceDep,
):
    await service.delete(user, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/assignments/{assignment_id}/submissions", response_model=List[Submission])
async def list_assignment_submissions_endpoint(
    assignment_id: str,
    user: UserDep,
    submissions: SubmissionsDep,
):
    return await submissions.list_for_assignment(user, assignment_id)
