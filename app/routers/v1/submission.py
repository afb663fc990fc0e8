from typing import Annotated, List
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.schemas.context import UserContext
from app.schemas.submission import Submission, SubmissionCreate, SubmissionDetail, SubmissionReview
from app.core.deps import get_current_user, get_submission_service
from app.services.submission_service import SubmissionService


router = APIRouter()

ServiceDep = Annotated[SubmissionService, Depends(get_submission_service)]
UserDep = Annotated[UserContext, Depends(get_current_user)]


@router.post("/submissions", status_code=status.HTTP_201_CREATED)
async def submit_endpoint(
    submission: SubmissionCreate,
    user: UserDep,
    service: ServiceDep,
):
    created = await service.submit(user, submission)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"success": True, "data": created.model_dump(mode="json")},
        headers={"Location": f"/api/v1/submissions/{created.submissionId}"},
    )


@router.get("/submissions/my", response_model=List[SubmissionDetail])
async def list_my_submissions_endpoint(
    user: UserDep,
    service: ServiceDep,
):
    return await service.list_mine(user)


@router.get("/submissions/{submission_id}", response_model=SubmissionDetail)
async def get_submission_endpoint(
    submission_id: str,
    user: UserDep,
    service: ServiceDep,
):
    return await service.get(user, submission_id)


@router.put("/submissions/{submission_id}", response_model=Submission)
async def review_submission_endpoint(
    submission_id: str,
    review: SubmissionReview,
    user: UserDep,
    service: ServiceDep,
):
    return await service.review(user, submission_id, review)
