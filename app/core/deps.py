from typing import Optional

from fastapi import Header, HTTPException, Request, status
from pydantic import ValidationError

from app.schemas.context import UserContext
from app.services.assignment_service import AssignmentService
from app.services.submission_service import SubmissionService


def get_assignment_service(request: Request) -> AssignmentService:
    service = getattr(request.app.state, "assignment_service", None)
    if service is None:
        raise RuntimeError("AssignmentService non inizializzato")
    return service


def get_submission_service(request: Request) -> SubmissionService:
    service = getattr(request.app.state, "submission_service", None)
    if service is None:
        raise RuntimeError("SubmissionService non inizializzato")
    return service


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> UserContext:
    # l'autenticazione avviene nel gateway: qui arriva solo l'identità già verificata
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing identity headers")
    try:
        return UserContext(user_id=x_user_id, role=x_user_role.strip().lower())
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown role")
