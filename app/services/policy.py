import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from app.database.errors import StoreUnavailable
from app.schemas.assignment import Assignment
from app.schemas.context import UserContext
from app.services.errors import Forbidden, Transient, ValidationError

T = TypeVar("T")

ANSWER_MAX_LENGTH = 5000
FEEDBACK_MAX_LENGTH = 1000


def utcnow() -> datetime:
    ts = datetime.now(timezone.utc)
    # normalizzazione: tronca ai millisecondi (precisione delle date Mongo)
    return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


def require_teacher(user: UserContext, action: str) -> None:
    if user.role != "teacher":
        raise Forbidden(f"Only teachers can {action}")


def require_student(user: UserContext, action: str) -> None:
    if user.role != "student":
        raise Forbidden(f"Only students can {action}")


def require_owner(user: UserContext, assignment: Assignment) -> None:
    if assignment.createdBy != user.user_id:
        raise Forbidden("Access denied")


def check_length(name: str, value: Optional[str], max_length: int) -> Optional[str]:
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{name} cannot be more than {max_length} characters")
    return value


def require_text(name: str, value: Optional[str], max_length: Optional[int] = None) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{name} is required")
    if max_length is not None:
        check_length(name, value, max_length)
    return value


async def call_store(op: Awaitable[T], timeout: Optional[float]) -> T:
    """Esegue una chiamata allo store entro il timeout; timeout e indisponibilità diventano Transient."""
    try:
        return await asyncio.wait_for(op, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise Transient("store operation timed out") from e
    except StoreUnavailable as e:
        raise Transient("store unavailable") from e
