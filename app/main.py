# app/main.py
from contextlib import asynccontextmanager
import logging
import sys
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import settings
from app.database.mongo_assignment import MongoAssignmentRepository
from app.database.mongo_submission import MongoSubmissionRepository
from app.services.assignment_service import AssignmentService
from app.services.submission_service import SubmissionService
from app.services import errors
from app.routers.v1 import health
from app.routers.v1 import assignment
from app.routers.v1 import submission

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger("app")

STATUS_BY_ERROR = {
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.Forbidden: status.HTTP_403_FORBIDDEN,
    errors.NotFound: status.HTTP_404_NOT_FOUND,
    errors.InvalidTransition: status.HTTP_400_BAD_REQUEST,
    errors.InvalidState: status.HTTP_400_BAD_REQUEST,
    errors.DeadlinePassed: status.HTTP_400_BAD_REQUEST,
    errors.AlreadySubmitted: status.HTTP_409_CONFLICT,
    errors.Transient: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: errors.AssignmentError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST


def describe_validation(exc: RequestValidationError) -> str:
    # "body.dueDate: Input should be a valid datetime; body.title: Field required"
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def install_services(app: FastAPI, assignment_repo, submission_repo, store_timeout=None):
    app.state.assignment_service = AssignmentService(
        assignment_repo, submission_repo, store_timeout=store_timeout
    )
    app.state.submission_service = SubmissionService(
        submission_repo, assignment_repo, store_timeout=store_timeout
    )


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        timeout_ms = int(settings.store_timeout * 1000)
        client = AsyncIOMotorClient(
            settings.mongo_uri,
            uuidRepresentation="standard",
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        db = client[settings.mongo_db_name]
        assignment_repo = MongoAssignmentRepository(db)
        submission_repo = MongoSubmissionRepository(db)
        await assignment_repo.ensure_indexes()
        await submission_repo.ensure_indexes()

        app.state.mongo_client = client
        install_services(app, assignment_repo, submission_repo, settings.store_timeout)
        logger.info("Mongo pronto su db %s", settings.mongo_db_name)

        try:
            yield
        finally:
            client.close()

    app = FastAPI(
        title="Assignment Portal",
        description="Gestione assignment e submission",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins, allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(errors.AssignmentError)
    async def domain_error_handler(request: Request, exc: errors.AssignmentError):
        code = status_for(exc)
        logger.info("%s %s -> %s %s", request.method, request.url.path, code, exc.code)
        return JSONResponse(
            status_code=code,
            content={"success": False, "error": exc.code, "detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("%s %s -> 400 validation_error", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": errors.ValidationError.code, "detail": describe_validation(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "detail": "Internal server error"},
        )

    app.include_router(health.router,     prefix=settings.api_prefix, tags=["health"])
    app.include_router(assignment.router, prefix=settings.api_prefix, tags=["assignments"])
    app.include_router(submission.router, prefix=settings.api_prefix, tags=["submissions"])
    return app

app = create_app()
