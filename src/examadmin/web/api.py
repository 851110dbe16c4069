"""FastAPI application factory.

Main entry point for the exam admin Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from examadmin.db.database import get_db_path, init_db
from examadmin.errors import (
    AuthenticationError,
    ConflictError,
    ExamAdminError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from examadmin.web.routes import (
    analytics_router,
    auth_router,
    chapters_router,
    class_levels_router,
    exam_structures_router,
    exams_router,
    health_router,
    import_router,
    profile_router,
    questions_router,
    scheduled_exams_router,
    schools_router,
    subjects_router,
    users_router,
)

logger = structlog.get_logger(__name__)

API_VERSION = "0.1.0"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
}

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    init_db()
    logger.info("api.startup", database=str(get_db_path().absolute()))
    yield


async def handle_domain_error(request: Request, exc: ExamAdminError) -> JSONResponse:
    """Translate domain errors raised by services into HTTP responses."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    logger.info(
        "api.request_rejected",
        path=request.url.path,
        status_code=status_code,
        error=str(exc),
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Exam Admin API",
        description="Admin backend for school exams and question banks",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response

    app.add_exception_handler(ExamAdminError, handle_domain_error)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(class_levels_router)
    app.include_router(subjects_router)
    app.include_router(questions_router)
    app.include_router(chapters_router)
    app.include_router(import_router)
    app.include_router(exam_structures_router)
    app.include_router(scheduled_exams_router)
    app.include_router(exams_router)
    app.include_router(schools_router)
    app.include_router(users_router)
    app.include_router(profile_router)
    app.include_router(analytics_router)

    return app


# Default app instance for uvicorn
app = create_app()
