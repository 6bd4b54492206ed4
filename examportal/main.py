"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from examportal.api.auth import router as auth_router
from examportal.api.authored_tests import router as tests_router
from examportal.api.mock_tests import router as mock_tests_router
from examportal.api.question_bank import router as question_bank_router
from examportal.api.question_sources import router as question_sources_router
from examportal.api.results import router as results_router
from examportal.core.config import Settings, get_settings
from examportal.core.database import Database
from examportal.core.errors import PortalError
from examportal.services.grading import GradingClient

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None,
               grader: Optional[GradingClient] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}...")
        app.state.db = database or Database(
            settings.DATABASE_URL, pool_size=settings.DATABASE_POOL_SIZE, echo=settings.DATABASE_ECHO
        )
        app.state.db.connect()
        app.state.grader = grader or GradingClient(
            settings.GRADING_SERVICE_URL,
            timeout=settings.GRADING_TIMEOUT_SECONDS,
            api_key=settings.GRADING_API_KEY.get_secret_value() if settings.GRADING_API_KEY else None,
        )
        yield
        logger.info(f"Shutting down {settings.APP_NAME}...")
        app.state.grader.close()
        app.state.db.disconnect()
        logger.info("Shutdown complete")

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware, allow_origins=settings.cors_origins(), allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": exc.detail, "type": "http_error", "status_code": exc.status_code}},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": {"message": "Validation error", "type": "validation_error",
                               "reason": "invalid_request", "details": jsonable_errors(exc)}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=exc)
        error = {"message": "An internal error occurred", "type": "internal_error"}
        if not settings.is_production():
            error["detail"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": error})

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT}

    @app.get("/health/ready", tags=["health"])
    def readiness(request: Request):
        try:
            request.app.state.db.ping()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                                content={"status": "not_ready", "checks": {"database": False}})
        return {"status": "ready", "checks": {"database": True}}

    prefix = settings.API_V1_PREFIX
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(mock_tests_router, prefix=f"{prefix}/mock-tests", tags=["mock-tests"])
    app.include_router(results_router, prefix=f"{prefix}/results", tags=["results"])
    app.include_router(question_bank_router, prefix=f"{prefix}/question-bank", tags=["question-bank"])
    app.include_router(question_sources_router, prefix=f"{prefix}/question-sources", tags=["question-bank"])
    app.include_router(tests_router, prefix=f"{prefix}/tests", tags=["tests"])
    return app


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


logging.basicConfig(
    level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("examportal.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
