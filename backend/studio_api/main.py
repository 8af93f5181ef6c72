import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studio_api.api import audio, exports, projects, timeline, video
from studio_api.config import Settings, get_settings
from studio_api.constants.error_codes import get_error_spec
from studio_api.exceptions import StudioError
from studio_api.render.media_engine import MediaEngine
from studio_api.schemas.envelope import ErrorInfo, ErrorResponse
from studio_api.services.container import build_services

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/workspaces"


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        409: "OPERATION_IN_PROGRESS",
        413: "FILE_TOO_LARGE",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "HTTP_ERROR")


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    spec = get_error_spec(code)
    error = ErrorInfo(
        code=code,
        message=message,
        retryable=spec.get("retryable", False),
        suggested_action=spec.get("suggested_action"),
        suggested_fix=spec.get("suggested_fix"),
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(StudioError)
    async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.to_error_info()).model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            loc = " -> ".join(str(x) for x in first_error.get("loc", []))
            msg = first_error.get("msg", "Validation error")
            message = f"{loc}: {msg}" if loc else msg
        else:
            message = "Request validation failed"
        return _error_response(422, "VALIDATION_ERROR", message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(exc.status_code, _http_error_code(exc.status_code), str(exc.detail))

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        message = str(exc) if settings.environment == "development" else "Internal server error"
        return _error_response(500, "INTERNAL_ERROR", message)


def create_app(settings: Settings | None = None, engine: MediaEngine | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = build_services(settings, engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        await services.project_service.ensure_default_project()
        logger.info(f"{settings.app_name} {settings.app_version} serving {settings.projects_dir}")
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = services

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    # Routers
    app.include_router(projects.router, prefix=API_PREFIX, tags=["projects"])
    app.include_router(video.router, prefix=API_PREFIX, tags=["video"])
    app.include_router(audio.router, prefix=API_PREFIX, tags=["audio"])
    app.include_router(timeline.router, prefix=API_PREFIX, tags=["timeline"])
    app.include_router(exports.router, prefix=API_PREFIX, tags=["exports"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
