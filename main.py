# Essential imports
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models for SQLAlchemy relationship resolution
import models  # noqa: F401
from core.config import Settings, get_settings
from core.database import Base, engine
from core.exceptions import AppError
from routers import audit, auth, users
from services.token_service import TokenService
from utils.response import ResponseStyle, use_response_style

# Rate limiter imports
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging, get_logger
from middleware import RequestIDMiddleware, get_request_id
from utils.logger import log_request

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

logger = get_logger(__name__)

# (router, legacy prefix, v1 prefix)
ROUTES = (
    (auth.router, "/api/auth", "/api/v1/users/auth"),
    (users.router, "/api/users", "/api/v1/users"),
    (audit.router, "/api/audit", "/api/v1/audit"),
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{type(exc).__name__}: {exc.message}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "request_id": get_request_id(request)
            }
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.warning(
            "Request validation failed",
            extra={"path": request.url.path, "method": request.method, "error": message}
        )
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None)
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch all unhandled exceptions, log them with a stack trace and
        answer with a generic body that exposes no internals.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_type": type(exc).__name__,
                "request_id": get_request_id(request)
            },
            exc_info=True  # Include full stack trace
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or get_settings()

    # Initialize logging
    setup_logging(
        log_level=app_settings.LOG_LEVEL,
        log_dir=app_settings.LOG_DIR
    )

    # Lifecycle events logging
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not app_settings.is_testing:
            Base.metadata.create_all(bind=engine)
        logger.info("Application startup complete", extra={"event": "startup", "env": app_settings.ENV})
        yield
        logger.info("Application shutting down", extra={"event": "shutdown"})

    app = FastAPI(
        title="Healthcare Records Auth API",
        description="Authentication, session and user administration service",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.settings = app_settings
    app.state.token_service = TokenService.from_settings(app_settings)

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # HTTP Request Logging Middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Log every HTTP request with method, path, status code and duration.
        """
        start_time = time.time()

        response = await call_next(request)

        log_request(
            logger,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            client_ip=request.client.host if request.client else None
        )

        return response

    # Add request ID middleware (outermost, so every log line above carries it)
    app.add_middleware(RequestIDMiddleware)

    # Health check
    @app.get("/health")
    async def health_check():
        logger.debug("Health check requested")
        return {"status": "healthy"}

    register_exception_handlers(app)

    # Including routers, once per presentation style
    for router, legacy_prefix, v1_prefix in ROUTES:
        app.include_router(
            router,
            prefix=legacy_prefix,
            dependencies=[Depends(use_response_style(ResponseStyle.LEGACY))]
        )
        app.include_router(
            router,
            prefix=v1_prefix,
            dependencies=[Depends(use_response_style(ResponseStyle.V1))]
        )

    # Add rate limiter to the app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    return app


app = create_app()
