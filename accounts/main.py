"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.api.middleware import CorrelationIdMiddleware
from accounts.api.users import router as users_router
from accounts.config import get_settings
from accounts.database import close_database, health_check, init_database, run_migrations
from accounts.errors import AccountError
from accounts.models.response import ApiErrorResponse, ApiResponse
from accounts.services.logging_service import configure_logging, get_logger
from accounts.services.token_service import TokenService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    # Misconfigured signing secrets are fatal: refuse to start
    TokenService()

    Path(settings.upload_temp_dir).mkdir(parents=True, exist_ok=True)

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - account requests will fail until it is reachable",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    # Shutdown
    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Accounts API",
    description="User registration, login and token rotation",
    version="1.0.0",
    lifespan=lifespan,
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    body = ApiErrorResponse(status_code=status_code, message=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Translate service errors into the error envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
        path=request.url.path,
    )
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 envelopes."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = f"Field '{field}': {first_error.get('msg', 'Validation failed')}"
    else:
        message = "Request validation failed"

    structlog.get_logger().warning("validation_error", detail=message)
    return _error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the envelope."""
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback and return a generic 500 envelope."""
    structlog.get_logger().error(
        "unhandled_exception",
        path=request.url.path,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(500, "Internal server error")


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)


@app.get("/")
async def root() -> ApiResponse:
    return ApiResponse(status_code=200, data={}, message="Accounts API is running")


@app.get("/health")
async def health() -> JSONResponse:
    """Report database connectivity."""
    healthy = await health_check()
    status_code = 200 if healthy else 503
    body = ApiResponse(
        status_code=status_code,
        data={"database": "connected" if healthy else "unavailable"},
        message="healthy" if healthy else "degraded",
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
