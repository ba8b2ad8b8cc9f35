import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import StoreCapacityError, StoreError
from .logging_config import configure_logging
from .options import FONT_OPTIONS, FONT_SIZE_OPTIONS, TIMEZONE_OPTIONS
from .routers import countdowns as countdowns_router
from .schemas import OptionsOut
from .settings import get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "countdowns",
        "description": "CRUD operations for shareable countdowns and their live remaining time.",
    },
    {"name": "options", "description": "Choices offered when styling a countdown."},
]

_settings = get_settings()
configure_logging(_settings.log_level)

app = FastAPI(
    title="Countdown Backend",
    description=(
        "Backend API for shareable countdown timers with natural or working-hours time "
        "and pluggable storage backends."
    ),
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _plain_errors(exc),
        },
    )


def _plain_errors(exc: RequestValidationError) -> list:
    """Error details with exception contexts rendered as text so they serialize."""
    errors = []
    for err in exc.errors():
        item = dict(err)
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        item.pop("input", None)
        errors.append(item)
    return errors


@app.exception_handler(StoreCapacityError)
async def capacity_exception_handler(request: Request, exc: StoreCapacityError) -> JSONResponse:
    """
    Storage is full; tell the client so it can trim images or old countdowns.
    """
    logger.error("Storage capacity exceeded on %s (%s): %s", request.url.path, exc.backend, exc.message)
    return JSONResponse(
        status_code=507,
        content={
            "error": "StorageCapacityExceeded",
            "message": "Countdown storage is full. Remove background images or old countdowns and retry.",
            "detail": exc.message,
        },
    )


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Storage failure on %s (%s): %s", request.url.path, exc.backend, exc.message)
    return JSONResponse(
        status_code=503,
        content={
            "error": "StorageUnavailable",
            "message": "Countdown storage is unavailable",
            "detail": exc.message,
        },
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# PUBLIC_INTERFACE
@app.get("/api/v1/options", response_model=OptionsOut, summary="Display Options", tags=["options"])
def get_options() -> OptionsOut:
    """
    Timezones, fonts and font sizes offered when styling a countdown.
    """
    return OptionsOut(timezones=TIMEZONE_OPTIONS, fonts=FONT_OPTIONS, font_sizes=FONT_SIZE_OPTIONS)


# Include routers
app.include_router(countdowns_router.router)
