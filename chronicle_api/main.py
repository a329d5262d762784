"""
FastAPI main application for the Chronicle blogging platform backend.
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .lib.dependencies import get_event_hub, get_origin_policy
from .lib.event_hub import EventHub
from .lib.mail_service import init_mail_service
from .lib.models import RootStatus, ServiceStatus
from .lib.origin_policy import OriginPolicyMiddleware
from .lib.server_utils import ApiError
from .lib.logging_utils import configure_logging, get_logger
from .routers import debug, events, llm, media


logger = get_logger(__name__)


def events_urls(settings: Settings) -> dict:
    """Local and public URLs of the event stream endpoint"""
    local = f"http://localhost:{settings.PORT}{events.STREAM_PATH}"
    public = None
    if settings.realtime_public_url:
        public = f"{settings.realtime_public_url}{events.STREAM_PATH}"
    return {"local": local, "public": public}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle"""
    settings = get_settings()

    configure_logging(settings)
    logger.info(f"Starting Chronicle API ({settings.application_mode} mode)")

    policy = get_origin_policy()
    logger.info(f"Allowed CORS origins: {', '.join(policy.allowed_origins)}")

    await init_mail_service(settings)

    urls = events_urls(settings)
    if urls["public"]:
        logger.info(f"Real-time events endpoints: {urls['local']}  {urls['public']}")
    else:
        logger.info(f"Real-time events endpoint: {urls['local']}")

    logger.info("=" * 80)
    logger.info(f"Server ready at http://{settings.HOST}:{settings.PORT}")
    logger.info("=" * 80)

    yield

    logger.info(f"Shutting down Chronicle API ({get_event_hub().count()} realtime client(s) connected)")


# Create FastAPI application
app = FastAPI(
    title="Chronicle API",
    description="Blogging platform backend with realtime events",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    OriginPolicyMiddleware,
    policy=get_origin_policy(),
    exempt_paths=[events.STREAM_PATH]
)


# Error handlers

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    json_errors = [error for error in exc.errors() if error.get("type") == "json_invalid"]
    if not json_errors:
        return await request_validation_exception_handler(request, exc)

    error = json_errors[0]
    detail = error.get("ctx", {}).get("error") or error.get("msg", "JSON decode error")
    logger.error(f"Invalid JSON received: {detail}")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid JSON in request body",
            "error": str(detail)
        }
    )


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.error(f"Server error: {exc}", exc_info=exc)
    settings = get_settings()
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "error": str(exc) if settings.is_development else "Server error"
        }
    )


# Service endpoints (unversioned)

@app.get("/", response_model=RootStatus)
async def root(
    hub: EventHub = Depends(get_event_hub),
    settings: Settings = Depends(get_settings)
):
    """Server status with the realtime client count and event stream URLs"""
    return RootStatus(
        message="Server is running",
        realtimeClients=hub.count(),
        events=events_urls(settings)
    )


@app.get("/health", response_model=ServiceStatus)
async def health_check(hub: EventHub = Depends(get_event_hub)):
    """Health check endpoint"""
    return ServiceStatus(status="OK", realtimeClients=hub.count())


@app.get("/__debug/ping")
async def ping():
    """Quick top-level ping"""
    return {"success": True, "msg": "pong"}


# API router
api = APIRouter(prefix="/api")
api.include_router(events.router)
api.include_router(llm.router)
api.include_router(media.router)

settings = get_settings()
if settings.debug_api_enabled:
    api.include_router(debug.router)
    logger.info("Debug routes enabled at /api/debug/*")

app.include_router(api)

if settings.debug_env_enabled:
    app.include_router(debug.diagnostics_router)
