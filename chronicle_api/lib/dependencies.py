"""
FastAPI dependency injection functions.

Provides injectable dependencies for the event hub, origin policy and the
external service clients.
"""

from functools import lru_cache
from fastapi import HTTPException, Request

from ..config import DEFAULT_ALLOWED_ORIGINS, get_settings
from .event_hub import EventHub, get_event_hub as _get_event_hub
from .origin_policy import OriginPolicy
from .mail_service import MailService, get_mail_service as _get_mail_service
from .generation import GeminiClient
from .media import MediaUploader
from .logging_utils import get_logger


logger = get_logger(__name__)


# Realtime dependencies

def get_event_hub() -> EventHub:
    """Get the process-wide EventHub instance"""
    return _get_event_hub()


@lru_cache
def get_origin_policy() -> OriginPolicy:
    """Get the OriginPolicy built from settings (assembled once)"""
    settings = get_settings()
    return OriginPolicy.from_config(
        settings.configured_origins,
        DEFAULT_ALLOWED_ORIGINS,
        known_origin=settings.KNOWN_FRONTEND_ORIGIN,
        default_origin=settings.DEFAULT_STREAM_ORIGIN
    )


# External service dependencies

def get_mail_service() -> MailService:
    """Get the MailService with the transport selected at startup"""
    return _get_mail_service()


def get_generation_client() -> GeminiClient:
    """Get GeminiClient instance (raises 503 if no API key is configured)"""
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        raise HTTPException(status_code=503, detail="Content generation is not configured")
    return GeminiClient(settings.GEMINI_API_KEY, default_model=settings.GEMINI_MODEL)


def get_media_uploader() -> MediaUploader:
    """Get MediaUploader instance (raises 503 if the asset service is not configured)"""
    settings = get_settings()
    if not settings.media_configured:
        raise HTTPException(status_code=503, detail="Media upload is not configured")
    return MediaUploader(
        settings.CLOUDINARY_CLOUD_NAME,
        settings.CLOUDINARY_API_KEY,
        settings.CLOUDINARY_API_SECRET,
        folder=settings.MEDIA_FOLDER
    )


# Token extraction

def get_request_token(request: Request) -> tuple[str | None, str | None]:
    """
    Extract the auth token from a request.

    Returns:
        (cookie_token, header_token); either may be None
    """
    cookie_token = request.cookies.get('token')
    header_token = None
    authorization = request.headers.get('authorization')
    if authorization:
        parts = authorization.split(' ')
        if len(parts) > 1:
            header_token = parts[1]
    return cookie_token, header_token
