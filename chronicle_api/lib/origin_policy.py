"""
Cross-origin access policy.

The allow-list is assembled once at startup from the configured origins and
the built-in defaults. The same membership test backs both the generic CORS
middleware and the event stream endpoint, which has to pick its
Access-Control-Allow-Origin value itself because the streaming response
sends its headers before any middleware could adjust them.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

from .logging_utils import get_logger

logger = get_logger(__name__)

LOCAL_DEFAULT_ORIGIN = 'http://localhost:8080'


def normalize_origin(origin: Optional[str]) -> str:
    """
    Normalize an origin for comparison.

    Surrounding whitespace and one trailing slash are removed.

    Args:
        origin: Origin string, may be None

    Returns:
        Normalized origin ('' for None)
    """
    if not origin:
        return ''
    origin = origin.strip()
    if origin.endswith('/'):
        origin = origin[:-1]
    return origin


def build_allowed_origins(configured: Iterable[str], defaults: Iterable[str] = ()) -> list[str]:
    """
    Assemble the allow-list from configured values and built-in defaults.

    Entries are normalized, empty entries dropped and duplicates removed;
    configured entries come first.

    Args:
        configured: Origins from configuration
        defaults: Built-in origins that are always allowed

    Returns:
        Ordered, deduplicated list of origins
    """
    allowed: list[str] = []
    for origin in [*configured, *defaults]:
        normalized = normalize_origin(origin)
        if normalized and normalized not in allowed:
            allowed.append(normalized)
    return allowed


def is_origin_allowed(origin: Optional[str], allowed_origins: Sequence[str]) -> bool:
    """Check whether a declared origin is in the allow-list after normalization."""
    normalized = normalize_origin(origin)
    return bool(normalized) and normalized in allowed_origins


def allowed_origin(
    requested_origin: Optional[str],
    allowed_origins: Sequence[str],
    known_origin: Optional[str] = None,
    default_origin: str = LOCAL_DEFAULT_ORIGIN
) -> str:
    """
    Choose the Access-Control-Allow-Origin value for a streaming response.

    Never rejects: an allowed origin is echoed back, the known production
    origin is accepted even if missing from the allow-list, and anything
    else gets the first allow-listed origin (or default_origin when the
    list is empty).

    Args:
        requested_origin: Origin header of the request
        allowed_origins: Normalized allow-list
        known_origin: Production origin accepted as a fallback
        default_origin: Value used when the allow-list is empty

    Returns:
        Origin to emit
    """
    normalized = normalize_origin(requested_origin)
    if is_origin_allowed(normalized, allowed_origins):
        return normalized
    if known_origin and normalized == normalize_origin(known_origin):
        return normalized
    return allowed_origins[0] if allowed_origins else default_origin


@dataclass(frozen=True)
class OriginPolicy:
    """Allow-list based cross-origin policy."""
    allowed_origins: tuple[str, ...]
    known_origin: Optional[str] = None
    default_origin: str = LOCAL_DEFAULT_ORIGIN

    @classmethod
    def from_config(
        cls,
        configured: Iterable[str],
        defaults: Iterable[str] = (),
        known_origin: Optional[str] = None,
        default_origin: str = LOCAL_DEFAULT_ORIGIN
    ) -> 'OriginPolicy':
        return cls(
            allowed_origins=tuple(build_allowed_origins(configured, defaults)),
            known_origin=known_origin,
            default_origin=default_origin
        )

    def is_allowed(self, origin: Optional[str]) -> bool:
        """Decision for standard requests; a missing or empty origin is always allowed."""
        if not origin:
            return True
        return is_origin_allowed(origin, self.allowed_origins)

    def stream_origin(self, origin: Optional[str]) -> str:
        """Decision for the event stream endpoint."""
        return allowed_origin(origin, self.allowed_origins, self.known_origin, self.default_origin)


class OriginPolicyMiddleware(CORSMiddleware):
    """
    CORS middleware backed by an OriginPolicy.

    Requests from origins outside the allow-list are answered with 403.
    Exempt paths (the event stream) are passed through untouched.
    """

    def __init__(self, app: ASGIApp, policy: OriginPolicy, exempt_paths: Sequence[str] = ()):
        super().__init__(
            app,
            allow_origins=list(policy.allowed_origins),
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
        self.policy = policy
        self.exempt_paths = set(exempt_paths)

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.is_allowed(origin)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in self.exempt_paths:
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if not origin:
            # Same-origin and non-browser requests
            await self.app(scope, receive, send)
            return

        if not self.is_allowed_origin(origin):
            logger.warning(
                f"Blocked CORS request from origin: {origin}. "
                f"Allowed: {', '.join(self.policy.allowed_origins)}"
            )
            response = JSONResponse(
                status_code=403,
                content={"success": False, "message": "Not allowed by CORS"}
            )
            await response(scope, receive, send)
            return

        await super().__call__(scope, receive, send)
