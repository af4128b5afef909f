"""
Facility Context Middleware for Multi-Tenant Isolation.

Provides:
- Facility identification from the X-Facility-ID header
- Facility context injection for requests

Authentication is handled in front of this service; the header is trusted.
"""

import logging
from contextvars import ContextVar
from typing import Callable, Optional
from uuid import UUID

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.api.config import get_settings

logger = logging.getLogger(__name__)

_current_facility_id: ContextVar[Optional[UUID]] = ContextVar(
    "current_facility_id", default=None
)


def get_current_facility_id() -> Optional[UUID]:
    """Get current facility ID from context."""
    return _current_facility_id.get()


def set_facility_context(facility_id: Optional[UUID]) -> None:
    _current_facility_id.set(facility_id)


def clear_facility_context() -> None:
    _current_facility_id.set(None)


def parse_facility_id(raw: Optional[str]) -> Optional[UUID]:
    """UUID from a header value; None when missing or malformed."""
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring malformed facility id header: {raw!r}")
        return None


class FacilityContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware to set the facility context from the request header.

    Routes that need a facility read it through the get_facility_id
    dependency, which rejects requests without one.
    """

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
        ]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and set facility context."""
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        header = get_settings().TENANT_HEADER
        facility_id = parse_facility_id(request.headers.get(header))
        set_facility_context(facility_id)
        request.state.facility_id = facility_id

        try:
            response = await call_next(request)
            return response
        finally:
            clear_facility_context()
