"""
FastAPI Dependencies
Dependency injection for facility context, database sessions and services
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.config import settings
from src.api.middleware.tenant import get_current_facility_id, parse_facility_id
from src.db.connection import get_session
from src.services.nursing_record_service import NursingRecordService
from src.utils.errors import TenantRequiredError


async def get_facility_id(request: Request) -> UUID:
    """
    Facility the request acts for.

    Uses the context set by FacilityContextMiddleware and falls back to the
    header itself when the middleware is not installed.

    Raises:
        TenantRequiredError: If no valid facility id was sent
    """
    facility_id = get_current_facility_id()
    if facility_id is None:
        facility_id = parse_facility_id(request.headers.get(settings.TENANT_HEADER))
    if facility_id is None:
        raise TenantRequiredError(f"{settings.TENANT_HEADER} header with a valid UUID is required")
    return facility_id


async def get_nursing_record_service(
    session: AsyncSession = Depends(get_session),
) -> NursingRecordService:
    """Visit record service bound to the request's session."""
    return NursingRecordService(session)
