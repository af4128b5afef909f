"""
API Middleware for the Nursing Bonus Engine.

Provides:
- Facility context injection
"""

from src.api.middleware.tenant import (
    FacilityContextMiddleware,
    clear_facility_context,
    get_current_facility_id,
    parse_facility_id,
    set_facility_context,
)

__all__ = [
    "FacilityContextMiddleware",
    "clear_facility_context",
    "get_current_facility_id",
    "parse_facility_id",
    "set_facility_context",
]
