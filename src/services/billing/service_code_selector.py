"""
Receipt service code selection for applied bonuses.

Some bonuses map to different receipt codes depending on the visit (day of
month, time band, duration, building occupancy). The selector returns the
code string; the repository resolves it to a nursing_service_codes row valid
on the visit date.
"""

import logging
from typing import Optional

from src.core.config import BillingSettings, get_billing_settings
from src.services.billing.context import AggregateContext
from src.services.billing.records import VisitRecord

logger = logging.getLogger(__name__)

EMERGENCY_VISIT_EARLY = "510002470"
EMERGENCY_VISIT_LATE = "510004570"
NIGHT_EARLY_MORNING = "510003970"
LATE_NIGHT = "510004070"
DISCHARGE_SUPPORT_BASIC = "550001170"
DISCHARGE_SUPPORT_LONG = "550001270"
SUPPORT_24H_BASIC = "550000670"
SUPPORT_24H_ENHANCED = "550002170"
MULTIPLE_VISIT_2_LOW = "510001970"
MULTIPLE_VISIT_2_HIGH = "510002070"
MULTIPLE_VISIT_3_LOW = "510002170"
MULTIPLE_VISIT_3_HIGH = "510002270"


class ServiceCodeSelector:
    """Chooses the receipt code for bonuses whose code follows from the visit."""

    def __init__(self, settings: Optional[BillingSettings] = None):
        self.settings = settings or get_billing_settings()

    def select(
        self,
        bonus_code: str,
        record: VisitRecord,
        context: AggregateContext,
    ) -> Optional[str]:
        """Receipt service code for `bonus_code`, or None when it must be chosen manually."""
        if bonus_code == "medical_emergency_visit":
            return EMERGENCY_VISIT_EARLY if record.visit_date.day <= 14 else EMERGENCY_VISIT_LATE

        if bonus_code == "medical_night_early_morning":
            return NIGHT_EARLY_MORNING if record.actual_start_time else None

        if bonus_code == "medical_late_night":
            return LATE_NIGHT if record.actual_start_time else None

        if bonus_code == "discharge_support_guidance_basic":
            return DISCHARGE_SUPPORT_BASIC if record.is_discharge_date else None

        if bonus_code == "discharge_support_guidance_long":
            minutes = record.duration_minutes
            if not record.is_discharge_date or minutes is None:
                return None
            if minutes <= self.settings.LONG_VISIT_MINUTES:
                return None
            return DISCHARGE_SUPPORT_LONG

        if bonus_code == "24h_response_system_basic":
            return SUPPORT_24H_BASIC

        if bonus_code == "24h_response_system_enhanced":
            return SUPPORT_24H_ENHANCED

        if bonus_code in ("medical_multiple_visit_2times_1-2", "medical_multiple_visit_3times"):
            occupancy = context.building_occupancy
            low = occupancy is None or occupancy <= 2
            if occupancy is None:
                logger.debug(f"No building for patient {record.patient_id}, using 1-2 occupancy code")
            if bonus_code == "medical_multiple_visit_2times_1-2":
                return MULTIPLE_VISIT_2_LOW if low else MULTIPLE_VISIT_2_HIGH
            return MULTIPLE_VISIT_3_LOW if low else MULTIPLE_VISIT_3_HIGH

        return None
