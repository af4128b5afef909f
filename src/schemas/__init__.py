"""
Pydantic Schemas for the nursing record API.

This module exports all request/response schemas for the API.
"""

from src.schemas.bonus import (
    BonusDefinitionResponse,
    CertificationPeriod,
    PatientBillingProfile,
)
from src.schemas.nursing_record import (
    AppliedBonusResponse,
    BillingSummary,
    NursingRecordCreate,
    NursingRecordResponse,
    NursingRecordUpdate,
    RecalculateRequest,
)

__all__ = [
    # Nursing records
    "NursingRecordCreate",
    "NursingRecordUpdate",
    "NursingRecordResponse",
    "RecalculateRequest",
    "AppliedBonusResponse",
    "BillingSummary",
    # Bonus master / patients
    "BonusDefinitionResponse",
    "CertificationPeriod",
    "PatientBillingProfile",
]
