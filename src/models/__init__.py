"""
SQLAlchemy Models for the home-nursing records service.

This module exports all database models for the application.
"""

from src.models.base import Base, FacilityScopedModel, TimeStampedModel, UUIDModel
from src.models.facility import Facility, Nurse
from src.models.patient import Patient
from src.models.bonus import (
    BonusCalculationHistory,
    BonusMaster,
    NursingServiceCode,
    SpecialManagementDefinition,
)
from src.models.nursing_record import NursingRecord

__all__ = [
    # Base
    "Base",
    "FacilityScopedModel",
    "TimeStampedModel",
    "UUIDModel",
    # Tenant & staff
    "Facility",
    "Nurse",
    # Patients & records
    "Patient",
    "NursingRecord",
    # Billing master data
    "BonusMaster",
    "NursingServiceCode",
    "SpecialManagementDefinition",
    "BonusCalculationHistory",
]
