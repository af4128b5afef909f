"""
Services Layer for the Nursing Bonus Engine.

Exports the visit record service; the bonus engine lives in src.services.billing.
"""

from src.services.nursing_record_service import (
    NursingRecordService,
    NursingRecordServiceError,
    RecordNotFoundError,
    RecordValidationError,
    SavedRecord,
)

__all__ = [
    "NursingRecordService",
    "NursingRecordServiceError",
    "RecordNotFoundError",
    "RecordValidationError",
    "SavedRecord",
]
