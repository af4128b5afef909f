"""
Nursing Record API Endpoints.

Provides:
- Visit record create and update, each returning freshly computed billing
- Record listing and lookup
- Month-wide bonus recalculation
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import get_facility_id, get_nursing_record_service
from src.schemas.nursing_record import (
    NursingRecordCreate,
    NursingRecordResponse,
    NursingRecordUpdate,
    RecalculateRequest,
)
from src.services.nursing_record_service import (
    NursingRecordService,
    RecordNotFoundError,
    RecordValidationError,
    SavedRecord,
)
from src.utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/nursing-records",
    tags=["nursing-records"],
)


def _saved_to_response(saved: SavedRecord) -> NursingRecordResponse:
    return NursingRecordResponse.from_record(saved.record, saved.configuration_errors)


def _validation_detail(error: RecordValidationError) -> str:
    if error.errors:
        return f"{error}: {'; '.join(error.errors)}"
    return str(error)


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "",
    response_model=NursingRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_nursing_record(
    payload: NursingRecordCreate,
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> NursingRecordResponse:
    """
    Create a visit record.

    Bonuses, calculated points and billing alerts are computed before the
    response is returned. Alerts never block the save.
    """
    try:
        saved = await service.create_record(facility_id, payload)
    except RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e
    except RecordValidationError as e:
        raise ValidationError(_validation_detail(e)) from e
    return _saved_to_response(saved)


@router.put("/{record_id}", response_model=NursingRecordResponse)
async def update_nursing_record(
    record_id: UUID,
    payload: NursingRecordUpdate,
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> NursingRecordResponse:
    """Update a visit record and re-run bonus evaluation."""
    try:
        saved = await service.update_record(facility_id, record_id, payload)
    except RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e
    except RecordValidationError as e:
        raise ValidationError(_validation_detail(e)) from e
    return _saved_to_response(saved)


@router.get("", response_model=list[NursingRecordResponse])
async def list_nursing_records(
    patient_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> list[NursingRecordResponse]:
    records = await service.list_records(facility_id, patient_id, date_from, date_to)
    return [NursingRecordResponse.from_record(record) for record in records]


@router.post("/recalculate", response_model=list[NursingRecordResponse])
async def recalculate_month(
    payload: RecalculateRequest,
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> list[NursingRecordResponse]:
    """Re-evaluate every billable record of the patient's month in visit order."""
    try:
        saved = await service.recalculate_month(
            facility_id, payload.patient_id, payload.year, payload.month
        )
    except RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e
    return [_saved_to_response(item) for item in saved]


@router.get("/{record_id}", response_model=NursingRecordResponse)
async def get_nursing_record(
    record_id: UUID,
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> NursingRecordResponse:
    try:
        record = await service.get_record(facility_id, record_id)
    except RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e
    return NursingRecordResponse.from_record(record)
