"""
Patient API Endpoints.

Read-only view of the patient attributes that drive bonus evaluation.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from src.api.deps import get_facility_id, get_nursing_record_service
from src.core.enums import InsuranceType
from src.schemas.bonus import CertificationPeriod, PatientBillingProfile
from src.services.nursing_record_service import NursingRecordService, RecordNotFoundError
from src.utils.errors import NotFoundError

router = APIRouter(
    prefix="/api/patients",
    tags=["patients"],
)


@router.get("/{patient_id}", response_model=PatientBillingProfile)
async def get_patient(
    patient_id: UUID,
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> PatientBillingProfile:
    """Insurance type, special management types and certification period."""
    try:
        patient = await service.get_patient(facility_id, patient_id)
    except RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e

    return PatientBillingProfile(
        id=patient.id,
        insurance_type=InsuranceType(patient.insurance_type),
        special_management_types=list(patient.special_management_types or []),
        certification_period=CertificationPeriod(
            start_date=patient.certification_start_date,
            end_date=patient.certification_end_date,
        ),
    )
