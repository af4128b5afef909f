"""
Bonus Master API Endpoints.

Read-only listing of the bonus definitions in effect for a facility.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_facility_id, get_nursing_record_service
from src.core.enums import InsuranceType
from src.schemas.bonus import BonusDefinitionResponse
from src.services.billing import BonusDefinition
from src.services.billing.conditions import condition_to_dict
from src.services.nursing_record_service import NursingRecordService

router = APIRouter(
    prefix="/api/bonus-master",
    tags=["bonus-master"],
)


def _definition_to_response(definition: BonusDefinition) -> BonusDefinitionResponse:
    return BonusDefinitionResponse(
        id=definition.id,
        code=definition.code,
        name=definition.name,
        insurance_type=definition.insurance_type,
        points_type=definition.points_type,
        fixed_points=definition.fixed_points,
        conditional_pattern=definition.conditional_pattern,
        points_config=dict(definition.points_config) if definition.points_config else None,
        conditions=[condition_to_dict(condition) for condition in definition.conditions],
        valid_from=definition.valid_from,
        valid_to=definition.valid_to,
        monthly_cap=definition.monthly_cap,
        exclusion_group=definition.exclusion_group,
        can_combine_with=list(definition.can_combine_with),
        cannot_combine_with=list(definition.cannot_combine_with),
        display_order=definition.display_order,
        version=definition.version,
        facility_id=definition.facility_id,
        configuration_error=definition.configuration_error,
    )


@router.get("", response_model=list[BonusDefinitionResponse])
async def list_bonus_definitions(
    insurance_type: InsuranceType = Query(...),
    visit_date: Optional[date] = Query(None, description="Only definitions valid on this date"),
    facility_id: UUID = Depends(get_facility_id),
    service: NursingRecordService = Depends(get_nursing_record_service),
) -> list[BonusDefinitionResponse]:
    """Bonus definitions for an insurance type in evaluation order."""
    definitions = await service.applicable_bonuses(facility_id, insurance_type, visit_date)
    return [_definition_to_response(definition) for definition in definitions]
