"""
Billing master data: bonus master, service codes, special management
definitions and the per-record bonus calculation history.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import InsuranceType, PointsType, SpecialManagementTier
from src.models.base import Base, TimeStampedModel, UUIDModel


class BonusMaster(Base, UUIDModel, TimeStampedModel):
    """
    Bonus (加算) definition.

    Rows are versioned by valid_from/valid_to. facility_id NULL is the global
    definition; a facility row with the same bonus_code overrides it.
    """

    __tablename__ = "bonus_master"

    facility_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    bonus_code: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    bonus_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bonus_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    insurance_type: Mapped[InsuranceType] = mapped_column(
        Enum(InsuranceType, native_enum=False, length=20),
        nullable=False,
    )

    points_type: Mapped[PointsType] = mapped_column(
        Enum(PointsType, native_enum=False, length=20),
        default=PointsType.FIXED,
        nullable=False,
    )
    fixed_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    conditional_pattern: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    points_config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    predefined_conditions: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    monthly_cap: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    exclusion_group: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    can_combine_with: Mapped[Optional[list[Any]]] = mapped_column(JSON, nullable=True)
    cannot_combine_with: Mapped[Optional[list[Any]]] = mapped_column(JSON, nullable=True)
    requires_reason_field: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    version: Mapped[str] = mapped_column(String(20), default="1", nullable=False)
    display_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_bonus_master_code_valid_from", "bonus_code", "valid_from"),
    )

    def __repr__(self) -> str:
        return f"<BonusMaster(bonus_code={self.bonus_code}, version={self.version})>"


class NursingServiceCode(Base, UUIDModel, TimeStampedModel):
    """Receipt service code (base visit or bonus code)."""

    __tablename__ = "nursing_service_codes"

    service_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    insurance_type: Mapped[InsuranceType] = mapped_column(
        Enum(InsuranceType, native_enum=False, length=20),
        nullable=False,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<NursingServiceCode(service_code={self.service_code}, points={self.points})>"


class SpecialManagementDefinition(Base, UUIDModel, TimeStampedModel):
    """Maps a special management category to its billing tier."""

    __tablename__ = "special_management_definitions"

    facility_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=True,
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    insurance_type: Mapped[SpecialManagementTier] = mapped_column(
        Enum(SpecialManagementTier, native_enum=False, length=20),
        nullable=False,
    )
    monthly_points: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BonusCalculationHistory(Base, UUIDModel, TimeStampedModel):
    """
    One applied bonus for one record.

    Rows for a record are replaced on every evaluation. Monthly caps count
    these rows.
    """

    __tablename__ = "bonus_calculation_history"

    nursing_record_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("nursing_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bonus_master_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bonus_master.id", ondelete="SET NULL"),
        nullable=True,
    )
    bonus_code: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    calculated_points: Mapped[int] = mapped_column(Integer, nullable=False)
    calculation_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    service_code_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("nursing_service_codes.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_manually_adjusted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
