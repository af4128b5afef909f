"""
Facility (nursing station) and staff models.

A facility is the tenant of the system. Its support-system registrations
drive the 24h and emergency support bonuses.
"""

from typing import Any, Optional

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, FacilityScopedModel, TimeStampedModel, UUIDModel


class Facility(Base, UUIDModel, TimeStampedModel):
    """Home-nursing station."""

    __tablename__ = "facilities"

    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="Facility name")
    facility_code: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        unique=True,
        comment="Station code printed on receipts",
    )

    # Support-system registrations (体制届出)
    has_24h_support_system: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="24時間対応体制加算 registered"
    )
    has_24h_support_system_enhanced: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Enhanced 24h support (負担軽減) registered"
    )
    has_emergency_support_system: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="緊急時訪問看護加算(I) registered"
    )
    has_emergency_support_system_enhanced: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="緊急時訪問看護加算(II) registered"
    )
    burden_reduction_measures: Mapped[list[Any]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Nurse burden-reduction measures in place",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name={self.name})>"


class Nurse(Base, UUIDModel, TimeStampedModel, FacilityScopedModel):
    """Visiting nurse."""

    __tablename__ = "nurses"

    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    qualification_code: Mapped[Optional[str]] = mapped_column(
        String(10),
        nullable=True,
        comment="Staff qualification code for receipts",
    )
    specialist_certifications: Mapped[list[Any]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Specialist certifications, e.g. palliative_care, pressure_ulcer",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Nurse(id={self.id}, full_name={self.full_name})>"
