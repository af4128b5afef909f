"""
Billing Engine Configuration
Settings for the visit bonus evaluation engine.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.enums import SpecialManagementTier


class BillingSettings(BaseSettings):
    """
    Billing engine configuration settings.

    All values can be overridden with BILLING_-prefixed environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="BILLING_",  # All billing settings prefixed with BILLING_
    )

    # =========================================================================
    # Time Handling
    # =========================================================================
    LOCAL_UTC_OFFSET_HOURS: int = Field(
        default=9,
        ge=-12,
        le=14,
        description="Offset applied to stored visit times before time-of-day checks (JST)",
    )

    # =========================================================================
    # Visit Thresholds
    # =========================================================================
    LONG_VISIT_MINUTES: int = Field(
        default=90,
        gt=0,
        description="Visit duration that requires a long_visit_reason",
    )
    MULTIPLE_VISIT_ALERT_COUNT: int = Field(
        default=2,
        ge=2,
        description="Same-day visit count that requires a multiple_visit_reason",
    )
    EMERGENCY_VISIT_DAY_THRESHOLD: int = Field(
        default=14,
        ge=1,
        le=31,
        description="Monthly emergency-visit count splitting the up_to_14 / after_14 tiers",
    )

    # =========================================================================
    # Terminal Care
    # =========================================================================
    TERMINAL_CARE_WINDOW_DAYS: int = Field(
        default=14,
        ge=1,
        description="Days before death that count towards terminal care visits",
    )
    TERMINAL_CARE_REQUIRED_VISITS: int = Field(
        default=2,
        ge=1,
        description="Terminal care visits required inside the window",
    )

    # =========================================================================
    # Special Management
    # =========================================================================
    SPECIAL_MANAGEMENT_FALLBACK_MEDICAL: SpecialManagementTier = Field(
        default=SpecialManagementTier.MEDICAL_2500,
        description="Tier assumed for medical patients whose categories have no definition",
    )
    SPECIAL_MANAGEMENT_FALLBACK_CARE: SpecialManagementTier = Field(
        default=SpecialManagementTier.CARE_250,
        description="Tier assumed for care patients whose categories have no definition",
    )

    # =========================================================================
    # Validation
    # =========================================================================
    @field_validator("SPECIAL_MANAGEMENT_FALLBACK_MEDICAL")
    @classmethod
    def validate_medical_fallback(cls, v: SpecialManagementTier) -> SpecialManagementTier:
        """Medical fallback must be a medical tier."""
        if not v.value.startswith("medical_"):
            raise ValueError("SPECIAL_MANAGEMENT_FALLBACK_MEDICAL must be a medical tier")
        return v

    @field_validator("SPECIAL_MANAGEMENT_FALLBACK_CARE")
    @classmethod
    def validate_care_fallback(cls, v: SpecialManagementTier) -> SpecialManagementTier:
        """Care fallback must be a care tier."""
        if not v.value.startswith("care_"):
            raise ValueError("SPECIAL_MANAGEMENT_FALLBACK_CARE must be a care tier")
        return v


@lru_cache
def get_billing_settings() -> BillingSettings:
    """Get cached billing settings instance."""
    return BillingSettings()
