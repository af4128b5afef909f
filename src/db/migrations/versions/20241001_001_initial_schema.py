"""Initial schema: facilities, patients, nursing records and billing master data.

Revision ID: 20241001_001
Revises:
Create Date: 2024-10-01
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "20241001_001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _facility_fk(nullable: bool = False) -> sa.Column:
    return sa.Column(
        "facility_id",
        sa.Uuid(),
        sa.ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=nullable,
        index=True,
    )


def upgrade() -> None:
    """Create all tables."""

    # NOTE: enum columns are plain strings; the models use non-native enums.

    op.create_table(
        "facilities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("facility_code", sa.String(20), nullable=True, unique=True),
        sa.Column("has_24h_support_system", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "has_24h_support_system_enhanced", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "has_emergency_support_system", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "has_emergency_support_system_enhanced",
            sa.Boolean,
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("burden_reduction_measures", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "nurses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _facility_fk(),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("qualification_code", sa.String(10), nullable=True),
        sa.Column("specialist_certifications", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "patients",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _facility_fk(),
        sa.Column("patient_number", sa.String(50), nullable=False, index=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("insurance_type", sa.String(20), nullable=False),
        sa.Column("special_management_types", sa.JSON, nullable=False),
        sa.Column("special_management_start_date", sa.Date, nullable=True),
        sa.Column("special_management_end_date", sa.Date, nullable=True),
        sa.Column("certification_start_date", sa.Date, nullable=True),
        sa.Column("certification_end_date", sa.Date, nullable=True),
        sa.Column("building_id", sa.Uuid(), nullable=True, index=True),
        sa.Column("death_date", sa.Date, nullable=True),
        sa.Column("death_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("death_place_code", sa.String(4), nullable=True),
        sa.Column("last_discharge_date", sa.Date, nullable=True),
        sa.Column("last_plan_created_date", sa.Date, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_patients_facility_number",
        "patients",
        ["facility_id", "patient_number"],
        unique=True,
    )

    op.create_table(
        "nursing_service_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("service_code", sa.String(20), nullable=False, index=True),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("insurance_type", sa.String(20), nullable=False),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("valid_from", sa.Date, nullable=False),
        sa.Column("valid_to", sa.Date, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "bonus_master",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _facility_fk(nullable=True),
        sa.Column("bonus_code", sa.String(100), nullable=False, index=True),
        sa.Column("bonus_name", sa.String(200), nullable=False),
        sa.Column("bonus_category", sa.String(50), nullable=True),
        sa.Column("insurance_type", sa.String(20), nullable=False),
        sa.Column("points_type", sa.String(20), nullable=False),
        sa.Column("fixed_points", sa.Integer, nullable=True),
        sa.Column("conditional_pattern", sa.String(50), nullable=True),
        sa.Column("points_config", sa.JSON, nullable=True),
        sa.Column("predefined_conditions", sa.JSON, nullable=False),
        sa.Column("monthly_cap", sa.Integer, nullable=True),
        sa.Column("exclusion_group", sa.String(50), nullable=True),
        sa.Column("can_combine_with", sa.JSON, nullable=True),
        sa.Column("cannot_combine_with", sa.JSON, nullable=True),
        sa.Column("requires_reason_field", sa.String(50), nullable=True),
        sa.Column("valid_from", sa.Date, nullable=False),
        sa.Column("valid_to", sa.Date, nullable=True),
        sa.Column("version", sa.String(20), nullable=False, server_default="1"),
        sa.Column("display_order", sa.Integer, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_bonus_master_code_valid_from",
        "bonus_master",
        ["bonus_code", "valid_from"],
    )

    op.create_table(
        "special_management_definitions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "facility_id",
            sa.Uuid(),
            sa.ForeignKey("facilities.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("category", sa.String(50), nullable=False, index=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("insurance_type", sa.String(20), nullable=False),
        sa.Column("monthly_points", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "nursing_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _facility_fk(),
        sa.Column(
            "patient_id",
            sa.Uuid(),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "nurse_id",
            sa.Uuid(),
            sa.ForeignKey("nurses.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("visit_date", sa.Date, nullable=False),
        sa.Column("actual_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        # Vital signs
        sa.Column("body_temperature", sa.Numeric(4, 1), nullable=True),
        sa.Column("blood_pressure_systolic", sa.Integer, nullable=True),
        sa.Column("blood_pressure_diastolic", sa.Integer, nullable=True),
        sa.Column("heart_rate", sa.Integer, nullable=True),
        sa.Column("respiratory_rate", sa.Integer, nullable=True),
        sa.Column("oxygen_saturation", sa.Integer, nullable=True),
        # Care narrative
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("content", sa.Text, nullable=True),
        sa.Column("observations", sa.Text, nullable=True),
        sa.Column("interventions", sa.Text, nullable=True),
        sa.Column("evaluation", sa.Text, nullable=True),
        sa.Column("patient_family_response", sa.Text, nullable=True),
        # Bonus flags
        sa.Column("is_second_visit", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_discharge_date", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_first_visit_of_plan", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("has_collaboration_record", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_terminal_care", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("specialist_care_type", sa.String(50), nullable=True),
        # Reasons
        sa.Column("multiple_visit_reason", sa.Text, nullable=True),
        sa.Column("emergency_visit_reason", sa.Text, nullable=True),
        sa.Column("long_visit_reason", sa.Text, nullable=True),
        # Billing
        sa.Column(
            "service_code_id",
            sa.Uuid(),
            sa.ForeignKey("nursing_service_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("visit_location_code", sa.String(4), nullable=True),
        sa.Column("staff_qualification_code", sa.String(4), nullable=True),
        sa.Column("calculated_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("applied_bonuses", sa.JSON, nullable=False),
        sa.Column(
            "has_additional_payment_alert", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("billing_alerts", sa.JSON, nullable=False),
        sa.Column("billing_degraded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("special_management_data", sa.JSON, nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_nursing_records_patient_visit_date",
        "nursing_records",
        ["patient_id", "visit_date"],
    )

    op.create_table(
        "bonus_calculation_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "nursing_record_id",
            sa.Uuid(),
            sa.ForeignKey("nursing_records.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "bonus_master_id",
            sa.Uuid(),
            sa.ForeignKey("bonus_master.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("bonus_code", sa.String(100), nullable=False, index=True),
        sa.Column("calculated_points", sa.Integer, nullable=False),
        sa.Column("calculation_details", sa.JSON, nullable=True),
        sa.Column(
            "service_code_id",
            sa.Uuid(),
            sa.ForeignKey("nursing_service_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_manually_adjusted", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("bonus_calculation_history")
    op.drop_index("ix_nursing_records_patient_visit_date", table_name="nursing_records")
    op.drop_table("nursing_records")
    op.drop_table("special_management_definitions")
    op.drop_index("ix_bonus_master_code_valid_from", table_name="bonus_master")
    op.drop_table("bonus_master")
    op.drop_table("nursing_service_codes")
    op.drop_index("ix_patients_facility_number", table_name="patients")
    op.drop_table("patients")
    op.drop_table("nurses")
    op.drop_table("facilities")
