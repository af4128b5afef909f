#!/usr/bin/env python3
"""
Bonus Master Seed Script.

Loads the default medical and care bonus catalog and the special management
category definitions into the database. Existing global rows with the same
bonus_code and version are updated in place, so the script can be re-run
after catalog edits.

Usage:
    python -m scripts.seed_bonus_master [--deactivate-missing]

Options:
    --deactivate-missing  Mark global bonus rows absent from the catalog inactive
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import InsuranceType, PointsType, SpecialManagementTier
from src.db.connection import close_db_connection, get_session_maker
from src.models.bonus import BonusMaster, SpecialManagementDefinition
from src.services.billing.catalog import (
    DEFAULT_BONUS_MASTERS,
    DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS,
)
from src.services.billing.rule_set import BonusRuleSet

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def seed_bonus_masters(session: AsyncSession, deactivate_missing: bool = False) -> int:
    """Upsert global bonus_master rows. Returns the number of rows written."""
    result = await session.execute(select(BonusMaster).where(BonusMaster.facility_id.is_(None)))
    existing = {(row.bonus_code, row.version): row for row in result.scalars().all()}

    written = 0
    for entry in DEFAULT_BONUS_MASTERS:
        values = dict(entry)
        values["insurance_type"] = InsuranceType(values["insurance_type"])
        values["points_type"] = PointsType(values["points_type"])

        row = existing.pop((values["bonus_code"], values["version"]), None)
        if row is None:
            session.add(BonusMaster(**values))
            logger.info(f"  + {values['bonus_code']} v{values['version']}")
        else:
            for key, value in values.items():
                setattr(row, key, value)
            logger.info(f"  ~ {values['bonus_code']} v{values['version']}")
        written += 1

    if deactivate_missing:
        for (code, version), row in existing.items():
            if row.is_active:
                row.is_active = False
                logger.info(f"  - {code} v{version} deactivated")

    return written


async def seed_special_management(session: AsyncSession) -> int:
    """Upsert global special management category definitions."""
    result = await session.execute(
        select(SpecialManagementDefinition).where(
            SpecialManagementDefinition.facility_id.is_(None)
        )
    )
    existing = {row.category: row for row in result.scalars().all()}

    for entry in DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS:
        tier = SpecialManagementTier(entry["insurance_type"])
        row = existing.get(entry["category"])
        if row is None:
            session.add(
                SpecialManagementDefinition(
                    category=entry["category"],
                    display_name=entry["display_name"],
                    insurance_type=tier,
                )
            )
        else:
            row.display_name = entry["display_name"]
            row.insurance_type = tier
            row.is_active = True

    return len(DEFAULT_SPECIAL_MANAGEMENT_DEFINITIONS)


async def main(deactivate_missing: bool = False) -> int:
    """
    Seed the catalog.

    Returns:
        Exit code (0 for success)
    """
    broken = [
        definition
        for definition in BonusRuleSet.from_masters(DEFAULT_BONUS_MASTERS).definitions
        if definition.configuration_error
    ]
    if broken:
        for definition in broken:
            logger.error(f"Catalog entry {definition.code} is invalid: {definition.configuration_error}")
        return 1

    session_maker = get_session_maker()
    try:
        async with session_maker() as session:
            masters = await seed_bonus_masters(session, deactivate_missing=deactivate_missing)
            categories = await seed_special_management(session)
            await session.commit()
        logger.info(f"Seeded {masters} bonus definitions and {categories} special management categories")
        return 0
    finally:
        await close_db_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the bonus master catalog")
    parser.add_argument(
        "--deactivate-missing",
        action="store_true",
        help="Mark global bonus rows absent from the catalog inactive",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(main(deactivate_missing=args.deactivate_missing)))
