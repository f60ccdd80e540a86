#!/usr/bin/env python3
"""Repair employee position references in bulk.

For every employee:
  - drop links to positions that no longer exist or were deactivated
  - give employees left without a position the first active position
  - make sure the primary position is one of the employee's positions

Usage:
    python scripts/fix_employee_positions.py              # repair and commit
    python scripts/fix_employee_positions.py --dry-run    # report only
    python scripts/fix_employee_positions.py --no-default # never assign a default position

Requires .env at project root (DATABASE_URL, JWT_SECRET).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

from sqlalchemy import select

import certtracker.auth.models  # noqa: F401
import certtracker.documents.models  # noqa: F401
from certtracker.common.constants import LOG_DATE_FORMAT, LOG_FORMAT
from certtracker.compliance.schemas import PositionRecord
from certtracker.database import async_session_factory, engine
from certtracker.workforce.models import Employee
from certtracker.workforce.service import EmployeeService, PositionService

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
logger = logging.getLogger("fix_employee_positions")


async def repair_all(*, dry_run: bool, assign_default: bool) -> dict[str, int]:
    stats = {"checked": 0, "fixed": 0, "positions_removed": 0, "defaults_assigned": 0}

    async with async_session_factory() as db:
        active = await PositionService.list_positions(db)
        known = [PositionRecord(id=pos.id, title=pos.title) for pos in active]
        logger.info("Found %d active positions", len(known))
        if not known:
            logger.warning("No active positions; employees without one cannot be given a default")

        employee_ids = (await db.execute(select(Employee.id).order_by(Employee.name))).scalars().all()
        for employee_id in employee_ids:
            stats["checked"] += 1
            result = await EmployeeService.repair_positions(
                db,
                employee_id,
                assign_default=assign_default,
                dry_run=dry_run,
                known_positions=known,
            )
            if not result.changed:
                continue
            stats["fixed"] += 1
            stats["positions_removed"] += len(result.removed_positions)
            if result.added_default_position:
                stats["defaults_assigned"] += 1
            logger.info(
                "%s employee %s: positions=%s primary=%s removed=%s",
                "Would fix" if dry_run else "Fixed",
                employee_id,
                [str(pid) for pid in result.positions],
                result.primary_position,
                result.removed_positions,
            )

        if dry_run:
            await db.rollback()
        else:
            await db.commit()

    await engine.dispose()
    return stats


def main():
    parser = argparse.ArgumentParser(
        description="Repair employee position references",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="Report what would change without writing")
    parser.add_argument("--no-default", action="store_true",
                        help="Do not assign a default position to employees left without one")
    args = parser.parse_args()

    stats = asyncio.run(repair_all(dry_run=args.dry_run, assign_default=not args.no_default))
    logger.info(
        "Done: checked=%d fixed=%d positions_removed=%d defaults_assigned=%d%s",
        stats["checked"],
        stats["fixed"],
        stats["positions_removed"],
        stats["defaults_assigned"],
        " (dry run, nothing written)" if args.dry_run else "",
    )


if __name__ == "__main__":
    main()
