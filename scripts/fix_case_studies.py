"""
Repair stored case studies so the index page has the fields it reads.

Fills projectTitle, projectDescription, projectImageUrl, projectUrl, id,
sections, and timestamps from legacy field names.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio_backend.config import get_settings
from portfolio_backend.content import CASE_STUDIES, repair_case_study
from portfolio_backend.dependencies import get_record_store
from portfolio_backend.store import RecordStore

logger = logging.getLogger(__name__)


def fix_case_studies(store: RecordStore, *, dry_run: bool = False) -> int:
    """Repair every case study in ``store``. Returns how many were changed."""
    records = store.list_records(CASE_STUDIES)
    if not records:
        logger.info("No case studies found.")
        return 0
    logger.info("Found %d case studies. Checking for missing fields...", len(records))

    updated = 0
    for record in records:
        record_id = str(record.get("id"))
        repaired, fixed = repair_case_study(record_id, record)
        if not fixed:
            continue
        logger.info("[%s] Filling %s", record_id, ", ".join(fixed))
        if not dry_run:
            store.put_record(CASE_STUDIES, record_id, repaired)
        updated += 1

    logger.info(
        "%s %d case studies", "Would update" if dry_run else "Updated", updated
    )
    return updated


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Repair legacy case study fields.")
    parser.add_argument(
        "--dry-run", action="store_true", help="Report changes without writing them."
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=get_settings().log_level)
    fix_case_studies(get_record_store(), dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
