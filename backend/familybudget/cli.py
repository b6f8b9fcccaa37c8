"""
Process due recurring transactions from the command line (e.g. from cron).

Usage:
  familybudget-process --family-id 3
  familybudget-process --all-families --as-of 2024-02-01
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date

from familybudget.config import get_settings
from familybudget.database import Base, SessionLocal, engine
from familybudget.services.recurring_service import RecurringService
from familybudget.services.schedule import parse_date

logger = logging.getLogger(__name__)


def _as_of_date(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create transactions for due recurring rules.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--family-id", type=int, help="Process a single family")
    target.add_argument("--all-families", action="store_true", help="Process every family with due rules")
    parser.add_argument("--as-of", type=_as_of_date, default=None, help="Due date cutoff (default: today)")
    return parser


def process(family_ids: list[int] | None, as_of: date) -> dict[int, dict]:
    """
    Run processing for the given families, or for every family with due rules.

    Returns:
        Mapping of family id -> {"created": count, "errors": [...]}
    """
    db = SessionLocal()
    try:
        service = RecurringService(db)
        if family_ids is None:
            family_ids = service.get_families_with_due_rules(as_of)

        summary = {}
        for family_id in family_ids:
            result = service.process_due_rules(family_id, as_of)
            summary[family_id] = {"created": result.created_count, "errors": result.errors}
        return summary
    finally:
        db.close()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    args = build_parser().parse_args(argv)
    as_of = args.as_of or date.today()

    if get_settings().auto_create_tables:
        Base.metadata.create_all(bind=engine)
    logger.info(f"Processing recurring transactions as of {as_of.isoformat()}")

    summary = process(None if args.all_families else [args.family_id], as_of)

    failed = 0
    for family_id, outcome in summary.items():
        print(f"Family {family_id}: created {outcome['created']} transaction(s)")
        for error in outcome["errors"]:
            failed += 1
            print(f"  ✗ rule {error['rule_id']}: {error['error']}")

    if not summary:
        print(f"No recurring transactions due as of {as_of.isoformat()}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
