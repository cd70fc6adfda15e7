"""
Command-line interface for Prep Cost.

Usage:
    prepcost init-db
    prepcost validate
    prepcost margins [--per-each]
    prepcost set-mode {block,notify,permit}

The database location comes from PREPCOST_DB_PATH (or PREPCOST_ENV); the
log level from PREPCOST_LOG_LEVEL.
"""

import argparse
import logging
import sys

from prepcost.models.enums import PricingBasis, ValidationMode
from prepcost.services.cost_percentage_service import format_percentage, item_margins
from prepcost.services.database import initialize_app_database
from prepcost.services.edit_session import EditSession
from prepcost.services.exceptions import ServiceError
from prepcost.services.stores import (
    SqlCostService,
    SqlItemStore,
    SqlRecipeLineStore,
    SqlValidationSettings,
)
from prepcost.services.unit_converter import format_grams
from prepcost.utils.config import get_config
from prepcost.utils.constants import ITEM_KIND_PREPPED


def _open_session(pricing_basis: PricingBasis = PricingBasis.PER_KG) -> EditSession:
    session = EditSession(
        SqlItemStore(),
        SqlRecipeLineStore(),
        SqlCostService(),
        SqlValidationSettings(),
        pricing_basis=pricing_basis,
    )
    session.load()
    return session


def init_db_cmd(ready: bool) -> int:
    """Report the database created (or opened) at startup."""
    path = get_config().database_path
    if not ready:
        print(f"ERROR: database at {path} is missing tables")
        return 1
    print(f"Database ready at {path}")
    return 0


def validate_cmd() -> int:
    """Yield-check every active prepped item under block rules."""
    session = _open_session()
    violations = 0
    checked = 0
    for item in session.items:
        if item.item_kind != ITEM_KIND_PREPPED or not item.is_selectable:
            continue
        outcome = session.validate_yield(item, ValidationMode.BLOCK)
        checked += 1
        if outcome.is_violation:
            violations += 1
            print(f"VIOLATION  {outcome.message}")
        else:
            print(f"ok         {item.name}: {format_grams(outcome.total_grams)} of ingredients")

    print(f"\nChecked {checked} item(s), {violations} violation(s)")
    return 1 if violations else 0


def margins_cmd(per_each: bool) -> int:
    """Print labor, COG and LCOG percentages of every priced item."""
    basis = PricingBasis.PER_EACH if per_each else PricingBasis.PER_KG
    session = _open_session(basis)

    print(f"{'Item':<30} {'Price':<10} {'Labor':>8} {'COG':>8} {'LCOG':>8}")
    for item in session.items:
        if item.wholesale is None and item.retail is None:
            continue
        margins = item_margins(item, session.breakdowns, basis)
        for label in ("wholesale", "retail"):
            price = getattr(item, label)
            if price is None:
                continue
            percentages = margins[label]
            print(
                f"{item.name[:30]:<30} {label:<10} "
                f"{format_percentage(percentages.labor):>8} "
                f"{format_percentage(percentages.cog):>8} "
                f"{format_percentage(percentages.lcog):>8}"
            )
    return 0


def set_mode_cmd(mode: str) -> int:
    """Store the yield validation mode."""
    SqlValidationSettings().set(ValidationMode(mode))
    print(f"Validation mode set to {mode}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="prepcost",
        description="Recipe costing and yield validation for Prep Cost",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Create the database:
    prepcost init-db

  Check every prepped item's yield against its ingredients:
    prepcost validate

  Show labor / cost-of-goods percentages, prices quoted per each:
    prepcost margins --per-each
""",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database and tables")
    subparsers.add_parser("validate", help="Yield-check every prepped item")

    margins_parser = subparsers.add_parser("margins", help="Print cost percentages")
    margins_parser.add_argument(
        "--per-each",
        action="store_true",
        help="Treat prices as per each for count-yield items",
    )

    mode_parser = subparsers.add_parser("set-mode", help="Set the yield validation mode")
    mode_parser.add_argument("mode", choices=[mode.value for mode in ValidationMode])

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=getattr(logging, get_config().log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        ready = initialize_app_database()

        if args.command == "init-db":
            return init_db_cmd(ready)
        elif args.command == "validate":
            return validate_cmd()
        elif args.command == "margins":
            return margins_cmd(args.per_each)
        elif args.command == "set-mode":
            return set_mode_cmd(args.mode)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
