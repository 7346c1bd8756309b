#!/usr/bin/env python3
"""
Generate missing monthly dues from the command line.

Reads settings through ledger_config.get_active_config() (LEDGER_DATABASE_URL
overrides the database URL) and prints a JSON summary of the run.

Usage:
    python3 scripts/generate_dues.py --tenant <id> <command> [options]

Examples:
    # Every active student of a tenant, through today
    python3 scripts/generate_dues.py --tenant school-1 all

    # One class, or one section of it
    python3 scripts/generate_dues.py --tenant school-1 class --class-id 7A
    python3 scripts/generate_dues.py --tenant school-1 class --section-id 7A-blue

    # One student over an explicit range
    python3 scripts/generate_dues.py --tenant school-1 student \\
        --student-id <uuid> --admission-date 2024-01-15 --target-date 2024-03-31

    # Bring specific students up to the current month
    python3 scripts/generate_dues.py --tenant school-1 ensure <uuid> <uuid>
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate missing monthly dues for students.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--tenant", required=True, help="Tenant id.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: ledger_config/defaults.yaml).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the ledger tables before generating.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("all", help="All active students of the tenant.")

    class_cmd = sub.add_parser("class", help="Students of a class and/or section.")
    class_cmd.add_argument("--class-id", default=None)
    class_cmd.add_argument("--section-id", default=None)

    student_cmd = sub.add_parser("student", help="One student over a date range.")
    student_cmd.add_argument("--student-id", required=True, type=UUID)
    student_cmd.add_argument(
        "--admission-date", required=True, type=date.fromisoformat
    )
    student_cmd.add_argument(
        "--target-date", default=None, type=date.fromisoformat,
        help="Last billed month (default: today).",
    )
    student_cmd.add_argument("--fee-structure-id", default=None, type=UUID)

    ensure_cmd = sub.add_parser("ensure", help="Bring students up to this month.")
    ensure_cmd.add_argument("student_ids", nargs="+", type=UUID)

    return parser.parse_args(argv)


def _to_json(result) -> str:
    payload = asdict(result)
    if hasattr(result, "success"):
        payload["success"] = result.success
    return json.dumps(payload, indent=2, default=str)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from ledger_config import build_engines, get_active_config
    from ledger_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_settings,
    )
    from ledger_kernel.db.unit_of_work import UnitOfWorkFactory
    from ledger_kernel.exceptions import LedgerKernelError
    from ledger_kernel.logging_config import LogContext, configure_logging

    settings = get_active_config(args.config)
    configure_logging(level=settings.log_level)
    init_engine_from_settings(settings)
    if args.create_tables:
        create_tables()

    engines = build_engines(settings, UnitOfWorkFactory(get_session_factory()))
    generation = engines.generation

    with LogContext.bind(tenant_id=args.tenant, actor="cli"):
        try:
            if args.command == "all":
                result = generation.generate_for_all_students(args.tenant)
            elif args.command == "class":
                result = generation.generate_for_class_section(
                    args.tenant, class_id=args.class_id, section_id=args.section_id
                )
            elif args.command == "student":
                result = generation.generate_for_student(
                    args.student_id,
                    args.tenant,
                    args.admission_date,
                    args.target_date or date.today(),
                    fee_structure_id=args.fee_structure_id,
                )
            else:
                result = generation.ensure_many(args.student_ids, args.tenant)
        except LedgerKernelError as e:
            print(json.dumps({"error": e.code, "message": str(e)}), file=sys.stderr)
            return 1

    print(_to_json(result))
    return 0 if getattr(result, "success", True) else 2


if __name__ == "__main__":
    sys.exit(main())
