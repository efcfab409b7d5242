"""
Command-line entry point for the tenancy retrofit.

    tenancy-retrofit rewrite [--root DIR] [--dry-run] [--json]
    tenancy-retrofit migrate upgrade|downgrade [REVISION] [--json]
    tenancy-retrofit backfill [--apply] [--json]

Exit codes: 0 on success, 1 when any file or table reported an error,
2 on fatal errors (missing controllers root, unreachable database).
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from tenancy.config import settings
from tenancy.exceptions import TenancyException
from tenancy.utils.logging import configure_logging, new_run_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ITEM_ERRORS = 1
EXIT_FATAL = 2

RULE = "=" * 60


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def _banner(title: str) -> None:
    print(RULE)
    print(title)
    print(RULE)


# ---- rewrite ----


def _cmd_rewrite(ns: argparse.Namespace) -> int:
    from tenancy.services.rewrite_service import run_rewrite

    report = run_rewrite(ns.root, dry_run=ns.dry_run)
    if ns.json:
        _print_json(report.to_dict())
        return EXIT_ITEM_ERRORS if report.has_errors else EXIT_OK

    _banner(f"Controller rewrite: {report.root}{' (dry run)' if report.dry_run else ''}")
    for outcome in report.files:
        if outcome.error:
            print(f"  [error]   {outcome.path}: {outcome.error}")
            continue
        print(
            f"  [{outcome.status.value}] {outcome.path}"
            f" guards={outcome.guards_added} repositories={outcome.repositories_wrapped}"
            f" query_builders={outcome.query_builders_filtered}"
        )
        for warning in outcome.warnings:
            print(f"            warning: {warning}")
    print(RULE)
    print(f"Updated: {len(report.updated)}")
    print(f"Skipped: {len(report.skipped)}")
    print(f"Errors:  {len(report.errors)}")
    for outcome in report.errors:
        print(f"  - {outcome.path}: {outcome.error}")
    return EXIT_ITEM_ERRORS if report.has_errors else EXIT_OK


# ---- migrate ----


def _cmd_migrate(ns: argparse.Namespace) -> int:
    from tenancy.services import migration_service

    if ns.direction == "upgrade":
        run = migration_service.upgrade(ns.revision or "head", database_url=ns.database_url)
    else:
        run = migration_service.downgrade(ns.revision or "-1", database_url=ns.database_url)

    if ns.json:
        _print_json(run.to_dict())
        return EXIT_ITEM_ERRORS if run.has_failures else EXIT_OK

    _banner(f"Migration {run.direction} to {run.target}")
    for step in run.steps:
        print(f"{step.step} ({step.direction})")
        for outcome in step.outcomes:
            line = f"  [{outcome.status.value}] {outcome.target}"
            if outcome.rows_backfilled:
                line += f" rows={outcome.rows_backfilled}"
            if outcome.message:
                line += f": {outcome.message}"
            print(line)
    print(RULE)
    failures = [(step.step, outcome) for step in run.steps for outcome in step.failures]
    print(f"Steps:    {len(run.steps)}")
    print(f"Failures: {len(failures)}")
    for step_name, outcome in failures:
        print(f"  - {step_name}/{outcome.target}: {outcome.message}")
    return EXIT_ITEM_ERRORS if failures else EXIT_OK


# ---- backfill ----


async def _cmd_backfill(ns: argparse.Namespace) -> int:
    from tenancy.database import engine
    from tenancy.services.backfill_service import run_backfill

    try:
        report = await run_backfill(engine, apply=ns.apply)
    finally:
        await engine.dispose()

    if ns.json:
        _print_json(report.to_dict())
        return EXIT_ITEM_ERRORS if report.has_errors else EXIT_OK

    _banner(f"Organization backfill ({'apply' if report.applied else 'verify'})")
    for outcome in report.tables:
        if outcome.error:
            print(f"  [error] {outcome.table}: {outcome.error}")
        else:
            print(f"  {outcome.table}: null={outcome.null_rows} updated={outcome.updated_rows}")
    print(RULE)
    summary = report.to_dict()["summary"]
    print(f"Tables:       {summary['tables']}")
    print(f"Null rows:    {summary['null_rows']}")
    print(f"Updated rows: {summary['updated_rows']}")
    print(f"Errors:       {summary['errors']}")
    return EXIT_ITEM_ERRORS if report.has_errors else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tenancy-retrofit",
        description="Retrofit organization isolation onto the hospital backend.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (DEBUG, INFO, WARNING). Defaults to env LOG_LEVEL or INFO.",
    )
    parser.add_argument("--log-json", action="store_true", default=settings.log_json, help="Emit JSON log lines.")
    sub = parser.add_subparsers(dest="command", required=True)

    rewrite = sub.add_parser("rewrite", help="Add organization guards and scoping to controllers.")
    rewrite.add_argument("--root", default=None, help=f"Controllers directory (default: {settings.controllers_root}).")
    rewrite.add_argument("--dry-run", action="store_true", help="Compute edits without writing files.")
    rewrite.add_argument("--json", action="store_true", help="Print the report as JSON.")
    rewrite.set_defaults(func=_cmd_rewrite)

    migrate = sub.add_parser("migrate", help="Apply or revert the schema revisions.")
    migrate.add_argument("direction", choices=("upgrade", "downgrade"))
    migrate.add_argument("revision", nargs="?", default=None, help="Target revision (head / -1 by default).")
    migrate.add_argument("--database-url", default=None, help="Override DATABASE_URL.")
    migrate.add_argument("--json", action="store_true", help="Print the step reports as JSON.")
    migrate.set_defaults(func=_cmd_migrate)

    backfill = sub.add_parser("backfill", help="Report rows without an organization.")
    backfill.add_argument("--apply", action="store_true", help="Assign them to the bootstrap organization.")
    backfill.add_argument("--json", action="store_true", help="Print the report as JSON.")
    backfill.set_defaults(func=_cmd_backfill)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    configure_logging(str(ns.log_level or "INFO"), json_output=ns.log_json)
    run_id = new_run_id()
    logger.debug(f"Starting {ns.command} run {run_id}")

    func = ns.func
    try:
        if inspect.iscoroutinefunction(func):
            return asyncio.run(func(ns))
        return int(func(ns))
    except TenancyException as e:
        logger.error(f"{ns.command} failed: {e.message}")
        print(f"Error: {e.message}")
        return EXIT_FATAL
    except SQLAlchemyError as e:
        logger.error(f"{ns.command} failed: database error: {e}")
        print(f"Error: database error: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
