"""
cli
===

Command-line interface for MySQL schema drift checks.

Commands
--------
``cache``
    Capture the live schema and write it to a snapshot file (the baseline).
``validate``
    Compare the live schema against a snapshot and write a drift report
    (``.xlsx`` or ``.csv``).
``ping``
    Check that the database is reachable with the given settings.

Usage::

    schemadrift cache -H db.internal -u readonly -d shop --snapshot shop.json
    schemadrift validate -d shop --snapshot shop.json --report drift.xlsx
    schemadrift validate --config schemadrift.yml --fail-on-drift

Exit codes: 0 on success, 1 when ``--fail-on-drift`` is set and drift was
found, 2 when the snapshot, configuration or database cannot be used.
A missing or corrupt snapshot is never retried: re-run ``cache`` instead.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from sqlalchemy.exc import SQLAlchemyError

from .codec import DecodeError, UnsupportedVersionError, read_snapshot, write_snapshot
from .collectors import collect_from_target, filter_schema
from .config import (
    DEFAULT_REPORT,
    DEFAULT_SNAPSHOT,
    build_target,
    load_config,
    read_options,
    read_table_filter,
    resolve_path,
)
from .connection import connection_test
from .diffing import diff
from .reporting import SUPPORTED_SUFFIXES, export_report, format_summary, generate_summary_md

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_ERROR = 2


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default=None, help="Path to YAML config (optional)")
    parser.add_argument("-H", "--host", default=None, help="MySQL host (default: localhost)")
    parser.add_argument("-P", "--port", default=None, help="MySQL port (default: 3306)")
    parser.add_argument("-u", "--user", default=None, help="MySQL user (default: root)")
    parser.add_argument("-p", "--password", default=None, help="MySQL password (prefer SCHEMADRIFT_PASSWORD)")
    parser.add_argument("-d", "--database", default=None, help="Database (schema) to inspect")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def _add_filter_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include",
        action="append",
        default=[],
        help="Include table pattern (repeatable). SQL LIKE (%% _) or regex via re:... e.g. --include 'order%%'",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Exclude table pattern (repeatable). SQL LIKE (%% _) or regex via re:... e.g. --exclude 'tmp_%%'",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemadrift",
        description="Capture a MySQL schema snapshot and validate a live database against it.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    cache = subparsers.add_parser("cache", help="Capture the live schema into a snapshot file")
    _add_connection_args(cache)
    _add_filter_args(cache)
    cache.add_argument("--snapshot", default=None, help=f"Snapshot file to write (default: {DEFAULT_SNAPSHOT})")

    validate = subparsers.add_parser("validate", help="Compare the live schema against a snapshot")
    _add_connection_args(validate)
    _add_filter_args(validate)
    validate.add_argument("--snapshot", default=None, help=f"Snapshot file to read (default: {DEFAULT_SNAPSHOT})")
    validate.add_argument("--report", default=None, help=f"Report file, .xlsx or .csv (default: {DEFAULT_REPORT})")
    validate.add_argument("--summary-md", default=None, help="Also write a Markdown summary to this path")
    validate.add_argument("--case-insensitive", action="store_true", help="Match identifiers ignoring case")
    validate.add_argument("--ignore-reorder", action="store_true", help="Do not report column reordering")
    validate.add_argument("--include-unchanged", action="store_true", help="List unchanged tables in the report")
    validate.add_argument("--fail-on-drift", action="store_true", help="Exit with status 1 when drift is found")

    ping = subparsers.add_parser("ping", help="Test the database connection")
    _add_connection_args(ping)

    return parser


def _connection_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "host": args.host,
        "port": args.port,
        "user": args.user,
        "password": args.password,
        "database": args.database,
    }


def resolve_report_path(value: Path) -> Path:
    """Keep *value* if it has a supported suffix, else fall back to the default name."""
    if value.suffix.lower() in SUPPORTED_SUFFIXES:
        return value
    print(
        f"WARNING: report file must end with {' or '.join(SUPPORTED_SUFFIXES)}; "
        f"using default report name {DEFAULT_REPORT}"
    )
    return value.with_name(DEFAULT_REPORT)


def run_cache(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    target = build_target(cfg, _connection_overrides(args))
    table_filter = read_table_filter(cfg, args)
    snapshot_path = resolve_path(args.snapshot, cfg, "snapshot", DEFAULT_SNAPSHOT)

    print(f"Collecting schema from {target.describe()}...")
    schema = collect_from_target(target, table_filter)
    write_snapshot(snapshot_path, schema)

    print(f"Captured {len(schema.tables)} table(s).")
    print(f"Snapshot: {snapshot_path}")
    return EXIT_OK


def run_validate(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    target = build_target(cfg, _connection_overrides(args))
    table_filter = read_table_filter(cfg, args)
    options = read_options(cfg, args)
    snapshot_path = resolve_path(args.snapshot, cfg, "snapshot", DEFAULT_SNAPSHOT)
    report_path = resolve_report_path(resolve_path(args.report, cfg, "report", DEFAULT_REPORT))

    print(f"Reading snapshot: {snapshot_path}")
    baseline = filter_schema(read_snapshot(snapshot_path), table_filter)

    print(f"Collecting schema from {target.describe()}...")
    current = collect_from_target(target, table_filter)

    print("Comparing...")
    result = diff(
        baseline,
        current,
        case_sensitive=options.case_sensitive,
        report_reorder=options.report_reorder,
    )
    export_report(result, report_path, database=target.database, include_unchanged=args.include_unchanged)

    if args.summary_md:
        header = [
            f"- Snapshot: `{snapshot_path}`",
            f"- {target.describe()}",
            f"- Options: case_sensitive={options.case_sensitive} report_reorder={options.report_reorder}",
            f"- Table filters: include={table_filter.include or '[]'} exclude={table_filter.exclude or '[]'}",
        ]
        generate_summary_md(Path(args.summary_md), header, result)

    print(format_summary(result))
    print(f"Report : {report_path}")
    if args.summary_md:
        print(f"Summary: {args.summary_md}")

    if args.fail_on_drift and result.has_drift:
        return EXIT_DRIFT
    return EXIT_OK


def run_ping(args: argparse.Namespace, cfg: Dict[str, Any]) -> int:
    target = build_target(cfg, _connection_overrides(args))
    ok, message = connection_test(target)
    if ok:
        print(f"OK {target.describe()}\n{message}")
        return EXIT_OK
    print(f"ERROR: cannot connect to {target.describe()}: {message}", file=sys.stderr)
    return EXIT_ERROR


COMMANDS = {
    "cache": run_cache,
    "validate": run_validate,
    "ping": run_ping,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = load_config(Path(args.config)) if args.config else {}
        return COMMANDS[args.command](args, cfg)
    except SystemExit as exc:
        # config problems carry their message as the exit code
        if not isinstance(exc.code, str):
            raise
        print(exc.code, file=sys.stderr)
    except FileNotFoundError as exc:
        print(f"ERROR: snapshot file not found: {exc.filename}", file=sys.stderr)
    except UnsupportedVersionError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
    except DecodeError as exc:
        print(f"ERROR: snapshot is corrupt: {exc}", file=sys.stderr)
    except SQLAlchemyError as exc:
        print(f"ERROR: database error: {exc}", file=sys.stderr)
    return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
