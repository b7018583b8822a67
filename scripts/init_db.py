#!/usr/bin/env python3
"""
Create or drop the group ledger schema.

Usage:
  python3 scripts/init_db.py create [--database-url URL] [--config FILE]
  python3 scripts/init_db.py drop --yes [--database-url URL]
  python3 scripts/init_db.py reset --yes [--database-url URL]

The database URL defaults to get_active_config().database_url, so
DATABASE_URL and LEDGER_CONFIG_FILE are honoured.
"""

from __future__ import annotations

import argparse
import sys

from ledger_config import get_active_config
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.logging_config import configure_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create or drop the group ledger schema")
    p.add_argument("action", choices=("create", "drop", "reset"))
    p.add_argument("--database-url", help="Database URL (default: from configuration)")
    p.add_argument("--config", help="YAML file layered over the packaged defaults")
    p.add_argument(
        "--yes",
        action="store_true",
        help="Confirm a destructive action (drop, reset)",
    )
    p.add_argument("--echo", action="store_true", help="Echo SQL statements")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging()

    if args.action in ("drop", "reset") and not args.yes:
        print(f"  Refusing to {args.action} without --yes.", file=sys.stderr)
        return 2

    config = get_active_config(config_file=args.config)
    url = args.database_url or config.database_url

    print()
    print("  [1/2] Connecting...")
    try:
        init_engine_from_url(
            url,
            echo=args.echo or config.echo_sql,
            pool_size=config.pool_size,
            statement_timeout_ms=config.statement_timeout_ms,
        )
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        if args.action in ("drop", "reset"):
            print("  [2/2] Dropping tables...")
            drop_tables()
        if args.action in ("create", "reset"):
            print("  [2/2] Creating tables...")
            create_tables()
    finally:
        reset_engine()

    print()
    print(f"  Done: {args.action}.")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
