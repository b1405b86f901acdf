#!/usr/bin/env python3
"""
Create (or recreate) the certification schema from the active configuration.

Usage:
  python3 scripts/init_db.py [--config PATH] [--db-url URL] [--drop]

The database URL comes from the configuration document, then the
CERTIFICATION_DATABASE_URL environment variable, then --db-url.
"""

import argparse
import os
import sys

from certification_config import get_active_config
from certification_kernel.db.engine import create_tables, drop_tables, reset_engine
from certification_services.bootstrap import init_database


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the certification workflow schema")
    p.add_argument("--config", default=None, help="YAML configuration document")
    p.add_argument("--db-url", default=None, help="Database URL (overrides configuration)")
    p.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first (destroys all workflow history)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    environ = dict(os.environ)
    if args.db_url:
        environ["CERTIFICATION_DATABASE_URL"] = args.db_url
    config = get_active_config(args.config, environ=environ)

    engine = init_database(config, create_schema=False)
    if args.drop:
        drop_tables()
    create_tables()

    print(f"  Schema ready on {engine.url.render_as_string(hide_password=True)}")
    print(f"  Config: {config.config_id} v{config.version} ({config.checksum[:12]})")
    reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
