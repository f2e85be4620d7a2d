#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# PURPOSE: Deploy the mint schema to PostgreSQL using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
# ============================================================================

import sys
import os
import argparse
import asyncio

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg

from core.config import StoreConfig
from core.schema import PydanticToSQL


async def deploy(conninfo: str, schema: str, dry_run: bool) -> int:
    async with await psycopg.AsyncConnection.connect(conninfo) as conn:
        return await PydanticToSQL(schema_name=schema).execute(conn, dry_run=dry_run)


def main():
    parser = argparse.ArgumentParser(
        description="Deploy mint coordinator schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  POSTGRES_SSLMODE      SSL mode (default: require)
  STORE_SCHEMA          Target schema (default: mint)
        """
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    # Configure logging
    import logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    config = StoreConfig.from_env()
    conninfo = args.connection or config.connection_string()

    print("=" * 70)
    print("MINT COORDINATOR - Schema Deployment")
    print("=" * 70)
    print(f"Host: {config.host if not args.connection else '(from --connection)'}")
    print(f"Schema: {config.schema}")
    print(f"Mode: {'DRY RUN' if args.dry_run else 'EXECUTE'}")
    print("=" * 70)

    try:
        count = asyncio.run(deploy(conninfo, config.schema, args.dry_run))
    except psycopg.Error as e:
        print(f"\n❌ Deployment failed: {e}")
        sys.exit(1)

    print("\n" + "=" * 70)
    if args.dry_run:
        print(f"✅ {count} statements previewed (nothing executed)")
    else:
        print(f"✅ Deployment completed successfully! ({count} statements)")
    print("=" * 70)


if __name__ == "__main__":
    main()
