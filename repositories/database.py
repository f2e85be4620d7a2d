# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Build the psycopg3 async pool and the table identifiers
# CREATED: 19 SEP 2026
# ============================================================================
"""
Database Connection Pool

Creates async PostgreSQL pools using psycopg3 and psycopg_pool. The pool
is owned by PostgresBackend (itself owned by the PersistenceAdapter);
there is no module-level pool.

Connections are health-checked on every checkout
(AsyncConnectionPool.check_connection), so a connection dropped between
serverless invocations is replaced transparently.

Usage:
    from repositories.database import create_pool, TableNames

    pool = await create_pool(config.store)
    tables = TableNames(config.store.schema)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from core.config import StoreConfig

logger = logging.getLogger(__name__)


def safe_conninfo(conninfo: str) -> str:
    """Connection string with credentials removed, for logs."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        head, _, tail = conninfo.partition("password=")
        rest = tail.split(" ", 1)[1] if " " in tail else ""
        return f"{head}password=*** {rest}".strip()
    return conninfo


async def create_pool(
    config: StoreConfig,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Create and open a connection pool.

    Args:
        config: Store configuration (pool sizes, DSN parts)
        connection_string: Override connection string

    Returns:
        Opened AsyncConnectionPool
    """
    conninfo = connection_string or config.connection_string()
    logger.info(f"Initializing connection pool: {safe_conninfo(conninfo)}")

    pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=config.pool_min_size,
        max_size=config.pool_max_size,
        check=AsyncConnectionPool.check_connection,
        open=False,
    )
    await pool.open()
    logger.info(f"Connection pool opened (min={config.pool_min_size}, max={config.pool_max_size})")
    return pool


# ============================================================================
# TABLE IDENTIFIERS
# ============================================================================

@dataclass(frozen=True)
class TableNames:
    """
    Schema-qualified identifiers for use with sql.SQL().format().
    """
    schema: str = "mint"
    tasks: sql.Identifier = field(init=False)
    state: sql.Identifier = field(init=False)
    metrics: sql.Identifier = field(init=False)
    preferences: sql.Identifier = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "tasks", sql.Identifier(self.schema, "tasks"))
        object.__setattr__(self, "state", sql.Identifier(self.schema, "state"))
        object.__setattr__(self, "metrics", sql.Identifier(self.schema, "metrics"))
        object.__setattr__(self, "preferences", sql.Identifier(self.schema, "provider_preferences"))


__all__ = [
    "safe_conninfo",
    "create_pool",
    "TableNames",
]
