# ============================================================================
# DDL UTILITIES
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Index and schema builders using psycopg.sql
# PURPOSE: Compose CREATE INDEX / CREATE SCHEMA statements safely
# CREATED: 18 SEP 2026
# ============================================================================
"""
DDL Utilities.

All methods return psycopg.sql.Composed objects. Identifiers are always
quoted through sql.Identifier; only partial-index predicates, which come
from model metadata, are passed as raw SQL.

Usage:
    from core.schema.ddl_utils import IndexBuilder

    idx = IndexBuilder.btree("mint", "tasks", ["status"])
    cursor.execute(idx)
"""

from typing import List, Optional, Sequence, Union

from psycopg import sql


class IndexBuilder:
    """
    Builder for PostgreSQL index DDL statements.

    All methods are static and return sql.Composed objects.
    """

    @staticmethod
    def _normalize_columns(columns: Union[str, Sequence[str]]) -> List[str]:
        if isinstance(columns, str):
            return [columns]
        return list(columns)

    @staticmethod
    def _default_name(table: str, columns: List[str], prefix: str = "idx") -> str:
        return f"{prefix}_{table}_{'_'.join(columns)}"

    @staticmethod
    def _create(
        unique: bool,
        schema: str,
        table: str,
        columns: List[sql.Composable],
        name: str,
        partial_where: Optional[str],
    ) -> sql.Composed:
        template = (
            "CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {schema}.{table} ({columns})"
            if unique else
            "CREATE INDEX IF NOT EXISTS {name} ON {schema}.{table} ({columns})"
        )
        stmt = sql.SQL(template).format(
            name=sql.Identifier(name),
            schema=sql.Identifier(schema),
            table=sql.Identifier(table),
            columns=sql.SQL(", ").join(columns),
        )
        if partial_where:
            stmt = sql.SQL("{} WHERE {}").format(stmt, sql.SQL(partial_where))
        return stmt

    @staticmethod
    def btree(
        schema: str,
        table: str,
        columns: Union[str, Sequence[str]],
        name: Optional[str] = None,
        descending: bool = False,
        partial_where: Optional[str] = None,
    ) -> sql.Composed:
        """Create a B-tree index, optionally descending and/or partial."""
        cols = IndexBuilder._normalize_columns(columns)
        if descending:
            parts = [sql.SQL("{} DESC").format(sql.Identifier(c)) for c in cols]
        else:
            parts = [sql.Identifier(c) for c in cols]
        return IndexBuilder._create(
            False, schema, table, parts,
            name or IndexBuilder._default_name(table, cols),
            partial_where,
        )

    @staticmethod
    def unique(
        schema: str,
        table: str,
        columns: Union[str, Sequence[str]],
        name: Optional[str] = None,
        partial_where: Optional[str] = None,
    ) -> sql.Composed:
        """
        Create a unique index.

        With partial_where this enforces uniqueness over a subset of rows,
        e.g. one active task per token.
        """
        cols = IndexBuilder._normalize_columns(columns)
        return IndexBuilder._create(
            True, schema, table, [sql.Identifier(c) for c in cols],
            name or IndexBuilder._default_name(table, cols, prefix="idx_unique"),
            partial_where,
        )


class SchemaUtils:
    """Schema-level DDL helpers."""

    @staticmethod
    def create_schema(schema: str) -> sql.Composed:
        return sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema))

    @staticmethod
    def set_search_path(schema: str, include_public: bool = True) -> sql.Composed:
        if include_public:
            return sql.SQL("SET search_path TO {}, public").format(sql.Identifier(schema))
        return sql.SQL("SET search_path TO {}").format(sql.Identifier(schema))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "IndexBuilder",
    "SchemaUtils",
]
