# ============================================================================
# PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements for the coordinator tables
# CREATED: 18 SEP 2026
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

The table models (MintTask, StateRecord, MetricsRecord, ProviderPreference)
are the single source of truth for the schema.

Model Metadata Convention:
    - __sql_table__: Table name
    - __sql_schema__: Schema name (overridden by the generator's schema_name)
    - __sql_primary_key__: Primary key column(s)
    - __sql_indexes__: tuples (name, columns[, partial_where]) or dicts
      {name, columns, type: btree|unique, partial_where, descending}

Schema deployment is out-of-band (scripts/deploy_schema.py); the service
itself never issues DDL.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from psycopg import sql
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from core.schema.ddl_utils import IndexBuilder, SchemaUtils

logger = logging.getLogger(__name__)


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "BIGINT",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        Dict: "JSONB",
        list: "JSONB",
        List: "JSONB",
    }

    def __init__(self, schema_name: str = "mint"):
        self.schema_name = schema_name
        self.enums: Dict[str, Type[Enum]] = {}

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """Read __sql_* attributes (mangled or not) from a model class."""
        def get_attr(name: str, default=None):
            mangled = f"_{model.__name__}__{name}"
            return getattr(model, mangled, getattr(model, f"__{name}", default))

        primary_key = get_attr("sql_primary_key__", [])
        if isinstance(primary_key, str):
            primary_key = [primary_key]

        return {
            "table": get_attr("sql_table__"),
            "schema": get_attr("sql_schema__", "mint"),
            "primary_key": primary_key,
            "indexes": get_attr("sql_indexes__", []),
        }

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    @staticmethod
    def enum_type_name(enum_class: Type[Enum]) -> str:
        return re.sub(r"(?<!^)(?=[A-Z])", "_", enum_class.__name__).lower()

    def python_type_to_sql(self, field_type: Any, field_info: FieldInfo) -> str:
        """Map a field annotation to a PostgreSQL type name."""
        actual_type = field_type
        origin = get_origin(field_type)

        if origin is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            actual_type = args[0] if args else str
            origin = get_origin(actual_type)

        if origin in (dict, Dict, list, List):
            return "JSONB"

        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            enum_name = self.enum_type_name(actual_type)
            self.enums[enum_name] = actual_type
            return enum_name

        return self.TYPE_MAP.get(actual_type, "JSONB")

    # =========================================================================
    # ENUM GENERATION
    # =========================================================================

    def generate_enum(self, enum_name: str, values: Sequence[str]) -> sql.Composed:
        """CREATE TYPE ... AS ENUM, skipped when the type already exists."""
        return sql.SQL(
            "DO $$ BEGIN "
            "IF NOT EXISTS (SELECT 1 FROM pg_type t JOIN pg_namespace n ON n.oid = t.typnamespace "
            "WHERE t.typname = {type_literal} AND n.nspname = {schema_literal}) THEN "
            "CREATE TYPE {schema}.{type} AS ENUM ({values}); "
            "END IF; END $$"
        ).format(
            type_literal=sql.Literal(enum_name),
            schema_literal=sql.Literal(self.schema_name),
            schema=sql.Identifier(self.schema_name),
            type=sql.Identifier(enum_name),
            values=sql.SQL(", ").join(sql.Literal(v) for v in values),
        )

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _column(self, name: str, field_info: FieldInfo, primary_key: List[str]) -> sql.Composed:
        field_type = field_info.annotation
        type_name = self.python_type_to_sql(field_type, field_info)

        is_optional = get_origin(field_type) is Union and type(None) in get_args(field_type)

        parts: List[sql.Composable] = [sql.Identifier(name), sql.SQL(" ")]
        if type_name in self.enums:
            parts.append(sql.SQL("{}.{}").format(sql.Identifier(self.schema_name), sql.Identifier(type_name)))
        else:
            parts.append(sql.SQL(type_name))

        if not is_optional and name not in primary_key:
            parts.append(sql.SQL(" NOT NULL"))

        default = field_info.default
        if isinstance(default, Enum):
            parts.append(sql.SQL(" DEFAULT {}").format(sql.Literal(default.value)))
        elif isinstance(default, bool):
            parts.append(sql.SQL(" DEFAULT true" if default else " DEFAULT false"))
        elif isinstance(default, (str, int, float)):
            parts.append(sql.SQL(" DEFAULT {}").format(sql.Literal(default)))
        elif field_info.default_factory is not None:
            if type_name == "TIMESTAMPTZ":
                parts.append(sql.SQL(" DEFAULT NOW()"))
            elif type_name == "JSONB":
                origin = get_origin(field_type)
                parts.append(sql.SQL(" DEFAULT '[]'" if origin in (list, List) else " DEFAULT '{}'"))

        return sql.Composed(parts)

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """CREATE TABLE IF NOT EXISTS for one table model."""
        meta = self.get_model_metadata(model)
        if not meta["table"]:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        columns = [
            self._column(name, info, meta["primary_key"])
            for name, info in model.model_fields.items()
        ]
        if meta["primary_key"]:
            columns.append(sql.SQL("PRIMARY KEY ({})").format(
                sql.SQL(", ").join(sql.Identifier(c) for c in meta["primary_key"])
            ))

        logger.debug(f"Generating table {self.schema_name}.{meta['table']} from {model.__name__}")
        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(self.schema_name),
            sql.Identifier(meta["table"]),
            sql.SQL(", ").join(columns),
        )

    # =========================================================================
    # INDEX GENERATION
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """CREATE INDEX statements from a model's __sql_indexes__."""
        meta = self.get_model_metadata(model)
        result = []

        for idx_def in meta["indexes"]:
            if isinstance(idx_def, tuple):
                name, columns = idx_def[0], idx_def[1]
                partial_where: Optional[str] = idx_def[2] if len(idx_def) > 2 else None
                index_type, descending = "btree", False
            elif isinstance(idx_def, dict):
                name = idx_def.get("name")
                columns = idx_def.get("columns", [])
                partial_where = idx_def.get("partial_where")
                index_type = idx_def.get("type", "btree")
                descending = idx_def.get("descending", False)
            else:
                continue

            if index_type == "unique":
                result.append(IndexBuilder.unique(
                    self.schema_name, meta["table"], columns, name=name, partial_where=partial_where,
                ))
            else:
                result.append(IndexBuilder.btree(
                    self.schema_name, meta["table"], columns,
                    name=name, descending=descending, partial_where=partial_where,
                ))

        return result

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_all(self) -> List[sql.Composed]:
        """Complete DDL for the coordinator tables, in execution order."""
        from core.contracts import Priority, TaskStatus
        from core.models import MetricsRecord, MintTask, ProviderPreference, StateRecord

        models = [MintTask, StateRecord, MetricsRecord, ProviderPreference]

        statements: List[sql.Composed] = [
            SchemaUtils.create_schema(self.schema_name),
            SchemaUtils.set_search_path(self.schema_name),
            # UNKNOWN is a lookup sentinel, never a stored value
            self.generate_enum(self.enum_type_name(TaskStatus), [s.value for s in TaskStatus.stored()]),
            self.generate_enum(self.enum_type_name(Priority), [p.value for p in Priority]),
        ]
        statements.extend(self.generate_table(m) for m in models)
        for model in models:
            statements.extend(self.generate_indexes(model))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements

    async def execute(self, conn, dry_run: bool = False) -> int:
        """
        Execute all DDL statements on an async psycopg connection.

        Returns:
            Number of statements executed (or that would be, on dry run)
        """
        statements = self.generate_all()

        if dry_run:
            for stmt in statements:
                logger.info(f"[DRY RUN] {stmt.as_string(conn)}")
            return len(statements)

        async with conn.cursor() as cur:
            for stmt in statements:
                await cur.execute(stmt)
        await conn.commit()

        logger.info(f"Executed {len(statements)} DDL statements")
        return len(statements)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["PydanticToSQL"]
