# ============================================================================
# SCHEMA MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - Schema generation from Pydantic models
# PURPOSE: Generate PostgreSQL DDL from the table models
# CREATED: 18 SEP 2026
# ============================================================================

from core.schema.ddl_utils import IndexBuilder, SchemaUtils
from core.schema.sql_generator import PydanticToSQL

__all__ = [
    "PydanticToSQL",
    "IndexBuilder",
    "SchemaUtils",
]
