# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Repository layer exports
# PURPOSE: Store backends and the persistence adapter
# CREATED: 19 SEP 2026
# ============================================================================
"""
Repositories Module

    PersistenceAdapter   - the only store handle components receive
    PostgresBackend      - psycopg3 / psycopg_pool implementation
    MemoryBackend        - dictionary implementation for tests and local runs
"""

from core.config import StoreConfig
from repositories.backend import StoreBackend, TaskFilter
from repositories.memory_backend import MemoryBackend
from repositories.persistence import (
    CreateResult,
    CreateStatus,
    LookupStatus,
    PersistenceAdapter,
    TASK_NOT_FOUND,
    TaskLookup,
)


def build_backend(config: StoreConfig) -> StoreBackend:
    """Backend selected by STORE_BACKEND (postgres | memory)."""
    if config.backend == "memory":
        return MemoryBackend()
    from repositories.postgres_backend import PostgresBackend
    return PostgresBackend(config)


__all__ = [
    "StoreBackend",
    "TaskFilter",
    "MemoryBackend",
    "PersistenceAdapter",
    "TaskLookup",
    "LookupStatus",
    "TASK_NOT_FOUND",
    "CreateResult",
    "CreateStatus",
    "build_backend",
]
