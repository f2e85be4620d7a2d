# ============================================================================
# POSTGRES STORE BACKEND
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Repository - psycopg3 implementation of StoreBackend
# PURPOSE: Tasks, state, metrics and provider preferences in PostgreSQL
# CREATED: 20 SEP 2026
# ============================================================================
"""
PostgreSQL store backend.

All statements are composed with psycopg.sql identifiers. psycopg errors
are translated once, in _translate_errors():
    OperationalError, SerializationFailure, DeadlockDetected, PoolTimeout
        -> StoreTransientError (retried by the adapter)
    UniqueViolation on tasks insert
        -> DuplicateActiveTaskError
    any other psycopg.Error
        -> StoreFatalError
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from core.config import StoreConfig
from core.contracts import TaskStatus
from core.errors import DuplicateActiveTaskError, StoreFatalError, StoreTransientError
from core.models import METRICS_TYPE, MetricsDelta, MintTask, ProviderPreference, TaskMetrics
from repositories.backend import TaskFilter
from repositories.database import TableNames, create_pool

logger = logging.getLogger(__name__)

TASK_COLUMNS: List[str] = list(MintTask.model_fields)
JSON_COLUMNS = frozenset({"provider_options", "history", "result", "error"})
ENUM_COLUMNS = frozenset({"status", "priority"})


def task_params(task: MintTask) -> Dict[str, Any]:
    """Column -> parameter mapping for one task row."""
    dumped = task.model_dump(mode="json", by_alias=True, include=set(JSON_COLUMNS))
    params: Dict[str, Any] = {}
    for column in TASK_COLUMNS:
        if column in JSON_COLUMNS:
            value = dumped.get(column)
            params[column] = Json(value) if value is not None else None
        elif column in ENUM_COLUMNS:
            params[column] = getattr(task, column).value
        else:
            params[column] = getattr(task, column)
    return params


def row_to_task(row: Dict[str, Any]) -> MintTask:
    return MintTask.model_validate(row)


class PostgresBackend:
    """psycopg3 implementation of StoreBackend."""

    def __init__(
        self,
        config: StoreConfig,
        pool: Optional[AsyncConnectionPool] = None,
    ):
        self.config = config
        self.pool = pool
        self.tables = TableNames(config.schema)

    # --- Lifecycle ---

    async def open(self) -> None:
        if self.pool is None:
            async with self._translate_errors("open"):
                self.pool = await create_pool(self.config)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("Connection pool closed")

    async def ping(self) -> bool:
        async with self._connection("ping") as conn:
            cur = await conn.execute("SELECT 1")
            row = await cur.fetchone()
            return row is not None

    @asynccontextmanager
    async def _translate_errors(self, operation: str):
        try:
            yield
        except (PoolTimeout, pg_errors.SerializationFailure, pg_errors.DeadlockDetected) as e:
            raise StoreTransientError(f"{operation}: {e}") from e
        except psycopg.OperationalError as e:
            raise StoreTransientError(f"{operation}: {e}") from e
        except psycopg.Error as e:
            raise StoreFatalError(f"{operation}: {e}") from e

    @asynccontextmanager
    async def _connection(self, operation: str):
        if self.pool is None:
            raise StoreFatalError(f"{operation}: backend not open")
        async with self._translate_errors(operation):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                yield conn

    async def _apply_metrics(self, conn, delta: Optional[MetricsDelta]) -> None:
        """Apply a delta to the metrics row inside the caller's transaction."""
        if delta is None or delta.is_empty:
            return
        await conn.execute(
            sql.SQL("""
            INSERT INTO {} (type, data, updated_at) VALUES (%s, %s, NOW())
            ON CONFLICT (type) DO NOTHING
            """).format(self.tables.metrics),
            (METRICS_TYPE, Json(TaskMetrics().to_document())),
        )
        cur = await conn.execute(
            sql.SQL("SELECT data FROM {} WHERE type = %s FOR UPDATE").format(self.tables.metrics),
            (METRICS_TYPE,),
        )
        row = await cur.fetchone()
        current = TaskMetrics.model_validate(row["data"] if row else {})
        await conn.execute(
            sql.SQL("UPDATE {} SET data = %s, updated_at = NOW() WHERE type = %s").format(self.tables.metrics),
            (Json(current.apply(delta).to_document()), METRICS_TYPE),
        )

    # --- Tasks ---

    async def insert_task(self, task: MintTask, metrics: Optional[MetricsDelta] = None) -> None:
        columns = sql.SQL(", ").join(sql.Identifier(c) for c in TASK_COLUMNS)
        values = sql.SQL(", ").join(sql.Placeholder(c) for c in TASK_COLUMNS)
        try:
            async with self._connection("insert_task") as conn:
                async with conn.transaction():
                    cur = await conn.execute(
                        sql.SQL("""
                        INSERT INTO {table} ({columns}) VALUES ({values})
                        ON CONFLICT (task_id) DO NOTHING
                        """).format(table=self.tables.tasks, columns=columns, values=values),
                        task_params(task),
                    )
                    if cur.rowcount == 1:
                        await self._apply_metrics(conn, metrics)
        except StoreFatalError as e:
            if isinstance(e.__cause__, pg_errors.UniqueViolation):
                raise DuplicateActiveTaskError(task.token_id) from e
            raise
        logger.debug(f"Task inserted: {task.task_id} token={task.token_id}")

    async def upsert_task(
        self,
        task: MintTask,
        expected_status: Optional[TaskStatus] = None,
        metrics: Optional[MetricsDelta] = None,
        expected_history_len: Optional[int] = None,
    ) -> bool:
        params = task_params(task)
        updatable = [c for c in TASK_COLUMNS if c != "task_id"]

        if expected_status is not None or expected_history_len is not None:
            assignments = sql.SQL(", ").join(
                sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder(c)) for c in updatable
            )
            guards = [sql.SQL("task_id = %(task_id)s")]
            if expected_status is not None:
                guards.append(sql.SQL("status::text = %(expected_status)s"))
                params["expected_status"] = expected_status.value
            if expected_history_len is not None:
                guards.append(sql.SQL("jsonb_array_length(history) = %(expected_history_len)s"))
                params["expected_history_len"] = expected_history_len
            query = sql.SQL("UPDATE {table} SET {assignments} WHERE {guards}").format(
                table=self.tables.tasks,
                assignments=assignments,
                guards=sql.SQL(" AND ").join(guards),
            )
        else:
            columns = sql.SQL(", ").join(sql.Identifier(c) for c in TASK_COLUMNS)
            values = sql.SQL(", ").join(sql.Placeholder(c) for c in TASK_COLUMNS)
            excluded = sql.SQL(", ").join(
                sql.SQL("{} = EXCLUDED.{}").format(sql.Identifier(c), sql.Identifier(c)) for c in updatable
            )
            query = sql.SQL("""
            INSERT INTO {table} ({columns}) VALUES ({values})
            ON CONFLICT (task_id) DO UPDATE SET {excluded}
            """).format(table=self.tables.tasks, columns=columns, values=values, excluded=excluded)

        async with self._connection("upsert_task") as conn:
            async with conn.transaction():
                cur = await conn.execute(query, params)
                landed = cur.rowcount == 1
                if landed:
                    await self._apply_metrics(conn, metrics)

        if not landed:
            logger.debug(
                f"Conditional write skipped for {task.task_id} "
                f"(expected {expected_status.value if expected_status else '-'})"
            )
        return landed

    async def get_task(self, task_id: str) -> Optional[MintTask]:
        async with self._connection("get_task") as conn:
            cur = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE task_id = %s").format(self.tables.tasks),
                (task_id,),
            )
            row = await cur.fetchone()
        return row_to_task(row) if row else None

    def _where(self, task_filter: TaskFilter):
        clauses = []
        params: Dict[str, Any] = {}
        if task_filter.token_id is not None:
            clauses.append(sql.SQL("token_id = %(token_id)s"))
            params["token_id"] = task_filter.token_id
        if task_filter.statuses is not None:
            clauses.append(sql.SQL("status::text = ANY(%(statuses)s)"))
            params["statuses"] = [s.value for s in task_filter.statuses]
        if task_filter.timeout_before is not None:
            clauses.append(sql.SQL("timeout_at < %(timeout_before)s"))
            params["timeout_before"] = task_filter.timeout_before
        if task_filter.updated_before is not None:
            clauses.append(sql.SQL("updated_at < %(updated_before)s"))
            params["updated_before"] = task_filter.updated_before
        where = sql.SQL(" AND ").join(clauses) if clauses else sql.SQL("TRUE")
        return where, params

    async def find_tasks(self, task_filter: TaskFilter) -> List[MintTask]:
        where, params = self._where(task_filter)
        order = sql.SQL("DESC" if task_filter.newest_first else "ASC")
        query = sql.SQL("SELECT * FROM {table} WHERE {where} ORDER BY created_at {order}").format(
            table=self.tables.tasks, where=where, order=order,
        )
        if task_filter.limit is not None:
            query = sql.SQL("{} LIMIT %(limit)s").format(query)
            params["limit"] = task_filter.limit

        async with self._connection("find_tasks") as conn:
            cur = await conn.execute(query, params)
            rows = await cur.fetchall()
        return [row_to_task(row) for row in rows]

    async def delete_tasks(self, task_filter: TaskFilter) -> int:
        where, params = self._where(task_filter)
        async with self._connection("delete_tasks") as conn:
            cur = await conn.execute(
                sql.SQL("DELETE FROM {table} WHERE {where}").format(table=self.tables.tasks, where=where),
                params,
            )
            return cur.rowcount

    async def count_by_status(self) -> Dict[TaskStatus, int]:
        async with self._connection("count_by_status") as conn:
            cur = await conn.execute(
                sql.SQL("SELECT status::text AS status, COUNT(*) AS n FROM {} GROUP BY status").format(
                    self.tables.tasks
                )
            )
            rows = await cur.fetchall()
        counts: Dict[TaskStatus, int] = {s: 0 for s in TaskStatus.stored()}
        for row in rows:
            counts[TaskStatus(row["status"])] = row["n"]
        return counts

    # --- State documents ---

    async def get_state(self, state_type: str) -> Optional[Dict[str, Any]]:
        async with self._connection("get_state") as conn:
            cur = await conn.execute(
                sql.SQL("SELECT state_data FROM {} WHERE type = %s").format(self.tables.state),
                (state_type,),
            )
            row = await cur.fetchone()
        return row["state_data"] if row else None

    async def put_state(self, state_type: str, data: Dict[str, Any]) -> None:
        async with self._connection("put_state") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (type, state_data, updated_at) VALUES (%s, %s, NOW())
                ON CONFLICT (type) DO UPDATE SET
                    state_data = EXCLUDED.state_data,
                    updated_at = EXCLUDED.updated_at
                """).format(self.tables.state),
                (state_type, Json(data)),
            )

    # --- Metrics ---

    async def get_metrics(self) -> Optional[TaskMetrics]:
        async with self._connection("get_metrics") as conn:
            cur = await conn.execute(
                sql.SQL("SELECT data FROM {} WHERE type = %s").format(self.tables.metrics),
                (METRICS_TYPE,),
            )
            row = await cur.fetchone()
        return TaskMetrics.model_validate(row["data"]) if row else None

    async def put_metrics(self, metrics: TaskMetrics) -> None:
        async with self._connection("put_metrics") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (type, data, updated_at) VALUES (%s, %s, NOW())
                ON CONFLICT (type) DO UPDATE SET
                    data = EXCLUDED.data,
                    updated_at = EXCLUDED.updated_at
                """).format(self.tables.metrics),
                (METRICS_TYPE, Json(metrics.to_document())),
            )

    # --- Provider preferences ---

    async def get_preference(self, token_id: int) -> Optional[ProviderPreference]:
        async with self._connection("get_preference") as conn:
            cur = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE token_id = %s").format(self.tables.preferences),
                (token_id,),
            )
            row = await cur.fetchone()
        return ProviderPreference.model_validate(row) if row else None

    async def put_preference(self, preference: ProviderPreference) -> None:
        async with self._connection("put_preference") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (token_id, provider, options, timestamp)
                VALUES (%(token_id)s, %(provider)s, %(options)s, %(timestamp)s)
                ON CONFLICT (token_id) DO UPDATE SET
                    provider = EXCLUDED.provider,
                    options = EXCLUDED.options,
                    timestamp = EXCLUDED.timestamp
                """).format(self.tables.preferences),
                {
                    "token_id": preference.token_id,
                    "provider": preference.provider,
                    "options": Json(preference.options),
                    "timestamp": preference.timestamp,
                },
            )


__all__ = ["PostgresBackend", "task_params", "row_to_task"]
