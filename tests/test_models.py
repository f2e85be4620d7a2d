# ============================================================================
# MODEL TESTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - Pydantic models, documents and DDL generation
# PURPOSE: Verify task creation, payload shapes, state/metrics documents
# CREATED: 16 SEP 2026
# ============================================================================
"""
Model Tests

Covers:
1. Task id format and MintTask.create() defaults
2. Minimal / public payloads
3. ProcessState document (dedupe, monotonic block cursor, aliases)
4. TaskMetrics running mean
5. MintWorkItem rebuilt from a stored task
6. PydanticToSQL output for the four tables

Run with:
    pytest tests/test_models.py -v
"""

import re
from datetime import timedelta

import pytest

from core.contracts import Priority, TaskStatus
from core.models import (
    MetricsDelta,
    MintTask,
    MintWorkItem,
    ProcessState,
    TaskMetrics,
    generate_task_id,
    utcnow,
)
from core.schema import PydanticToSQL


# ============================================================================
# MINT TASK
# ============================================================================

class TestMintTask:

    def test_task_id_format(self):
        task_id = generate_task_id()
        assert re.fullmatch(r"task_\d+_[0-9a-f]{16}", task_id)

    def test_task_ids_are_unique(self):
        assert len({generate_task_id() for _ in range(200)}) == 200

    def test_create_defaults(self):
        now = utcnow()
        task = MintTask.create(token_id=7, provider="dall-e", timeout_ms=500, estimated_seconds=15, now=now)

        assert task.status == TaskStatus.PENDING
        assert task.progress == 0
        assert task.priority == Priority.NORMAL
        assert task.timeout_at == now + timedelta(milliseconds=500)
        assert task.estimated_completion_time == now + timedelta(seconds=15)
        assert len(task.history) == 1
        assert task.history[0].status == TaskStatus.PENDING

    def test_zero_timeout_is_clamped_after_creation(self):
        now = utcnow()
        task = MintTask.create(token_id=7, provider="dall-e", timeout_ms=0, now=now)

        assert task.timeout_at > task.created_at
        assert task.is_overdue(now + timedelta(milliseconds=2))

    def test_terminal_task_is_never_overdue(self):
        now = utcnow()
        task = MintTask.create(token_id=7, provider="dall-e", timeout_ms=0, now=now)
        done = task.model_copy(update={"status": TaskStatus.COMPLETED})
        assert not done.is_overdue(now + timedelta(hours=1))

    def test_minimal_payload(self):
        task = MintTask.create(token_id=7, provider="dall-e")
        minimal = task.to_minimal()

        assert set(minimal) == {"taskId", "status", "progress", "message", "tokenURI", "updatedAt"}
        assert minimal["status"] == "PENDING"
        assert minimal["tokenURI"] is None

    def test_public_payload_uses_aliases(self):
        task = MintTask.create(token_id=7, provider="dall-e")
        public = task.to_public()

        assert public["taskId"] == task.task_id
        assert public["token_id"] == 7
        assert public["history"][0]["status"] == "PENDING"

    def test_token_id_must_be_non_negative(self):
        with pytest.raises(ValueError):
            MintTask.create(token_id=-1, provider="dall-e")


# ============================================================================
# PROCESS STATE
# ============================================================================

class TestProcessState:

    def test_defaults_document(self):
        doc = ProcessState().to_document()
        assert doc == {"lastProcessedBlock": 0, "processedTokens": [], "pendingTasks": []}

    def test_loads_from_aliases_and_dedupes(self):
        state = ProcessState.model_validate({
            "lastProcessedBlock": 12,
            "processedTokens": [3, 1, 3],
            "pendingTasks": ["task_1_aa"],
        })
        assert state.processed_tokens == [1, 3]
        assert state.last_processed_block == 12

    def test_block_cursor_is_monotonic(self):
        state = ProcessState(last_processed_block=50)
        state.advance_block(40)
        assert state.last_processed_block == 50
        state.advance_block(60)
        assert state.last_processed_block == 60

    def test_mark_processed(self):
        state = ProcessState()
        state.mark_processed(5)
        state.mark_processed(5)
        assert state.processed_tokens == [5]
        assert state.is_processed(5)


# ============================================================================
# METRICS
# ============================================================================

class TestTaskMetrics:

    def test_running_mean(self):
        metrics = TaskMetrics()
        for ms in (1000, 3000, 5000):
            metrics = metrics.apply(MetricsDelta(created=1, active=1))
            metrics = metrics.apply(MetricsDelta(completed=1, active=-1, completion_ms=ms))

        assert metrics.completed == 3
        assert metrics.created == 3
        assert metrics.active == 0
        assert metrics.average_completion_time == pytest.approx(3000)

    def test_active_never_negative(self):
        assert TaskMetrics().apply(MetricsDelta(active=-1)).active == 0

    def test_document_uses_alias(self):
        assert "averageCompletionTime" in TaskMetrics().to_document()


# ============================================================================
# WORK ITEM
# ============================================================================

class TestMintWorkItem:

    def test_from_task_copies_request(self):
        task = MintTask.create(
            token_id=9,
            provider="stability",
            provider_options={"steps": 20},
            breed="Bengal",
            owner="0x" + "1" * 40,
            prompt_extras="with a katana",
            is_regeneration=True,
            priority=Priority.HIGH,
        )
        item = MintWorkItem.from_task(task)

        assert item.task_id == task.task_id
        assert item.image_provider == "stability"
        assert item.provider_options == {"steps": 20}
        assert item.breed == "Bengal"
        assert item.buyer == task.owner
        assert item.is_regeneration
        assert item.priority == Priority.HIGH
        assert item.created_at == task.created_at

    def test_buyer_defaults_to_manual_request(self):
        item = MintWorkItem.from_task(MintTask.create(token_id=9, provider="dall-e"))
        assert item.buyer == "manual-request"


# ============================================================================
# DDL GENERATION
# ============================================================================

class TestSchemaGeneration:

    @pytest.fixture
    def ddl(self):
        return [stmt.as_string(None) for stmt in PydanticToSQL(schema_name="mint").generate_all()]

    def test_creates_schema_and_enums_first(self, ddl):
        assert ddl[0].startswith("CREATE SCHEMA IF NOT EXISTS")
        assert "task_status" in ddl[2]
        assert "'UNKNOWN'" not in ddl[2]
        assert "priority" in ddl[3]

    def test_four_tables(self, ddl):
        tables = [s for s in ddl if s.startswith("CREATE TABLE")]
        assert len(tables) == 4
        joined = " ".join(tables)
        for name in ('"tasks"', '"state"', '"metrics"', '"provider_preferences"'):
            assert name in joined

    def test_state_table_uses_state_data(self, ddl):
        state = next(s for s in ddl if '"state" (' in s)
        assert '"state_data" JSONB' in state

    def test_one_active_task_per_token_index(self, ddl):
        index = next(s for s in ddl if "idx_tasks_one_active_per_token" in s)
        assert "UNIQUE" in index
        assert "WHERE status IN ('PENDING', 'PROCESSING')" in index
