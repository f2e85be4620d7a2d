# ============================================================================
# TASK STATE MACHINE TESTS
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Tests - Pure transition function
# PURPOSE: Verify legal/illegal transitions, history and metrics deltas
# CREATED: 17 SEP 2026
# ============================================================================
"""
State Machine Tests

Covers:
1. Every legal transition from PENDING and PROCESSING
2. Illegal commands return a single REJECTED event and change nothing
3. Every applied command appends exactly one history entry
4. progress == 100 only on COMPLETED
5. Metrics deltas per terminal event
6. is_reachable() agrees with the transition table

Run with:
    pytest tests/test_state_machine.py -v
"""

from datetime import timedelta

import pytest

from core.contracts import ErrorKind, TaskStatus
from core.models import (
    MAX_MESSAGE_CHARS,
    CancelCmd,
    CompleteCmd,
    DispatchCmd,
    FailCmd,
    MintTask,
    ProgressCmd,
    TaskResultData,
    TimeoutCmd,
    utcnow,
)
from core.state_machine import EventType, apply, can_apply, is_reachable


# ============================================================================
# FIXTURES
# ============================================================================

def _pending(**fields) -> MintTask:
    return MintTask.create(token_id=42, provider="dall-e", **fields)


def _processing() -> MintTask:
    return apply(_pending(), DispatchCmd(provider="dall-e")).task


def _result(**fields) -> TaskResultData:
    data = {"token_uri": "ipfs://bafymeta", "provider_used": "dall-e", "duration_ms": 1200}
    data.update(fields)
    return TaskResultData(**data)


# ============================================================================
# LEGAL TRANSITIONS
# ============================================================================

class TestLegalTransitions:
    """Commands allowed by the transition table."""

    def test_dispatch_moves_pending_to_processing(self):
        t = apply(_pending(), DispatchCmd(provider="stability"))

        assert t.applied
        assert t.previous_status == TaskStatus.PENDING
        assert t.task.status == TaskStatus.PROCESSING
        assert t.task.provider == "stability"
        assert t.task.progress == 1
        assert t.events[0].type == EventType.DISPATCHED

    def test_progress_keeps_status(self):
        t = apply(_processing(), ProgressCmd(progress=50, message="Image generated"))

        assert t.task.status == TaskStatus.PROCESSING
        assert t.task.progress == 50
        assert t.task.message == "Image generated"
        assert t.events[0].type == EventType.PROGRESS

    def test_progress_never_moves_backwards(self):
        task = apply(_processing(), ProgressCmd(progress=50, message="a")).task
        t = apply(task, ProgressCmd(progress=20, message="falling back"))

        assert t.task.progress == 50
        assert t.task.message == "falling back"

    def test_progress_caps_below_completion(self):
        t = apply(_processing(), ProgressCmd(progress=100, message="almost"))

        assert t.task.progress == 99
        assert t.task.status == TaskStatus.PROCESSING

    def test_complete_sets_result_and_full_progress(self):
        t = apply(_processing(), CompleteCmd(result=_result(provider_used="stability")))

        assert t.task.status == TaskStatus.COMPLETED
        assert t.task.progress == 100
        assert t.task.result.token_uri == "ipfs://bafymeta"
        assert t.task.provider == "stability"
        assert t.task.completed_at is not None

    def test_fail_records_error(self):
        t = apply(_processing(), FailCmd(
            error_kind=ErrorKind.PROVIDER_EXHAUSTED,
            message="All providers failed",
            attempts=("dall-e: HTTP 503", "stability: HTTP 503"),
        ))

        assert t.task.status == TaskStatus.FAILED
        assert t.task.error.kind == ErrorKind.PROVIDER_EXHAUSTED
        assert t.task.error.attempts == ["dall-e: HTTP 503", "stability: HTTP 503"]
        assert t.task.failed_at is not None

    def test_long_failure_text_fits_columns(self):
        attempts = tuple(f"{name}: " + "e" * 200 for name in ("dall-e", "stability", "huggingface"))
        full = "All providers failed: " + "; ".join(attempts)
        t = apply(_processing(), FailCmd(
            error_kind=ErrorKind.PROVIDER_EXHAUSTED,
            message=full,
            attempts=attempts,
        ))

        assert len(full) > MAX_MESSAGE_CHARS
        assert len(t.task.message) == MAX_MESSAGE_CHARS
        assert t.task.history[-1].message == t.task.message
        assert t.task.error.message == full
        MintTask.model_validate(t.task.model_dump())

    def test_long_cancel_reason_fits_columns(self):
        t = apply(_pending(), CancelCmd(reason="r" * 3000))
        assert len(t.task.message) == MAX_MESSAGE_CHARS
        MintTask.model_validate(t.task.model_dump())

    @pytest.mark.parametrize("factory", [_pending, _processing])
    def test_cancel_from_active(self, factory):
        t = apply(factory(), CancelCmd(reason="user asked"))

        assert t.task.status == TaskStatus.CANCELED
        assert t.task.message == "user asked"
        assert t.task.canceled_at is not None

    @pytest.mark.parametrize("factory", [_pending, _processing])
    def test_timeout_from_active(self, factory):
        t = apply(factory(), TimeoutCmd())

        assert t.task.status == TaskStatus.TIMEOUT
        assert "timed out" in t.task.history[-1].message
        assert t.task.error.kind == ErrorKind.TIMEOUT


# ============================================================================
# ILLEGAL TRANSITIONS
# ============================================================================

class TestRejectedCommands:
    """Illegal (status, command) pairs never raise and never write history."""

    def test_complete_from_pending_rejected(self):
        task = _pending()
        t = apply(task, CompleteCmd(result=_result()))

        assert not t.applied
        assert t.events[0].type == EventType.REJECTED
        assert t.task is task
        assert len(t.task.history) == 1

    def test_dispatch_twice_rejected(self):
        t = apply(_processing(), DispatchCmd(provider="dall-e"))
        assert not t.applied

    @pytest.mark.parametrize("cmd", [
        DispatchCmd(provider="dall-e"),
        ProgressCmd(progress=10, message="late"),
        CancelCmd(),
        TimeoutCmd(),
        FailCmd(error_kind=ErrorKind.TIMEOUT, message="x"),
    ])
    def test_terminal_tasks_are_immutable(self, cmd):
        done = apply(_processing(), CompleteCmd(result=_result())).task
        t = apply(done, cmd)

        assert not t.applied
        assert t.task.status == TaskStatus.COMPLETED
        assert len(t.task.history) == len(done.history)

    def test_cancel_on_terminal_is_noop(self):
        timed_out = apply(_pending(), TimeoutCmd()).task
        t = apply(timed_out, CancelCmd())

        assert t.task.status == TaskStatus.TIMEOUT
        assert len(t.task.history) == 2
        assert t.metrics_delta.is_empty


# ============================================================================
# HISTORY & INVARIANTS
# ============================================================================

class TestHistory:
    """History is append-only, starts PENDING and is monotonic in time."""

    def test_full_lifecycle_history(self):
        task = _pending()
        for cmd in (
            DispatchCmd(provider="dall-e"),
            ProgressCmd(progress=20, message="submitted"),
            ProgressCmd(progress=50, message="generated"),
            CompleteCmd(result=_result()),
        ):
            task = apply(task, cmd).task

        assert [h.status for h in task.history] == [
            TaskStatus.PENDING,
            TaskStatus.PROCESSING,
            TaskStatus.PROCESSING,
            TaskStatus.PROCESSING,
            TaskStatus.COMPLETED,
        ]
        assert [h.progress for h in task.history] == [0, 1, 20, 50, 100]
        times = [h.time for h in task.history]
        assert times == sorted(times)

    def test_history_stays_monotonic_with_lagging_clock(self):
        task = _pending()
        earlier = task.updated_at - timedelta(seconds=30)
        t = apply(task, DispatchCmd(provider="dall-e"), now=earlier)

        assert t.task.history[-1].time >= t.task.history[0].time
        assert t.task.updated_at == task.updated_at

    def test_progress_100_iff_completed(self):
        task = _processing()
        for p in (10, 60, 99, 100):
            task = apply(task, ProgressCmd(progress=p, message="p")).task
            assert task.progress < 100
        task = apply(task, CompleteCmd(result=_result())).task
        assert task.progress == 100 and task.status == TaskStatus.COMPLETED

    def test_progress_updates_estimate(self):
        created = utcnow() - timedelta(seconds=10)
        task = apply(_pending(now=created), DispatchCmd(provider="dall-e"), now=created).task
        now = created + timedelta(seconds=10)
        task = apply(task, ProgressCmd(progress=50, message="half"), now=now).task

        assert task.estimated_completion_time == now + timedelta(seconds=10)


# ============================================================================
# METRICS DELTAS
# ============================================================================

class TestMetricsDelta:

    def test_completion_delta(self):
        created = utcnow() - timedelta(seconds=4)
        task = apply(_pending(now=created), DispatchCmd(provider="dall-e"), now=created).task
        t = apply(task, CompleteCmd(result=_result()), now=created + timedelta(seconds=4))

        delta = t.metrics_delta
        assert delta.completed == 1
        assert delta.active == -1
        assert delta.completion_ms == 4000

    @pytest.mark.parametrize("cmd", [
        FailCmd(error_kind=ErrorKind.CHAIN_FINALIZE, message="reverted"),
        TimeoutCmd(),
    ])
    def test_failure_delta(self, cmd):
        delta = apply(_processing(), cmd).metrics_delta
        assert (delta.failed, delta.active) == (1, -1)

    def test_cancel_only_decrements_active(self):
        delta = apply(_pending(), CancelCmd()).metrics_delta
        assert (delta.failed, delta.completed, delta.active) == (0, 0, -1)

    def test_progress_has_no_delta(self):
        assert apply(_processing(), ProgressCmd(progress=20, message="x")).metrics_delta.is_empty


# ============================================================================
# REACHABILITY
# ============================================================================

class TestReachability:

    @pytest.mark.parametrize("source,target,expected", [
        (TaskStatus.PENDING, TaskStatus.PROCESSING, True),
        (TaskStatus.PENDING, TaskStatus.TIMEOUT, True),
        (TaskStatus.PENDING, TaskStatus.COMPLETED, False),
        (TaskStatus.PROCESSING, TaskStatus.COMPLETED, True),
        (TaskStatus.PROCESSING, TaskStatus.PENDING, False),
        (TaskStatus.PROCESSING, TaskStatus.PROCESSING, True),
        (TaskStatus.COMPLETED, TaskStatus.FAILED, False),
        (TaskStatus.CANCELED, TaskStatus.CANCELED, False),
    ])
    def test_is_reachable(self, source, target, expected):
        assert is_reachable(source, target) is expected

    def test_can_apply_matches_apply(self):
        task = _pending()
        for cmd in (CompleteCmd(result=_result()), DispatchCmd(provider="x")):
            assert can_apply(task.status, cmd) == apply(task, cmd).applied
