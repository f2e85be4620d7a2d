# ============================================================================
# CRON TICK HANDLER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Orchestrator - Externally triggered resumption loop
# PURPOSE: Sweep, clean up, reseed and drain once per invocation
# CREATED: 30 SEP 2026
# ============================================================================
"""
Cron Tick Handler

Stateless between invocations: everything it needs to resume is in the
``cron`` state document and the tasks table.

One tick:
    1. Load state('cron') with defaults
    2. Sweep: PENDING/PROCESSING past timeout_at -> TIMEOUT
    3. Cleanup: delete terminal tasks older than the TTL
    4. Reseed the queue from non-terminal tasks if it is empty
    5. Scan MintRequested events and enqueue unseen tokens (chain only)
    6. Drain under the remaining wall-clock budget
    7. Persist state('cron')

The sweep always runs before the drain, so no task is left PROCESSING past
its deadline once a tick returns.
"""

import logging
import time
from datetime import timedelta
from typing import Any, Dict, Optional

from core.config import CoordinatorConfig
from core.contracts import ACTIVE_STATUSES, TERMINAL_STATUSES
from core.errors import ChainError, ValidationError
from core.logging import log_checkpoint, log_context
from core.models import CRON_STATE_TYPE, ProcessState, TimeoutCmd, utcnow
from infrastructure.chain import MintChain
from orchestrator.dispatcher import Dispatcher
from orchestrator.queue import MintQueue
from repositories import PersistenceAdapter, TaskFilter
from services.task_service import TaskService
from services.validation import DEFAULT_BREED, ProcessRequest, validate_breed

logger = logging.getLogger(__name__)


class CronTickHandler:
    """One idempotent pass over the store and the queue."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        task_service: TaskService,
        dispatcher: Dispatcher,
        queue: MintQueue,
        chain: Optional[MintChain] = None,
        config: Optional[CoordinatorConfig] = None,
    ):
        self.adapter = adapter
        self.task_service = task_service
        self.dispatcher = dispatcher
        self.queue = queue
        self.chain = chain
        self.config = config or CoordinatorConfig()

    async def tick(self, budget_seconds: Optional[float] = None) -> Dict[str, Any]:
        """
        Run one tick.

        Returns:
            {swept, cleaned, seeded, created, dispatched, completed, failed,
             pending, durationMs}

        Raises:
            StoreFatalError: the store is unreachable after retries
        """
        started = time.monotonic()
        budget = self.config.tick_budget_seconds if budget_seconds is None else budget_seconds

        with log_context(component="cron", operation="tick"):
            document = await self.adapter.load_state(CRON_STATE_TYPE, ProcessState().to_document())
            state = ProcessState.model_validate(document)

            swept = await self.sweep_timeouts()
            cleaned = await self.cleanup()
            seeded = await self.reseed() if self.queue.empty else 0

            created = 0
            if self.chain is not None and self.config.scan_events:
                created = await self.scan_events(state)

            remaining = max(budget - (time.monotonic() - started), 0.0)
            drained = await self.dispatcher.drain(remaining)

            finished = set(self.dispatcher.completed_tokens)
            for token_id in finished:
                state.mark_processed(token_id)
            self.dispatcher.completed_tokens.difference_update(finished)
            state.pending_tasks = self.queue.pending_ids()

            # Completions record their token as they land; keep those
            stored = ProcessState.model_validate(
                await self.adapter.load_state(CRON_STATE_TYPE, ProcessState().to_document())
            )
            for token_id in stored.processed_tokens:
                state.mark_processed(token_id)

            await self.adapter.save_state(CRON_STATE_TYPE, state.to_document())

            summary = {
                "swept": swept,
                "cleaned": cleaned,
                "seeded": seeded,
                "created": created,
                "dispatched": drained.dispatched,
                "completed": drained.completed,
                "failed": drained.failed,
                "pending": len(self.queue),
                "durationMs": int((time.monotonic() - started) * 1000),
            }
            log_checkpoint("cron_tick", summary)
            return summary

    async def sweep_timeouts(self) -> int:
        """Move every overdue PENDING/PROCESSING task to TIMEOUT."""
        now = utcnow()
        overdue = await self.adapter.find_tasks(TaskFilter(statuses=ACTIVE_STATUSES, timeout_before=now))
        swept = 0
        for task in overdue:
            transition = await self.task_service.transition(task.task_id, TimeoutCmd(), now=now)
            if transition is not None and transition.applied:
                swept += 1
        if swept:
            logger.info(f"Swept {swept} overdue task(s)")
        return swept

    async def cleanup(self) -> int:
        """Delete terminal tasks last touched before now - TTL."""
        cutoff = utcnow() - timedelta(seconds=self.config.cleanup_ttl_seconds)
        deleted = await self.adapter.delete_tasks_where(
            TaskFilter(statuses=TERMINAL_STATUSES, updated_before=cutoff)
        )
        if deleted:
            logger.info(f"Cleaned up {deleted} terminal task(s) older than {cutoff.isoformat()}")
        return deleted

    async def reseed(self) -> int:
        """Rebuild the queue from the store, skipping tasks already in flight here."""
        active = await self.adapter.find_tasks(TaskFilter(statuses=ACTIVE_STATUSES))
        running = self.dispatcher.running_ids
        return self.queue.seed_from(t for t in active if t.task_id not in running)

    async def scan_events(self, state: ProcessState) -> int:
        """
        Enqueue tasks for MintRequested events since lastProcessedBlock.

        A chain error skips the scan for this tick without moving the block
        cursor, so the same range is retried next time.
        """
        try:
            latest = await self.chain.latest_block()
            if state.last_processed_block > 0:
                from_block = state.last_processed_block + 1
            else:
                from_block = max(latest - self.config.lookback_blocks, 0)
            events = await self.chain.mint_requests(from_block, latest)
        except ChainError as e:
            logger.warning(f"Event scan skipped: {e.message}")
            return 0

        created = 0
        for event in events:
            if state.is_processed(event.token_id):
                continue
            try:
                breed = validate_breed(event.breed)
            except ValidationError:
                logger.warning(f"Token {event.token_id}: unknown breed {event.breed!r}, using {DEFAULT_BREED}")
                breed = DEFAULT_BREED
            result = await self.task_service.enqueue(
                ProcessRequest(token_id=event.token_id, breed=breed),
                buyer=event.buyer,
                processed_tokens=state.processed_tokens,
            )
            if result.queued:
                created += 1
        state.advance_block(latest)
        if events:
            logger.info(f"Scanned blocks {from_block}-{latest}: {len(events)} event(s), {created} new task(s)")
        return created


__all__ = ["CronTickHandler"]
