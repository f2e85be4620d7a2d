# ============================================================================
# DISPATCHER
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Orchestrator - Bounded cooperative worker pool
# PURPOSE: Run queued work items through providers, IPFS and finalizeMint
# CREATED: 29 SEP 2026
# ============================================================================
"""
Dispatcher

Drains the MintQueue with at most max_concurrent items in flight. Each
item is one asyncio task on the event loop; there are no threads.

Per item:
    1. Load the task. Unknown or terminal -> drop. Overdue -> TIMEOUT.
    2. PENDING -> PROCESSING ("dispatched", progress 1). A task already
       PROCESSING (process restarted mid-item) is resumed as-is.
    3. Optionally write PLACEHOLDER_URI to a token that has no URI yet.
    4. Walk the fallback order. Per provider: progress 20 on submit,
       50 once the image exists; then pin image + metadata to IPFS.
       Any ProviderError or ArtifactStoreError moves on to the next
       provider. Exhausting the list -> FAILED (PROVIDER_EXHAUSTED).
    5. Progress 80 (pinned) and 90, then finalizeMint(tokenId, uri).
       ChainError -> FAILED (CHAIN_FINALIZE).
    6. COMPLETED with {tokenURI, providerUsed, durationMs}.

The whole of steps 3-6 runs under the task's deadline. When timeout_at
passes first, the task moves to TIMEOUT and the unfinished work is left
to run out on its own: every later write it attempts is rejected by the
state machine, and its eventual outcome is only logged.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from core.config import CoordinatorConfig
from core.contracts import ErrorKind, TaskStatus
from core.errors import ArtifactStoreError, ChainError, ProviderError
from core.logging import log_checkpoint, log_context
from core.models import (
    CompleteCmd,
    DispatchCmd,
    FailCmd,
    MintTask,
    MintWorkItem,
    ProgressCmd,
    TaskResultData,
    TimeoutCmd,
    utcnow,
)
from infrastructure.chain import MintChain
from infrastructure.ipfs import ArtifactStore, build_metadata
from orchestrator.queue import MintQueue
from providers import ProviderRegistry
from providers.prompt import build_prompt, negative_prompt_for
from services.task_service import TaskService

logger = logging.getLogger(__name__)


@dataclass
class DrainResult:
    """Counts for one drain() call."""
    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    timed_out: int = 0
    dropped: int = 0
    errors: int = 0
    budget_exhausted: bool = False

    def record(self, status: Optional[TaskStatus]) -> None:
        if status == TaskStatus.COMPLETED:
            self.completed += 1
        elif status == TaskStatus.FAILED:
            self.failed += 1
        elif status == TaskStatus.TIMEOUT:
            self.timed_out += 1
        else:
            self.dropped += 1


@dataclass(frozen=True)
class _Artifact:
    provider: str
    image_uri: str
    token_uri: str
    cost_estimate: float


class Dispatcher:
    """
    Cooperative worker pool over the MintQueue.

    The queue and the persistence adapter (via TaskService) are the only
    shared state; every task write goes through TaskService.transition().
    """

    def __init__(
        self,
        task_service: TaskService,
        registry: ProviderRegistry,
        queue: MintQueue,
        artifacts: ArtifactStore,
        chain: Optional[MintChain] = None,
        config: Optional[CoordinatorConfig] = None,
        placeholder_uri: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            task_service: Write path for every task transition
            registry: Provider adapters and fallback ordering
            queue: Shared in-memory work queue
            artifacts: IPFS pinning for images and metadata
            chain: Contract client; finalize is skipped when None
            config: Concurrency bound and tick budget
            placeholder_uri: Written to tokens without a URI before generation
            clock: Source of "now" for deadline checks
        """
        self.task_service = task_service
        self.registry = registry
        self.queue = queue
        self.artifacts = artifacts
        self.chain = chain
        self.config = config or CoordinatorConfig()
        self.placeholder_uri = placeholder_uri
        self._clock = clock

        self._drain_lock = asyncio.Lock()
        self._running_ids: Set[str] = set()
        self._stragglers: Set[asyncio.Future] = set()
        self._trigger_task: Optional[asyncio.Task] = None
        self.completed_tokens: Set[int] = set()

        # Lifetime counters
        self._started_at = datetime.now(timezone.utc)
        self._items_dispatched = 0
        self._items_completed = 0
        self._items_failed = 0
        self._items_timed_out = 0
        self._errors = 0

    @property
    def running_ids(self) -> Set[str]:
        """Task ids currently owned by an in-flight unit."""
        return set(self._running_ids)

    # =========================================================================
    # DRAIN
    # =========================================================================

    async def drain(self, budget_seconds: Optional[float] = None) -> DrainResult:
        """
        Run queued items until the queue is empty or the budget elapses.

        Items still in flight when the budget runs out keep running in the
        background; their tasks stay PROCESSING in the store and are
        picked up again by a later tick if this process dies.
        """
        budget = self.config.tick_budget_seconds if budget_seconds is None else budget_seconds
        deadline = time.monotonic() + budget
        result = DrainResult()

        async with self._drain_lock:
            inflight: Set[asyncio.Task] = set()
            while True:
                while (
                    len(inflight) < max(1, self.config.max_concurrent)
                    and not self.queue.empty
                    and time.monotonic() < deadline
                ):
                    item = self.queue.pop()
                    if item.task_id in self._running_ids:
                        continue
                    inflight.add(asyncio.create_task(
                        self.run_item(item), name=f"mint-{item.task_id}",
                    ))
                    result.dispatched += 1

                if not inflight:
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break

                done, inflight = await asyncio.wait(
                    inflight, timeout=remaining, return_when=asyncio.FIRST_COMPLETED,
                )
                for unit in done:
                    self._harvest(unit, result)
                # Yield between iterations so request handlers get a turn
                await asyncio.sleep(0)

            if inflight:
                result.budget_exhausted = True
                logger.warning(f"Drain budget of {budget}s spent with {len(inflight)} item(s) in flight")
                for unit in inflight:
                    self._stragglers.add(unit)
                    unit.add_done_callback(self._stragglers.discard)

        if result.dispatched:
            logger.info(
                f"Drain: dispatched={result.dispatched} completed={result.completed} "
                f"failed={result.failed} timed_out={result.timed_out} queued={len(self.queue)}"
            )
        return result

    def _harvest(self, unit: asyncio.Task, result: DrainResult) -> None:
        if unit.cancelled():
            result.dropped += 1
            return
        error = unit.exception()
        if error is not None:
            # One broken item must not stop the rest of the drain
            self._errors += 1
            result.errors += 1
            logger.error(f"Dispatch unit {unit.get_name()} crashed: {error}", exc_info=error)
            return
        result.record(unit.result())

    def trigger(self) -> None:
        """Start a background drain unless one is already running (inline mode)."""
        if self._trigger_task is not None and not self._trigger_task.done():
            return
        self._trigger_task = asyncio.get_running_loop().create_task(
            self.drain(), name="mint-inline-drain",
        )

    async def shutdown(self) -> None:
        """Wait for the inline drain; leave stragglers to the event loop."""
        if self._trigger_task is not None and not self._trigger_task.done():
            await asyncio.wait({self._trigger_task})

    # =========================================================================
    # ONE ITEM
    # =========================================================================

    async def run_item(self, item: MintWorkItem) -> Optional[TaskStatus]:
        """Run one work item to a terminal state. Returns that state, or None if dropped."""
        self._running_ids.add(item.task_id)
        try:
            with log_context(task_id=item.task_id, token_id=item.token_id, component="dispatcher"):
                status = await self._run(item)
        finally:
            self._running_ids.discard(item.task_id)

        if status == TaskStatus.COMPLETED:
            self._items_completed += 1
            self.completed_tokens.add(item.token_id)
        elif status == TaskStatus.FAILED:
            self._items_failed += 1
        elif status == TaskStatus.TIMEOUT:
            self._items_timed_out += 1
        return status

    async def _run(self, item: MintWorkItem) -> Optional[TaskStatus]:
        ts = self.task_service
        lookup = await ts.adapter.load_task(item.task_id)
        if not lookup.found:
            logger.warning(f"Dropping work item for missing task {item.task_id}")
            return None
        task = lookup.task
        if task.is_terminal:
            logger.info(f"Dropping work item; task already {task.status.value}")
            return None
        if task.is_overdue(self._clock()):
            return await self._time_out(item.task_id)

        if task.status == TaskStatus.PENDING:
            transition = await ts.transition(
                item.task_id, DispatchCmd(provider=item.image_provider), now=self._clock(),
            )
            if transition is None or not transition.applied:
                return None
            task = transition.task
            self._items_dispatched += 1
        else:
            logger.info(f"Resuming {task.status.value} task at progress {task.progress}")

        work = asyncio.ensure_future(self._generate_and_finalize(item, task))
        timeout = None
        if task.timeout_at is not None:
            timeout = max((task.timeout_at - self._clock()).total_seconds(), 0.0)
        done, _ = await asyncio.wait({work}, timeout=timeout)
        if work in done:
            return work.result()

        # Deadline passed with the unit still working; its result is discarded
        work.add_done_callback(self._late_result_logger(item.task_id))
        self._stragglers.add(work)
        work.add_done_callback(self._stragglers.discard)
        return await self._time_out(item.task_id)

    async def _time_out(self, task_id: str) -> Optional[TaskStatus]:
        transition = await self.task_service.transition(task_id, TimeoutCmd(), now=self._clock())
        if transition is None:
            return None
        if transition.applied:
            logger.warning(f"Task {task_id} timed out")
        return transition.task.status

    def _late_result_logger(self, task_id: str) -> Callable[[asyncio.Future], None]:
        def _log(fut: asyncio.Future) -> None:
            if fut.cancelled():
                return
            error = fut.exception()
            if error is not None:
                logger.info(f"Late failure for timed-out task {task_id} discarded: {error}")
            else:
                logger.info(f"Late result for timed-out task {task_id} discarded")
        return _log

    async def _progress(self, task_id: str, progress: int, message: str, provider: Optional[str] = None) -> bool:
        """Write a progress line. False once the task has left PROCESSING."""
        transition = await self.task_service.transition(
            task_id,
            ProgressCmd(progress=progress, message=message, provider=provider),
            now=self._clock(),
        )
        return transition is not None and transition.applied

    async def _fail(self, task_id: str, kind: ErrorKind, message: str, attempts: List[str]) -> Optional[TaskStatus]:
        transition = await self.task_service.transition(
            task_id,
            FailCmd(error_kind=kind, message=message[:2000], attempts=tuple(attempts)),
            now=self._clock(),
        )
        if transition is None:
            return None
        return transition.task.status

    # =========================================================================
    # GENERATION + FINALIZE
    # =========================================================================

    async def _generate_and_finalize(self, item: MintWorkItem, task: MintTask) -> Optional[TaskStatus]:
        task_id = item.task_id
        await self._ensure_placeholder(item)

        attempts: List[str] = []
        artifact = await self._generate(item, attempts)
        if artifact is None:
            if not attempts:
                # The task left PROCESSING under us; nothing to record
                return None
            log_checkpoint("providers_exhausted", {"attempts": attempts})
            return await self._fail(
                task_id,
                ErrorKind.PROVIDER_EXHAUSTED,
                f"All providers failed: {'; '.join(attempts)}",
                attempts,
            )

        if not await self._progress(task_id, 80, "Artifact pinned to IPFS", provider=artifact.provider):
            return None
        if not await self._progress(task_id, 90, "Finalizing mint"):
            return None

        if self.chain is not None:
            try:
                tx_hash = await self.chain.finalize_mint(item.token_id, artifact.token_uri)
            except ChainError as e:
                logger.error(f"finalizeMint failed for token {item.token_id}: {e.message}")
                return await self._fail(task_id, ErrorKind.CHAIN_FINALIZE, e.message, attempts)
            log_checkpoint("mint_finalized", {"tx_hash": tx_hash})
        else:
            logger.warning("No chain client configured; finalizeMint skipped")

        now = self._clock()
        duration_ms = max(int((now - task.created_at).total_seconds() * 1000), 0)
        transition = await self.task_service.transition(
            task_id,
            CompleteCmd(result=TaskResultData(
                token_uri=artifact.token_uri,
                provider_used=artifact.provider,
                duration_ms=duration_ms,
                image_uri=artifact.image_uri,
                cost_estimate=artifact.cost_estimate,
            )),
            now=now,
        )
        if transition is None:
            return None
        return transition.task.status

    async def _generate(self, item: MintWorkItem, attempts: List[str]) -> Optional[_Artifact]:
        """
        Walk the fallback order until one provider's image is pinned.

        Returns None when every provider failed (attempts lists why) or when
        the task stopped accepting writes (attempts left as-is).
        """
        task_id = item.task_id
        prompt = build_prompt(item.breed, item.token_id, item.prompt_extras)
        negative = negative_prompt_for(item.negative_prompt)
        order = self.registry.fallback_order(item.image_provider, item.provider_options)

        previous: Optional[str] = None
        for name in order:
            provider = self.registry.get(name)
            options = item.provider_options if name == item.image_provider else provider.filter_options(item.provider_options)
            if not provider.supports(options):
                attempts.append(f"{name}: not available")
                continue

            message = f"Submitting prompt to {name}"
            if previous is not None:
                message = f"falling back to {name} after {previous} failed"
            if not await self._progress(task_id, 20, message, provider=name):
                attempts.clear()
                return None

            with log_context(provider=name):
                try:
                    generated = await provider.submit(prompt, options, negative)
                except ProviderError as e:
                    logger.warning(f"{name} failed: {e.message}")
                    attempts.append(f"{name}: {e.message}")
                    previous = name
                    continue

                if not await self._progress(task_id, 50, f"Image generated by {name}", provider=name):
                    attempts.clear()
                    return None

                try:
                    image_uri = await self.artifacts.store_image(generated.image_url, f"token-{item.token_id}")
                    metadata = build_metadata(item.token_id, item.breed, image_uri, name)
                    token_uri = await self.artifacts.store_metadata(metadata, f"token-{item.token_id}-metadata")
                except ArtifactStoreError as e:
                    logger.warning(f"Pinning {name} output failed: {e.message}")
                    attempts.append(f"{name}: artifact upload failed: {e.message}")
                    previous = name
                    continue

            return _Artifact(
                provider=name,
                image_uri=image_uri,
                token_uri=token_uri,
                cost_estimate=generated.cost_estimate,
            )
        return None

    async def _ensure_placeholder(self, item: MintWorkItem) -> None:
        """Give a fresh token the placeholder URI. Failure here is not fatal."""
        if self.chain is None or not self.placeholder_uri or item.is_regeneration:
            return
        if await self.chain.token_uri(item.token_id):
            return
        try:
            await self.chain.finalize_mint(item.token_id, self.placeholder_uri)
            logger.info(f"Placeholder URI set for token {item.token_id}")
        except ChainError as e:
            logger.warning(f"Placeholder URI not set for token {item.token_id}: {e.message}")

    # =========================================================================
    # STATS
    # =========================================================================

    @property
    def stats(self) -> Dict[str, Any]:
        """Get dispatcher statistics."""
        return {
            "started_at": self._started_at.isoformat(),
            "max_concurrent": self.config.max_concurrent,
            "queued": len(self.queue),
            "in_flight": len(self._running_ids),
            "stragglers": len(self._stragglers),
            "dispatched": self._items_dispatched,
            "completed": self._items_completed,
            "failed": self._items_failed,
            "timed_out": self._items_timed_out,
            "errors": self._errors,
        }


__all__ = ["Dispatcher", "DrainResult"]
